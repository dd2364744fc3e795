"""
Timestamp helpers for upstream and client documents.

All datetimes inside the relay are timezone-aware UTC. Upstream documents
may carry ISO-8601 strings, MetaTrader server time strings
(``2025.04.16 10:30:00``) or epoch milliseconds; clients always receive
ISO-8601 with a ``Z`` suffix.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Epoch values above this are treated as milliseconds
_MS_THRESHOLD = 10_000_000_000

_MT4_FORMATS = ("%Y.%m.%d %H:%M:%S", "%Y.%m.%d %H:%M")


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any, default: Optional[datetime] = None) -> datetime:
    """
    Convert an upstream timestamp into an aware UTC datetime.

    Args:
        value: ISO-8601 string, MetaTrader time string, epoch seconds or
            epoch milliseconds, or a datetime
        default: Returned when value is None or empty

    Returns:
        Aware UTC datetime

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if value is None or value == "":
        if default is not None:
            return default
        raise ValueError("timestamp is missing")

    if isinstance(value, datetime):
        return _as_utc(value)

    if isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")

    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        if number < 0:
            raise ValueError(f"negative timestamp: {value!r}")
        if number > _MS_THRESHOLD:
            number /= 1000.0
        return datetime.fromtimestamp(number, tz=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return _as_utc(datetime.fromisoformat(text))
        except ValueError:
            pass
        for fmt in _MT4_FORMATS:
            try:
                return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue

    raise ValueError(f"invalid timestamp: {value!r}")


def format_timestamp(ts: Optional[datetime]) -> Optional[str]:
    """
    Format a datetime as ISO-8601 UTC.

    Args:
        ts: Datetime to format; naive values are assumed to be UTC

    Returns:
        String such as ``2025-04-16T10:30:00Z``, or None
    """
    if ts is None:
        return None
    return _as_utc(ts).isoformat().replace("+00:00", "Z")


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)
