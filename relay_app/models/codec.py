"""
Wire codec for upstream and client documents.

Converts between the canonical models and the JSON documents exchanged with
the trading backend and browser clients. Keys follow the backend's
camelCase naming. Prices are decoded as Decimal so values survive a
decode/encode cycle unchanged.
"""

import json
import math
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..errors import MalformedMessageError
from ..utils.time import format_timestamp, parse_timestamp, utc_now
from .history import TradeRecord, TradeSide
from .market import ZERO, MarketSnapshot, Zone

# Client-facing message types
MARKET_DATA = "market_data"
HISTORY_DATA = "history_data"
COMMAND_RESULT = "command_result"
ERROR = "error"


def encode_message(document: Any) -> str:
    """
    Serialize a document to compact JSON text.

    Decimals are written as JSON numbers and datetimes as ISO-8601 strings.
    """
    return json.dumps(document, default=_json_default, separators=(",", ":"))


def decode_message(raw: Any) -> dict[str, Any]:
    """
    Parse JSON text or bytes into a document.

    Args:
        raw: JSON text or UTF-8 bytes

    Returns:
        Decoded JSON object with floats as Decimal

    Raises:
        MalformedMessageError: If the payload is not a JSON object
    """
    if isinstance(raw, (bytes, bytearray, memoryview)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedMessageError(
                f"Payload is not valid UTF-8: {e}",
                raw_data=repr(bytes(raw)[:100]),
                expected_format="utf-8 json"
            ) from e

    try:
        document = json.loads(raw, parse_float=Decimal)
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(
            f"Payload is not valid JSON: {e}",
            raw_data=str(raw)[:100],
            expected_format="json"
        ) from e

    if not isinstance(document, dict):
        raise MalformedMessageError(
            f"Payload must be a JSON object, got {type(document).__name__}",
            raw_data=str(raw)[:100],
            expected_format="json object"
        )

    return document


def is_snapshot_document(document: dict[str, Any]) -> bool:
    """True when an upstream document carries a non-empty symbol field."""
    symbol = document.get("symbol")
    return isinstance(symbol, str) and bool(symbol.strip())


def snapshot_to_dict(snapshot: MarketSnapshot) -> dict[str, Any]:
    """Convert a snapshot to its wire document."""
    return {
        "symbol": snapshot.symbol,
        "bid": snapshot.bid,
        "ask": snapshot.ask,
        "time": format_timestamp(snapshot.timestamp),
        "balance": snapshot.balance,
        "equity": snapshot.equity,
        "margin": snapshot.margin,
        "positions": snapshot.positions,
        "zones": [zone_to_dict(zone) for zone in snapshot.zones],
    }


def zone_to_dict(zone: Zone) -> dict[str, Any]:
    """Convert a zone to its wire document."""
    return {
        "price": zone.price,
        "isSupply": zone.is_supply,
        "strength": zone.strength,
        "time": format_timestamp(zone.timestamp),
    }


def snapshot_from_dict(document: dict[str, Any],
                       received_at: Optional[datetime] = None) -> MarketSnapshot:
    """
    Build a snapshot from an upstream document.

    ``symbol``, ``bid`` and ``ask`` are required. Account fields default to
    zero and a missing ``time`` defaults to the receive time.

    Args:
        document: Decoded upstream document
        received_at: Receive time used when the document has no timestamp

    Returns:
        Parsed MarketSnapshot

    Raises:
        MalformedMessageError: If required fields are missing or invalid
    """
    if not is_snapshot_document(document):
        raise MalformedMessageError(
            "Snapshot document has no symbol",
            raw_data=str(document)[:100],
            expected_format="market snapshot"
        )

    for required in ("bid", "ask"):
        if document.get(required) is None:
            raise MalformedMessageError(
                f"Snapshot document is missing '{required}'",
                raw_data=str(document)[:100],
                expected_format="market snapshot"
            )

    zones_raw = document.get("zones") or []
    if not isinstance(zones_raw, list):
        raise MalformedMessageError(
            "Snapshot 'zones' must be a list",
            raw_data=str(zones_raw)[:100],
            expected_format="list of zones"
        )

    try:
        return MarketSnapshot(
            symbol=document["symbol"].strip(),
            bid=_to_decimal(document["bid"], "bid"),
            ask=_to_decimal(document["ask"], "ask"),
            timestamp=parse_timestamp(document.get("time"), default=received_at or utc_now()),
            balance=_to_decimal(document.get("balance", ZERO), "balance"),
            equity=_to_decimal(document.get("equity", ZERO), "equity"),
            margin=_to_decimal(document.get("margin", ZERO), "margin"),
            positions=_to_int(document.get("positions", 0), "positions"),
            zones=tuple(zone_from_dict(z) for z in zones_raw),
        )
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(
            f"Invalid snapshot document: {e}",
            raw_data=str(document)[:100],
            expected_format="market snapshot"
        ) from e


def zone_from_dict(document: Any) -> Zone:
    """Build a zone from its wire document; raises ValueError when invalid."""
    if not isinstance(document, dict):
        raise ValueError(f"zone must be an object, got {type(document).__name__}")

    is_supply = document.get("isSupply")
    if not isinstance(is_supply, bool):
        raise ValueError("zone 'isSupply' must be a boolean")

    raw_time = document.get("time")
    return Zone(
        price=_to_decimal(document.get("price"), "zone price"),
        is_supply=is_supply,
        strength=float(_to_decimal(document.get("strength"), "zone strength")),
        timestamp=parse_timestamp(raw_time) if raw_time not in (None, "") else None,
    )


def trade_to_dict(record: TradeRecord) -> dict[str, Any]:
    """Convert a trade record to its wire document."""
    return {
        "ticket": record.ticket,
        "symbol": record.symbol,
        "type": record.side.value,
        "openTime": format_timestamp(record.open_time),
        "closeTime": format_timestamp(record.close_time),
        "lots": record.lots,
        "openPrice": record.open_price,
        "closePrice": record.close_price,
        "profit": record.profit,
        "pips": record.pips,
    }


def trade_from_dict(document: dict[str, Any]) -> TradeRecord:
    """
    Build a trade record from its wire document.

    Raises:
        ValueError: If fields are missing or invalid
    """
    try:
        side = TradeSide(str(document["type"]).upper())
        close_time = document.get("closeTime")
        close_price = document.get("closePrice")
        return TradeRecord(
            ticket=_to_int(document["ticket"], "ticket"),
            symbol=str(document["symbol"]),
            side=side,
            open_time=parse_timestamp(document["openTime"]),
            close_time=parse_timestamp(close_time) if close_time else None,
            lots=_to_decimal(document["lots"], "lots"),
            open_price=_to_decimal(document["openPrice"], "openPrice"),
            close_price=_to_decimal(close_price, "closePrice") if close_price is not None else None,
            profit=_to_decimal(document.get("profit", ZERO), "profit"),
            pips=_to_int(document.get("pips", 0), "pips"),
        )
    except KeyError as e:
        raise ValueError(f"trade record is missing {e.args[0]!r}") from e


def market_data_message(snapshot: MarketSnapshot) -> dict[str, Any]:
    """Client push carrying the current snapshot."""
    return {"type": MARKET_DATA, "data": snapshot_to_dict(snapshot)}


def history_message(records: list[TradeRecord]) -> dict[str, Any]:
    """Client response carrying closed trades."""
    return {"type": HISTORY_DATA, "data": [trade_to_dict(r) for r in records]}


def _to_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"{field_name} must be finite, got {value!r}")
        value = repr(value)
    try:
        result = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"{field_name} must be a number, got {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    return result


def _to_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    number = _to_decimal(value, field_name)
    if number != number.to_integral_value():
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    return int(number)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        # Integral amounts such as Decimal("10000") stay JSON integers
        if value.as_tuple().exponent >= 0:
            return int(value)
        return float(value)
    if isinstance(value, datetime):
        return format_timestamp(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
