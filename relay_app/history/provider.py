"""History provider contract and a fixed-record implementation."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from ..models.history import TradeRecord, TradeSide


class HistoryProvider(ABC):
    """Read-only source of closed trades, queried on demand."""

    @abstractmethod
    def fetch(self, symbol: Optional[str] = None, limit: Optional[int] = None) -> list[TradeRecord]:
        """
        Return closed trades, most recently closed first.

        Args:
            symbol: Only trades for this symbol, if given
            limit: Maximum number of records, if given
        """
        pass


class StaticHistoryProvider(HistoryProvider):
    """Serves a fixed list of trade records."""

    def __init__(self, records: Optional[Iterable[TradeRecord]] = None) -> None:
        self._records = tuple(records) if records is not None else default_demo_records()

    def fetch(self, symbol: Optional[str] = None, limit: Optional[int] = None) -> list[TradeRecord]:
        records = [r for r in self._records if symbol is None or r.symbol == symbol]
        records.sort(key=lambda r: r.close_time or r.open_time, reverse=True)
        return records[:limit] if limit is not None else records


def default_demo_records() -> tuple[TradeRecord, ...]:
    """Two closed EURUSD trades used when no history source is configured."""
    return (
        TradeRecord(
            ticket=12345,
            symbol="EURUSD",
            side=TradeSide.BUY,
            open_time=datetime(2025, 4, 16, 10, 30, tzinfo=timezone.utc),
            close_time=datetime(2025, 4, 16, 14, 45, tzinfo=timezone.utc),
            lots=Decimal("0.1"),
            open_price=Decimal("1.0765"),
            close_price=Decimal("1.0792"),
            profit=Decimal("27.0"),
            pips=27,
        ),
        TradeRecord(
            ticket=12346,
            symbol="EURUSD",
            side=TradeSide.SELL,
            open_time=datetime(2025, 4, 15, 15, 20, tzinfo=timezone.utc),
            close_time=datetime(2025, 4, 15, 17, 35, tzinfo=timezone.utc),
            lots=Decimal("0.1"),
            open_price=Decimal("1.0805"),
            close_price=Decimal("1.0783"),
            profit=Decimal("22.0"),
            pips=22,
        ),
    )
