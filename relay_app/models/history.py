"""Closed trade history models."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class TradeSide(str, Enum):
    """Direction of a closed trade."""
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class TradeRecord:
    """A closed trade as reported by the history provider."""
    ticket: int
    symbol: str
    side: TradeSide
    open_time: datetime
    close_time: Optional[datetime]
    lots: Decimal
    open_price: Decimal
    close_price: Optional[Decimal]
    profit: Decimal
    pips: int
