"""
Market and account state models.

A MarketSnapshot is immutable: the relay replaces the current snapshot as a
whole and never mutates one in place, so any reader holding a reference
sees a consistent document.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..utils.time import EPOCH

ZERO = Decimal("0")


@dataclass(frozen=True)
class Zone:
    """Supply or demand price level reported by the backend."""
    price: Decimal                        # Price level
    is_supply: bool                       # True for supply, False for demand
    strength: float                       # Score in [0.0, 1.0]
    timestamp: Optional[datetime] = None  # When the zone was detected

    def __post_init__(self):
        if not 0.0 <= self.strength <= 1.0:
            raise ValueError(f"zone strength must be within [0, 1], got {self.strength}")


@dataclass(frozen=True)
class MarketSnapshot:
    """Latest quote and account state for the traded symbol."""
    symbol: str
    bid: Decimal
    ask: Decimal
    timestamp: datetime                   # UTC
    balance: Decimal = ZERO
    equity: Decimal = ZERO
    margin: Decimal = ZERO
    positions: int = 0                    # Open position count
    zones: tuple[Zone, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls, symbol: str = "EURUSD") -> "MarketSnapshot":
        """
        Zero state used before the first upstream update.

        All amounts are zero, there are no zones and the timestamp is the
        Unix epoch, so clients can tell it apart from live data.
        """
        return cls(symbol=symbol, bid=ZERO, ask=ZERO, timestamp=EPOCH)

    @property
    def is_empty(self) -> bool:
        """True for the zero state."""
        return self.timestamp == EPOCH and self.bid == ZERO and self.ask == ZERO

    @property
    def spread(self) -> Decimal:
        """Ask minus bid."""
        return self.ask - self.bid
