"""Canonical data models for the market data relay."""

from .commands import Command, CommandAck
from .history import TradeRecord, TradeSide
from .market import MarketSnapshot, Zone

__all__ = [
    "Command",
    "CommandAck",
    "MarketSnapshot",
    "TradeRecord",
    "TradeSide",
    "Zone",
]
