"""Closed trade history sources."""

from .provider import HistoryProvider, StaticHistoryProvider, default_demo_records
from .sqlite_store import SqliteHistoryProvider

__all__ = [
    "HistoryProvider",
    "SqliteHistoryProvider",
    "StaticHistoryProvider",
    "default_demo_records",
]
