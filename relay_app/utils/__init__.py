"""Utility functions for the market data relay."""

from .time import (
    EPOCH,
    format_timestamp,
    parse_timestamp,
    utc_now,
)

__all__ = [
    "EPOCH",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
]
