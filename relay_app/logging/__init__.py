"""
Logging configuration and utilities for the market data relay.
"""
from .config import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
