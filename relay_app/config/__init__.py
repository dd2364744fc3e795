"""Configuration for the market data relay."""

from .defaults import RelayConfig, get_default_config
from .loader import ConfigLoader, load_config

__all__ = ["ConfigLoader", "RelayConfig", "get_default_config", "load_config"]
