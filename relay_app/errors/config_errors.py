"""Startup configuration errors."""

from typing import Any, Optional


class ConfigurationError(Exception):
    """Configuration could not be loaded or failed validation."""

    def __init__(self, message: str, errors: Optional[list[Any]] = None):
        super().__init__(message)
        self.errors = errors or []
        self.recoverable = False
