"""
Upstream link error classifications.

A lost link is recoverable: the link reconnects on its own and callers
decide whether to re-issue. Malformed upstream data is logged and dropped
and never leaves the link.
"""

from typing import Any, Dict, Optional


class LinkError(Exception):
    """Base class for upstream link failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class LinkDisconnectedError(LinkError):
    """The link is not connected; the operation failed fast."""

    def __init__(self, message: str = "Upstream link is disconnected",
                 state: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.state = state


class MalformedMessageError(LinkError):
    """Upstream payload could not be decoded into a usable document."""

    def __init__(self, message: str, raw_data: Optional[str] = None,
                 expected_format: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data
        self.expected_format = expected_format


class TransportError(LinkError):
    """Socket level failure while connecting, receiving or sending."""

    def __init__(self, message: str, endpoint: Optional[str] = None,
                 operation: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.endpoint = endpoint
        self.operation = operation
