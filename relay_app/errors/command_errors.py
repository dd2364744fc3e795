"""
Command error classifications.

Every command failure carries a ``reason`` code that is surfaced to the
issuing client verbatim.
"""

from typing import Any, Dict, Optional


class CommandError(Exception):
    """Base class for command submission failures."""

    reason = "CommandError"

    def __init__(self, message: str, command: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.command = command
        self.context = context or {}


class InvalidCommandError(CommandError):
    """Command name is empty or not recognised."""

    reason = "InvalidCommand"


class UpstreamUnavailableError(CommandError):
    """Command could not be forwarded because the upstream link is down."""

    reason = "UpstreamUnavailable"

    def __init__(self, message: str, command: Optional[str] = None,
                 link_state: Optional[str] = None, **kwargs):
        super().__init__(message, command=command, **kwargs)
        self.link_state = link_state
        self.recoverable = True
