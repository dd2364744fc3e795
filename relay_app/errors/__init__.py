"""
Error classification for the relay.

Exceptions are grouped by the boundary they belong to: the upstream link,
client commands, client sessions, and startup configuration.
"""

from .link_errors import (
    LinkError,
    LinkDisconnectedError,
    MalformedMessageError,
    TransportError,
)
from .command_errors import (
    CommandError,
    InvalidCommandError,
    UpstreamUnavailableError,
)
from .session_errors import (
    SessionError,
    QueueOverflowError,
    SessionStateError,
)
from .config_errors import ConfigurationError

__all__ = [
    # Upstream link
    "LinkError",
    "LinkDisconnectedError",
    "MalformedMessageError",
    "TransportError",
    # Commands
    "CommandError",
    "InvalidCommandError",
    "UpstreamUnavailableError",
    # Sessions
    "SessionError",
    "QueueOverflowError",
    "SessionStateError",
    # Startup
    "ConfigurationError",
]
