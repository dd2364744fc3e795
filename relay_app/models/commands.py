"""Client command models."""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional

from ..utils.time import utc_now


@dataclass(frozen=True)
class Command:
    """A command issued by a client, immutable once created."""
    name: str
    params: Mapping[str, Any] = field(default_factory=dict)
    session_id: Optional[str] = None      # None for HTTP submissions
    issued_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        # Read-only private copy of the caller's mapping
        object.__setattr__(self, "params", MappingProxyType(dict(self.params or {})))

    def to_wire(self) -> dict[str, Any]:
        """Document sent to the upstream backend."""
        return {"command": self.name, "params": dict(self.params)}


@dataclass(frozen=True)
class CommandAck:
    """Acknowledgement that a command was handed to the upstream link."""
    command: str
    issued_at: datetime
    message: str = "Command sent"
