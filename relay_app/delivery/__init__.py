"""Fan-out of relay messages to client sessions."""

from .broadcaster import Broadcaster

__all__ = ["Broadcaster"]
