"""Client session bookkeeping."""

from .models import SessionState
from .registry import ClientRegistry
from .session import ClientSession

__all__ = ["ClientRegistry", "ClientSession", "SessionState"]
