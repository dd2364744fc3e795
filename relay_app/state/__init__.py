"""Current market state held by the relay."""

from .store import StateStore

__all__ = ["StateStore"]
