"""Client command validation and forwarding."""

from .router import CommandRouter

__all__ = ["CommandRouter"]
