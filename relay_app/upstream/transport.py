"""Byte transport contract between the upstream link and a backend."""

from abc import ABC, abstractmethod


class UpstreamTransport(ABC):
    """
    A message-oriented connection to the trading backend.

    The link drives one transport instance through repeated
    connect/recv/close cycles. Implementations raise TransportError for
    any connection failure so the link can reconnect.
    """

    endpoint: str = "unknown"

    @abstractmethod
    async def connect(self) -> None:
        """Establish the connection or raise TransportError."""
        pass

    @abstractmethod
    async def recv(self) -> bytes:
        """Wait for the next message frame or raise TransportError."""
        pass

    @abstractmethod
    async def send(self, payload: bytes) -> None:
        """Send one message frame or raise TransportError."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the connection; safe to call when not connected."""
        pass
