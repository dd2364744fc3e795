"""
ZeroMQ DEALER transport for MetaTrader expert advisors.

The EA binds a ROUTER socket; the relay connects a DEALER. ZeroMQ hides
peer connectivity, so a socket monitor is used to learn when the TCP
connection is up and when it drops.
"""

import asyncio
import contextlib
from typing import Optional

import structlog
import zmq
import zmq.asyncio
from zmq.utils.monitor import parse_monitor_message

from ..errors import TransportError
from .transport import UpstreamTransport

logger = structlog.get_logger(__name__)

_MONITOR_EVENTS = zmq.EVENT_CONNECTED | zmq.EVENT_DISCONNECTED


class ZmqTransport(UpstreamTransport):
    """DEALER socket connected to ``tcp://host:port``."""

    def __init__(
        self,
        endpoint: str,
        connect_timeout: float = 5.0,
        context: Optional[zmq.asyncio.Context] = None,
    ) -> None:
        self.endpoint = endpoint
        self.connect_timeout = connect_timeout
        self._context = context
        self._socket: Optional[zmq.asyncio.Socket] = None
        self._monitor: Optional[zmq.asyncio.Socket] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._lost = asyncio.Event()

    async def connect(self) -> None:
        """Connect and wait until the peer accepts the TCP connection."""
        await self.close()

        context = self._context or zmq.asyncio.Context.instance()
        self._lost = asyncio.Event()
        self._socket = context.socket(zmq.DEALER)
        self._socket.setsockopt(zmq.LINGER, 0)
        self._monitor = self._socket.get_monitor_socket(_MONITOR_EVENTS)

        try:
            self._socket.connect(self.endpoint)
            await asyncio.wait_for(
                self._wait_for_event(zmq.EVENT_CONNECTED),
                timeout=self.connect_timeout
            )
        except asyncio.TimeoutError as e:
            await self.close()
            raise TransportError(
                f"No peer accepted the connection within {self.connect_timeout}s",
                endpoint=self.endpoint,
                operation="connect"
            ) from e
        except zmq.ZMQError as e:
            await self.close()
            raise TransportError(
                f"Connect failed: {e}",
                endpoint=self.endpoint,
                operation="connect"
            ) from e

        self._watch_task = asyncio.create_task(self._watch_disconnect())
        logger.debug("ZeroMQ peer connected", endpoint=self.endpoint)

    async def recv(self) -> bytes:
        """Receive the next message; the payload is the last frame."""
        if self._socket is None:
            raise TransportError("Not connected", endpoint=self.endpoint, operation="recv")

        recv_future = asyncio.ensure_future(self._socket.recv_multipart())
        lost_future = asyncio.ensure_future(self._lost.wait())
        try:
            done, _pending = await asyncio.wait(
                {recv_future, lost_future},
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for future in (recv_future, lost_future):
                if not future.done():
                    future.cancel()

        if recv_future in done:
            try:
                frames = recv_future.result()
            except zmq.ZMQError as e:
                raise TransportError(f"Receive failed: {e}", endpoint=self.endpoint,
                                     operation="recv") from e
            return frames[-1]

        raise TransportError("Peer disconnected", endpoint=self.endpoint, operation="recv")

    async def send(self, payload: bytes) -> None:
        """Send one frame without waiting for queue space."""
        if self._socket is None or self._lost.is_set():
            raise TransportError("Not connected", endpoint=self.endpoint, operation="send")
        try:
            await self._socket.send(payload, flags=zmq.NOBLOCK)
        except zmq.ZMQError as e:
            raise TransportError(f"Send failed: {e}", endpoint=self.endpoint,
                                 operation="send") from e

    async def close(self) -> None:
        """Tear down the socket and its monitor."""
        if self._watch_task is not None:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watch_task
            self._watch_task = None

        if self._socket is not None:
            with contextlib.suppress(zmq.ZMQError):
                self._socket.disable_monitor()
            self._socket.close(linger=0)
            self._socket = None

        if self._monitor is not None:
            self._monitor.close(linger=0)
            self._monitor = None

    async def _wait_for_event(self, wanted: int) -> None:
        while True:
            frames = await self._monitor.recv_multipart()
            event = parse_monitor_message(frames)
            if event["event"] == wanted:
                return

    async def _watch_disconnect(self) -> None:
        with contextlib.suppress(zmq.ZMQError):
            await self._wait_for_event(zmq.EVENT_DISCONNECTED)
        self._lost.set()
