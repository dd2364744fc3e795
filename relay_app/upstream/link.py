"""
Upstream link to the trading backend.

Owns the only connection to the backend. ``run`` keeps it connected,
reconnecting with exponential backoff for as long as the relay runs, and
feeds decoded documents into a bounded inbound queue. ``send_command``
fails fast with LinkDisconnectedError instead of queueing while the link is
down, so an outage can never grow memory without bound.
"""

import asyncio
import contextlib
from enum import Enum
from typing import Any, AsyncIterator, Optional

from ..errors import LinkDisconnectedError, MalformedMessageError, TransportError
from ..logging.config import get_link_logger, log_state_transition
from ..models.codec import decode_message, encode_message
from ..models.commands import Command
from .backoff import ExponentialBackoff
from .transport import UpstreamTransport

logger = get_link_logger(__name__)


class LinkState(str, Enum):
    """Connection state of the upstream link."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class UpstreamLink:
    """Reconnecting connection to the trading backend."""

    def __init__(
        self,
        transport: UpstreamTransport,
        backoff: Optional[ExponentialBackoff] = None,
        send_timeout: float = 1.0,
        inbound_queue_size: int = 1024,
    ) -> None:
        self.transport = transport
        self.backoff = backoff or ExponentialBackoff()
        self.send_timeout = send_timeout
        self.state = LinkState.DISCONNECTED

        self.connect_attempts = 0
        self.received_count = 0
        self.malformed_count = 0

        self._inbound: asyncio.Queue = asyncio.Queue(maxsize=inbound_queue_size)
        self._stop = asyncio.Event()
        self._abort = asyncio.Event()
        self._connected = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def endpoint(self) -> str:
        return self.transport.endpoint

    @property
    def is_connected(self) -> bool:
        return self.state is LinkState.CONNECTED

    def start(self) -> asyncio.Task:
        """Run the connect loop as a background task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="upstream-link")
        return self._task

    async def run(self) -> None:
        """
        Connect, receive, and reconnect until ``close`` is called.

        Connection failures never escape this loop; each one schedules the
        next attempt after a backoff delay.
        """
        while not self._stop.is_set():
            self._abort = asyncio.Event()
            self._set_state(LinkState.CONNECTING, trigger="connect_attempt")
            self.connect_attempts += 1

            try:
                await self.transport.connect()
            except TransportError as e:
                self._set_state(LinkState.DISCONNECTED, trigger="connect_failed")
                delay = self.backoff.next_delay()
                logger.warning(
                    "Upstream connect failed, retrying",
                    endpoint=self.endpoint,
                    error=str(e),
                    attempt=self.connect_attempts,
                    retry_in_s=round(delay, 3)
                )
                await self._pause(delay)
                continue

            self.backoff.reset()
            self._set_state(LinkState.CONNECTED, trigger="connected")
            logger.info("Connected to upstream", endpoint=self.endpoint)

            try:
                await self._receive_loop()
            except TransportError as e:
                if not self._stop.is_set():
                    logger.warning(
                        "Upstream connection lost",
                        endpoint=self.endpoint,
                        error=str(e),
                        operation=e.operation
                    )
            finally:
                await self.transport.close()
                if self.state is LinkState.CONNECTED:
                    self._set_state(LinkState.DISCONNECTED, trigger="connection_lost")

            if not self._stop.is_set():
                await self._pause(self.backoff.next_delay())

        self._set_state(LinkState.CLOSED, trigger="closed")

    async def close(self, timeout: float = 5.0) -> None:
        """Stop reconnecting and close the connection."""
        self._stop.set()
        self._abort.set()

        if self._task is not None and not self._task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
            except asyncio.TimeoutError:
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
                await self.transport.close()
        elif self._task is None:
            await self.transport.close()

        if self.state is not LinkState.CLOSED:
            self._set_state(LinkState.CLOSED, trigger="closed")
        logger.info("Upstream link closed", endpoint=self.endpoint)

    async def send_command(self, command: Command) -> None:
        """
        Serialize and transmit a command to the backend.

        Raises:
            LinkDisconnectedError: If the link is not connected, or the send
                failed or timed out (the link then starts reconnecting)
        """
        if self.state is not LinkState.CONNECTED:
            raise LinkDisconnectedError(
                f"Upstream link is {self.state.value}",
                state=self.state.value,
                context={"command": command.name}
            )

        payload = encode_message(command.to_wire()).encode("utf-8")
        try:
            await asyncio.wait_for(self.transport.send(payload), timeout=self.send_timeout)
        except (TransportError, asyncio.TimeoutError) as e:
            logger.warning(
                "Upstream send failed, reconnecting",
                endpoint=self.endpoint,
                command=command.name,
                error=str(e) or type(e).__name__
            )
            self._drop_connection("send_failed")
            raise LinkDisconnectedError(
                "Send to upstream failed",
                state=self.state.value,
                context={"command": command.name}
            ) from e

        logger.info(
            "Command sent upstream",
            command=command.name,
            session_id=command.session_id
        )

    async def wait_connected(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the link is connected.

        Returns:
            True if connected before the timeout
        """
        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def get_message(self) -> dict[str, Any]:
        """Wait for the next decoded upstream document."""
        return await self._inbound.get()

    async def messages(self) -> AsyncIterator[dict[str, Any]]:
        """Decoded upstream documents in arrival order."""
        while True:
            yield await self._inbound.get()

    def stats(self) -> dict[str, Any]:
        """Link counters for health reporting."""
        return {
            "state": self.state.value,
            "endpoint": self.endpoint,
            "connect_attempts": self.connect_attempts,
            "received": self.received_count,
            "malformed": self.malformed_count,
            "inbound_pending": self._inbound.qsize(),
        }

    async def _receive_loop(self) -> None:
        while True:
            raw = await self._next_frame()
            try:
                document = decode_message(raw)
            except MalformedMessageError as e:
                self.malformed_count += 1
                logger.warning(
                    "Dropped malformed upstream message",
                    error=str(e),
                    raw_data=e.raw_data
                )
                continue

            self.received_count += 1
            await self._inbound.put(document)

    async def _next_frame(self) -> bytes:
        recv_future = asyncio.ensure_future(self.transport.recv())
        abort_future = asyncio.ensure_future(self._abort.wait())
        try:
            done, _pending = await asyncio.wait(
                {recv_future, abort_future},
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for future in (recv_future, abort_future):
                if not future.done():
                    future.cancel()

        if recv_future in done:
            return recv_future.result()
        raise TransportError("Connection torn down", endpoint=self.endpoint, operation="recv")

    def _drop_connection(self, trigger: str) -> None:
        if self.state is LinkState.CONNECTED:
            self._set_state(LinkState.DISCONNECTED, trigger=trigger)
        self._abort.set()

    async def _pause(self, delay: float) -> None:
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop.wait(), timeout=delay)

    def _set_state(self, new_state: LinkState, trigger: str) -> None:
        if new_state is self.state:
            return
        old_state = self.state
        self.state = new_state

        if new_state is LinkState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()

        log_state_transition(
            logger,
            subject_id=self.endpoint,
            from_state=old_state.value,
            to_state=new_state.value,
            trigger=trigger
        )
