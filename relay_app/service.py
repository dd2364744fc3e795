"""
Relay service coordinator.

Wires the relay together and owns its background tasks:

    UpstreamLink -> dispatcher -> StateStore -> Broadcaster -> sessions
    client -> gateway -> CommandRouter -> UpstreamLink

The dispatcher is the single consumer of upstream documents, so every
session sees snapshots in the order the link received them.
"""

import asyncio
import contextlib
from typing import Any, Mapping, Optional

import structlog

from .commands.router import CommandRouter
from .config.defaults import HistoryParams, RelayConfig, get_default_config
from .delivery.broadcaster import Broadcaster
from .errors import ConfigurationError, MalformedMessageError
from .history.provider import HistoryProvider, StaticHistoryProvider
from .history.sqlite_store import SqliteHistoryProvider
from .models.codec import is_snapshot_document, snapshot_from_dict
from .models.commands import Command, CommandAck
from .models.history import TradeRecord
from .models.market import MarketSnapshot
from .sessions.registry import ClientRegistry
from .sessions.session import ClientSession
from .state.store import StateStore
from .upstream.backoff import ExponentialBackoff
from .upstream.link import UpstreamLink
from .upstream.simulated import SimulatedTransport
from .upstream.transport import UpstreamTransport
from .upstream.zmq_transport import ZmqTransport

logger = structlog.get_logger(__name__)


def build_transport(config: RelayConfig) -> UpstreamTransport:
    """Create the upstream transport selected by ``upstream.mode``."""
    mode = config.upstream.mode
    if mode == "zmq":
        return ZmqTransport(
            config.upstream.endpoint,
            connect_timeout=config.upstream.connect_timeout_s,
        )
    if mode == "simulated":
        return SimulatedTransport(config.simulation)
    raise ConfigurationError(f"Unknown upstream mode: {mode!r}")


def build_history_provider(params: HistoryParams) -> HistoryProvider:
    """Create the trade history source selected by ``history.source``."""
    if params.source == "static":
        return StaticHistoryProvider()
    if params.source == "sqlite":
        return SqliteHistoryProvider(params.db_path)
    raise ConfigurationError(f"Unknown history source: {params.source!r}")


class RelayService:
    """Owns the relay components and their lifecycle."""

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        transport: Optional[UpstreamTransport] = None,
        history: Optional[HistoryProvider] = None,
    ) -> None:
        self.config = config or get_default_config()

        self.store = StateStore(MarketSnapshot.empty(self.config.simulation.symbol))
        self.registry = ClientRegistry(
            queue_capacity=self.config.sessions.queue_capacity,
            overflow_policy=self.config.sessions.overflow_policy,
        )
        self.broadcaster = Broadcaster(self.registry)
        self.link = UpstreamLink(
            transport or build_transport(self.config),
            backoff=ExponentialBackoff.from_params(self.config.backoff),
            send_timeout=self.config.upstream.send_timeout_s,
            inbound_queue_size=self.config.upstream.inbound_queue_size,
        )
        self.router = CommandRouter(self.link, allowed=self.config.commands.allowed)
        self.history = history or build_history_provider(self.config.history)

        self.accepting = False
        self._dispatch_task: Optional[asyncio.Task] = None
        self._started = False
        self._stopped = False

        logger.info(
            "Relay service initialized",
            upstream=self.link.endpoint,
            queue_capacity=self.config.sessions.queue_capacity,
            overflow_policy=self.config.sessions.overflow_policy
        )

    async def start(self) -> None:
        """Start the upstream link and dispatcher, then accept sessions."""
        if self._started:
            return
        self._started = True

        self.link.start()
        self._dispatch_task = asyncio.create_task(self._dispatch_loop(), name="upstream-dispatch")
        self.accepting = True

        logger.info("Relay service started")

    async def stop(self, grace: Optional[float] = None) -> None:
        """
        Shut down in order within a bounded grace period.

        1. stop accepting new sessions
        2. close the upstream link
        3. let session writers flush their queues
        4. close every session
        """
        if self._stopped:
            return
        self._stopped = True

        grace = self.config.shutdown.grace_seconds if grace is None else grace
        loop = asyncio.get_running_loop()
        deadline = loop.time() + grace

        logger.info("Relay shutting down", grace_seconds=grace, sessions=len(self.registry))

        self.accepting = False

        await self.link.close(timeout=max(0.0, deadline - loop.time()))

        if self._dispatch_task is not None:
            self._dispatch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._dispatch_task
            self._dispatch_task = None

        drained = await self.registry.drain(timeout=max(0.0, deadline - loop.time()))
        closed = self.registry.close_all(reason="shutdown")

        logger.info("Relay service stopped", drained=drained, sessions_closed=closed)

    def handle_upstream_message(self, document: dict[str, Any]) -> Optional[MarketSnapshot]:
        """
        Apply one upstream document.

        Snapshot-shaped documents replace the current snapshot and are
        broadcast. Other shapes are reserved and ignored.

        Returns:
            The applied snapshot, or None if the document was not applied
        """
        if not is_snapshot_document(document):
            logger.debug("Ignoring non-snapshot upstream message", keys=sorted(document))
            return None

        try:
            snapshot = snapshot_from_dict(document)
        except MalformedMessageError as e:
            self.link.malformed_count += 1
            logger.warning(
                "Dropped malformed snapshot",
                error=str(e),
                raw_data=e.raw_data
            )
            return None

        self.store.update(snapshot)
        self.broadcaster.broadcast(snapshot)
        return snapshot

    def open_session(self) -> ClientSession:
        """
        Register a client session and queue the current snapshot for it.

        The snapshot is queued in the same step as registration, so no
        broadcast can slip in ahead of it.
        """
        session = self.registry.register()
        self.broadcaster.send_snapshot(session.session_id, self.store.current())
        session.activate()
        return session

    def close_session(self, session_id: str, reason: str = "client_disconnected") -> None:
        """Close a client session; safe to call repeatedly."""
        self.registry.close(session_id, reason=reason)

    async def submit_command(
        self,
        name: Any,
        params: Optional[Mapping[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> CommandAck:
        """
        Build a command and route it upstream.

        Raises:
            InvalidCommandError: If the command is missing or unknown
            UpstreamUnavailableError: If the upstream link is down
        """
        command = Command(
            name=name if isinstance(name, str) else "",
            params=params if isinstance(params, Mapping) else {},
            session_id=session_id,
        )
        return await self.router.handle(command)

    async def fetch_history(self, symbol: Optional[str] = None) -> list[TradeRecord]:
        """Query the history provider off the event loop."""
        return await asyncio.to_thread(self.history.fetch, symbol, self.config.history.limit)

    def health(self) -> dict[str, Any]:
        """Relay status for the health endpoint."""
        snapshot = self.store.current()
        age = self.store.age_seconds()
        return {
            "accepting": self.accepting,
            "upstream": self.link.stats(),
            "sessions": len(self.registry),
            "snapshot": {
                "symbol": snapshot.symbol,
                "sequence": self.store.sequence,
                "age_seconds": round(age, 3) if age is not None else None,
            },
            "delivery": self.broadcaster.get_stats(),
        }

    async def _dispatch_loop(self) -> None:
        async for document in self.link.messages():
            try:
                self.handle_upstream_message(document)
            except Exception as e:
                logger.error(
                    "Unexpected error applying upstream message",
                    error=str(e),
                    error_type=type(e).__name__
                )
