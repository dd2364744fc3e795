"""
Registry of live client sessions.

The registry owns session creation and removal. Closing a session always
goes CLOSING -> unregister -> CLOSED, and every operation is idempotent so
the gateway, the broadcaster and shutdown can all close the same session
without coordinating.
"""

import asyncio
import uuid
from typing import Callable, Optional

import structlog

from .models import OverflowPolicy, SessionState
from .session import ClientSession

logger = structlog.get_logger(__name__)


class ClientRegistry:
    """Tracks connected client sessions and their outbound queues."""

    def __init__(
        self,
        queue_capacity: int = 256,
        overflow_policy: str = OverflowPolicy.DROP_OLDEST.value,
    ) -> None:
        self.queue_capacity = queue_capacity
        self.overflow_policy = OverflowPolicy(overflow_policy)
        self._sessions: dict[str, ClientSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def register(self) -> ClientSession:
        """
        Create a session with an empty bounded queue.

        Returns:
            The new session, in CONNECTING state
        """
        session_id = uuid.uuid4().hex
        session = ClientSession(
            session_id,
            capacity=self.queue_capacity,
            overflow_policy=self.overflow_policy,
        )
        self._sessions[session_id] = session

        logger.info(
            "Client session registered",
            session_id=session_id,
            capacity=self.queue_capacity,
            active_sessions=len(self._sessions)
        )
        return session

    def get(self, session_id: str) -> Optional[ClientSession]:
        """Look up a live session."""
        return self._sessions.get(session_id)

    def unregister(self, session_id: str) -> bool:
        """
        Remove a session from the registry.

        Unregistering an unknown or already removed session is a no-op.

        Returns:
            True if a session was removed
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        logger.info(
            "Client session unregistered",
            session_id=session_id,
            active_sessions=len(self._sessions),
            delivered=session.delivered,
            dropped=session.dropped
        )
        return True

    def close(self, session_id: str, reason: str = "client_disconnected") -> bool:
        """
        Close a session: CLOSING, unregister, CLOSED.

        Returns:
            True if this call closed the session
        """
        session = self._sessions.get(session_id)
        if session is None or not session.is_open:
            return False

        session.begin_close(reason)
        self.unregister(session_id)
        session.mark_closed()
        return True

    def close_all(self, reason: str = "shutdown") -> int:
        """Close every live session; returns how many were closed."""
        closed = 0
        for session in self.sessions():
            if self.close(session.session_id, reason):
                closed += 1
        return closed

    def for_each(self, fn: Callable[[ClientSession], None]) -> None:
        """
        Call fn with each live session.

        Iterates over a copy, so fn may register or close sessions; sessions
        added during the call are not visited.
        """
        for session in list(self._sessions.values()):
            if session.state is SessionState.CLOSED:
                continue
            fn(session)

    def sessions(self) -> list[ClientSession]:
        """Snapshot list of live sessions."""
        return list(self._sessions.values())

    async def drain(self, timeout: float, poll_interval: float = 0.01) -> bool:
        """
        Wait until every session's queue has been written out.

        Args:
            timeout: Maximum seconds to wait
            poll_interval: Seconds between checks

        Returns:
            True if all queues drained in time
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            pending = sum(s.pending for s in self.sessions())
            if pending == 0:
                return True
            if loop.time() >= deadline:
                logger.warning(
                    "Session queues not drained before deadline",
                    pending_messages=pending,
                    active_sessions=len(self._sessions)
                )
                return False
            await asyncio.sleep(poll_interval)
