"""
A single client session and its bounded outbound queue.

Producers (the broadcaster) only ever call ``enqueue``, which never blocks.
The session's own writer task is the only consumer and is the only place
that waits on the queue.
"""

import asyncio
from datetime import datetime
from typing import Optional

from ..errors import QueueOverflowError, SessionStateError
from ..logging.config import get_session_logger, log_state_transition
from ..utils.time import utc_now
from .models import OverflowPolicy, SessionState, is_valid_transition

logger = get_session_logger(__name__)

# Queued after the last message to stop the writer task
_CLOSE = object()


class ClientSession:
    """One connected client: identity, lifecycle state and outbound queue."""

    def __init__(
        self,
        session_id: str,
        capacity: int = 256,
        overflow_policy: OverflowPolicy = OverflowPolicy.DROP_OLDEST,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"queue capacity must be positive, got {capacity}")

        self.session_id = session_id
        self.capacity = capacity
        self.overflow_policy = OverflowPolicy(overflow_policy)
        self.state = SessionState.CONNECTING
        self.created_at: datetime = utc_now()
        self.close_reason: Optional[str] = None

        self.enqueued = 0
        self.delivered = 0
        self.dropped = 0

        # One extra slot so the close marker always fits
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity + 1)

    @property
    def pending(self) -> int:
        """Messages waiting to be written; always 0 once closing."""
        return self._queue.qsize() if self.is_open else 0

    @property
    def is_open(self) -> bool:
        return self.state in (SessionState.CONNECTING, SessionState.ACTIVE)

    def enqueue(self, message: str) -> Optional[str]:
        """
        Queue a message for this client without blocking.

        When the queue is full the overflow policy decides: ``drop_oldest``
        evicts the longest-queued message to admit the new one,
        ``disconnect`` raises QueueOverflowError.

        Args:
            message: Encoded message text

        Returns:
            The evicted message, or None if nothing was evicted

        Raises:
            SessionStateError: If the session is closing or closed
            QueueOverflowError: If the queue is full under ``disconnect``
        """
        if not self.is_open:
            raise SessionStateError(
                "Session is not accepting messages",
                session_id=self.session_id,
                current_state=self.state.value
            )

        evicted = None
        if self._queue.qsize() >= self.capacity:
            if self.overflow_policy is OverflowPolicy.DISCONNECT:
                raise QueueOverflowError(
                    "Outbound queue is full",
                    session_id=self.session_id,
                    capacity=self.capacity
                )
            evicted = self._queue.get_nowait()
            self.dropped += 1
            logger.debug(
                "Evicted oldest queued message",
                session_id=self.session_id,
                capacity=self.capacity,
                dropped=self.dropped
            )

        self._queue.put_nowait(message)
        self.enqueued += 1
        return evicted

    async def next_message(self) -> Optional[str]:
        """
        Wait for the next outbound message.

        Returns:
            Message text, or None once the session has been closed
        """
        item = await self._queue.get()
        if item is _CLOSE:
            return None
        self.delivered += 1
        return item

    def activate(self) -> None:
        """Mark the session as receiving pushes."""
        self.transition(SessionState.ACTIVE, trigger="initial_snapshot_queued")

    def begin_close(self, reason: str) -> int:
        """
        Enter CLOSING: abandon queued messages and wake the writer.

        Args:
            reason: Why the session is closing

        Returns:
            Number of queued messages abandoned
        """
        self.close_reason = reason
        self.transition(SessionState.CLOSING, trigger=reason)

        abandoned = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            abandoned += 1
        self._queue.put_nowait(_CLOSE)

        if abandoned:
            logger.info(
                "Abandoned queued messages on close",
                session_id=self.session_id,
                abandoned=abandoned,
                reason=reason
            )
        return abandoned

    def mark_closed(self) -> None:
        """Enter the terminal CLOSED state."""
        self.transition(SessionState.CLOSED, trigger=self.close_reason or "closed")

    def transition(self, new_state: SessionState, trigger: str) -> None:
        """
        Move to a new lifecycle state.

        Raises:
            SessionStateError: If the transition is not allowed
        """
        if not is_valid_transition(self.state, new_state):
            raise SessionStateError(
                f"Invalid session transition {self.state.value} -> {new_state.value}",
                session_id=self.session_id,
                current_state=self.state.value,
                attempted_state=new_state.value
            )

        old_state = self.state
        self.state = new_state
        log_state_transition(
            logger,
            subject_id=self.session_id,
            from_state=old_state.value,
            to_state=new_state.value,
            trigger=trigger
        )

    def stats(self) -> dict:
        """Per-session delivery counters."""
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "pending": self.pending,
            "enqueued": self.enqueued,
            "delivered": self.delivered,
            "dropped": self.dropped,
        }
