"""
Snapshot broadcast and one-shot replies to client sessions.

Delivery here means "placed on the session's outbound queue"; the
session's writer task owns the socket. Nothing in this module blocks, so a
stalled client can never hold up the upstream receive loop or its peers.
"""

from typing import Any

import structlog

from ..errors import QueueOverflowError, SessionStateError
from ..models.codec import encode_message, history_message, market_data_message
from ..models.history import TradeRecord
from ..models.market import MarketSnapshot
from ..sessions.registry import ClientRegistry
from ..sessions.session import ClientSession

logger = structlog.get_logger(__name__)


class Broadcaster:
    """Pushes snapshots to every session and replies to single sessions."""

    def __init__(self, registry: ClientRegistry) -> None:
        self.registry = registry
        self._broadcast_count = 0
        self._delivery_count = 0
        self._eviction_count = 0
        self._error_count = 0

    def broadcast(self, snapshot: MarketSnapshot) -> int:
        """
        Queue a market_data push on every live session.

        The message is encoded once. A session that cannot accept it is
        closed; the others are unaffected.

        Args:
            snapshot: Snapshot to push

        Returns:
            Number of sessions the push was queued on
        """
        text = encode_message(market_data_message(snapshot))
        failed: list[tuple[str, str]] = []
        delivered = 0

        def offer(session: ClientSession) -> None:
            nonlocal delivered
            outcome = self._offer(session, text)
            if outcome is None:
                delivered += 1
            elif outcome != "closed":
                failed.append((session.session_id, outcome))

        self.registry.for_each(offer)

        for session_id, reason in failed:
            self.registry.close(session_id, reason=reason)

        self._broadcast_count += 1
        self._delivery_count += delivered

        logger.debug(
            "Snapshot broadcast",
            symbol=snapshot.symbol,
            sessions=delivered,
            failed=len(failed)
        )
        return delivered

    def send_snapshot(self, session_id: str, snapshot: MarketSnapshot) -> bool:
        """Queue the current snapshot for one session (initial push)."""
        return self.send(session_id, market_data_message(snapshot))

    def respond_history(self, session_id: str, records: list[TradeRecord]) -> bool:
        """Queue a one-shot history_data response for the requesting session."""
        return self.send(session_id, history_message(records))

    def send(self, session_id: str, message: dict[str, Any]) -> bool:
        """
        Queue a single message for one session.

        Returns:
            True if the message was queued
        """
        session = self.registry.get(session_id)
        if session is None:
            logger.debug("Reply dropped, session not registered", session_id=session_id)
            return False

        outcome = self._offer(session, encode_message(message))
        if outcome is None:
            self._delivery_count += 1
            return True
        if outcome != "closed":
            self.registry.close(session_id, reason=outcome)
        return False

    def _offer(self, session: ClientSession, text: str) -> Any:
        """Enqueue text; returns None on success or a close reason."""
        try:
            if session.enqueue(text) is not None:
                self._eviction_count += 1
            return None
        except QueueOverflowError:
            self._error_count += 1
            logger.warning(
                "Session queue overflow, disconnecting",
                session_id=session.session_id,
                capacity=session.capacity
            )
            return "queue_overflow"
        except SessionStateError:
            # Already closing; its writer is on the way out
            return "closed"
        except Exception as e:
            self._error_count += 1
            logger.error(
                "Failed to queue message for session",
                session_id=session.session_id,
                error=str(e),
                error_type=type(e).__name__
            )
            return "delivery_failed"

    def get_stats(self) -> dict[str, Any]:
        """Get delivery statistics."""
        return {
            "broadcast_count": self._broadcast_count,
            "delivery_count": self._delivery_count,
            "eviction_count": self._eviction_count,
            "error_count": self._error_count,
        }

    def reset_stats(self) -> None:
        """Reset delivery statistics."""
        self._broadcast_count = 0
        self._delivery_count = 0
        self._eviction_count = 0
        self._error_count = 0
