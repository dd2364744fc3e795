"""
Single-writer holder of the current market snapshot.

The upstream dispatcher is the only writer. Readers (gateway queries, new
sessions, the broadcaster) get the snapshot object itself; since snapshots
are immutable and replaced by a single reference assignment, a reader can
never observe a half-applied update and no lock is shared with I/O.
"""

from datetime import datetime
from typing import Optional

import structlog

from ..models.market import MarketSnapshot
from ..utils.time import utc_now

logger = structlog.get_logger(__name__)


class StateStore:
    """Holds the one current MarketSnapshot, last writer wins."""

    def __init__(self, initial: Optional[MarketSnapshot] = None) -> None:
        self._current = initial if initial is not None else MarketSnapshot.empty()
        self._sequence = 0
        self._updated_at: Optional[datetime] = None

    def current(self) -> MarketSnapshot:
        """Return the current snapshot; the zero state before any update."""
        return self._current

    def update(self, snapshot: MarketSnapshot) -> MarketSnapshot:
        """
        Replace the current snapshot.

        Args:
            snapshot: New snapshot, applied as a whole

        Returns:
            The snapshot that was current before this update
        """
        previous = self._current
        self._current = snapshot
        self._sequence += 1
        self._updated_at = utc_now()

        logger.debug(
            "Snapshot updated",
            symbol=snapshot.symbol,
            bid=str(snapshot.bid),
            ask=str(snapshot.ask),
            sequence=self._sequence
        )

        return previous

    @property
    def sequence(self) -> int:
        """Number of updates applied since startup."""
        return self._sequence

    @property
    def updated_at(self) -> Optional[datetime]:
        """Wall-clock time of the last update, None before the first."""
        return self._updated_at

    def age_seconds(self) -> Optional[float]:
        """Seconds since the last update, None before the first."""
        if self._updated_at is None:
            return None
        return (utc_now() - self._updated_at).total_seconds()
