"""
Client session lifecycle states.

    CONNECTING -> ACTIVE -> CLOSING -> CLOSED

CLOSING may also be entered straight from CONNECTING (a client that drops
before its first push). CLOSED is terminal and is only reachable through
CLOSING.
"""

from enum import Enum


class SessionState(str, Enum):
    """Lifecycle state of a client session."""
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class OverflowPolicy(str, Enum):
    """What a full outbound queue does with a new message."""
    DROP_OLDEST = "drop_oldest"
    DISCONNECT = "disconnect"


VALID_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.CONNECTING: frozenset({SessionState.ACTIVE, SessionState.CLOSING}),
    SessionState.ACTIVE: frozenset({SessionState.CLOSING}),
    SessionState.CLOSING: frozenset({SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
}


def is_valid_transition(from_state: SessionState, to_state: SessionState) -> bool:
    """True if a session may move from from_state to to_state."""
    return to_state in VALID_TRANSITIONS[from_state]
