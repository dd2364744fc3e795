"""
Client session error classifications.

These stay inside the relay: a session error affects only the session
that raised it.
"""

from typing import Optional


class SessionError(Exception):
    """Base class for client session failures."""

    def __init__(self, message: str, session_id: Optional[str] = None):
        super().__init__(message)
        self.session_id = session_id


class QueueOverflowError(SessionError):
    """Outbound queue is full and the overflow policy rejects the message."""

    def __init__(self, message: str, session_id: Optional[str] = None,
                 capacity: Optional[int] = None):
        super().__init__(message, session_id=session_id)
        self.capacity = capacity


class SessionStateError(SessionError):
    """Illegal session lifecycle transition."""

    def __init__(self, message: str, session_id: Optional[str] = None,
                 current_state: Optional[str] = None,
                 attempted_state: Optional[str] = None):
        super().__init__(message, session_id=session_id)
        self.current_state = current_state
        self.attempted_state = attempted_state
