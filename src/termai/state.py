"""Session state machine and lock-protected transitions."""

from __future__ import annotations

import asyncio
from enum import Enum


class SessionState(str, Enum):
    """Finite state machine for the chat session lifecycle."""

    IDLE = "IDLE"
    COMPOSING = "COMPOSING"
    STREAMING = "STREAMING"
    ERROR = "ERROR"


# States that accept a new message submission.
SUBMITTABLE_STATES: frozenset[SessionState] = frozenset(
    {SessionState.IDLE, SessionState.COMPOSING, SessionState.ERROR}
)


class StateManager:
    """Manage state transitions with async lock semantics."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        """Return the current state without taking the lock."""
        return self._state

    async def transition_to(self, new_state: SessionState) -> SessionState:
        """Transition to a new state and return it."""
        async with self._lock:
            self._state = new_state
            return self._state

    async def begin_streaming(self) -> bool:
        """Atomically enter STREAMING from any state that accepts submissions."""
        async with self._lock:
            if self._state not in SUBMITTABLE_STATES:
                return False
            self._state = SessionState.STREAMING
            return True

