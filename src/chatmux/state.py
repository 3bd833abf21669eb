"""Turn state machine and lock-protected transitions."""

from __future__ import annotations

import asyncio
from enum import Enum


class TurnState(str, Enum):
    """Finite state machine for the in-flight remote call."""

    IDLE = "IDLE"
    IN_FLIGHT = "IN_FLIGHT"
    CANCELLING = "CANCELLING"
    SHUTTING_DOWN = "SHUTTING_DOWN"


class StateManager:
    """Manage turn state transitions with async lock semantics."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = TurnState.IDLE

    @property
    def state(self) -> TurnState:
        """Return the current state without locking (UI read path)."""
        return self._state

    async def get_state(self) -> TurnState:
        """Return the current state under lock."""
        async with self._lock:
            return self._state

    async def transition_to(self, new_state: TurnState) -> TurnState:
        """Transition to a new state and return it.

        ``SHUTTING_DOWN`` is terminal; later transitions are ignored.
        """
        async with self._lock:
            if self._state != TurnState.SHUTTING_DOWN:
                self._state = new_state
            return self._state

    async def transition_if(
        self,
        expected_state: TurnState,
        new_state: TurnState,
    ) -> bool:
        """Transition only when current state matches expected state."""
        async with self._lock:
            if self._state != expected_state:
                return False
            self._state = new_state
            return True

    async def is_in_flight(self) -> bool:
        """Return True while a remote call is outstanding."""
        async with self._lock:
            return self._state in {TurnState.IN_FLIGHT, TurnState.CANCELLING}

    async def is_shutting_down(self) -> bool:
        async with self._lock:
            return self._state == TurnState.SHUTTING_DOWN
