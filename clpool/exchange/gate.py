"""
Reentrancy gate for pool entry points.

States: ``UNLOCKED -> LOCKED -> UNLOCKED``. Entering while locked raises
``Reentrant``; leaving always unlocks, including when the guarded body raises.
"""

from __future__ import annotations

from enum import Enum

from ..exceptions import Reentrant


class GateState(Enum):
    UNLOCKED = "unlocked"
    LOCKED = "locked"


class ReentrancyGate:

    def __init__(self) -> None:
        self._state = GateState.UNLOCKED

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def locked(self) -> bool:
        return self._state is GateState.LOCKED

    def acquire(self) -> None:
        if self._state is GateState.LOCKED:
            raise Reentrant("Reentrancy detected - pool is locked")
        self._state = GateState.LOCKED

    def release(self) -> None:
        self._state = GateState.UNLOCKED

    def __enter__(self) -> "ReentrancyGate":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
