"""In-memory implementation of the session store."""

from __future__ import annotations

from typing import Optional

from ..models import SessionState
from .store import SessionStore


class InMemorySessionStore(SessionStore):
    """Store the session snapshot in local memory.

    Useful for tests or when no store is configured. The snapshot is kept
    serialized so callers never share mutable state with the store, and it
    does not survive process restarts.
    """

    def __init__(self) -> None:
        self._snapshot: Optional[str] = None
        self.saves = 0

    async def save(self, state: SessionState) -> None:
        self._snapshot = state.to_json()
        self.saves += 1

    async def load(self) -> SessionState | None:
        if self._snapshot is None:
            return None
        return SessionState.from_json(self._snapshot)

    async def clear(self) -> None:
        self._snapshot = None
