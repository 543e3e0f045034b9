"""Session store abstraction for snapshot persistence."""

from __future__ import annotations

from typing import Protocol

from ..models import SessionState


class SessionStore(Protocol):
    """Protocol for single-slot session snapshot backends."""

    async def save(self, state: SessionState) -> None:
        """Persist ``state``, replacing any previous snapshot."""

    async def load(self) -> SessionState | None:
        """Return the last snapshot, or ``None`` if there is none."""

    async def clear(self) -> None:
        """Delete the snapshot."""
