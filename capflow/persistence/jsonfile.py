"""JSON file implementation of the session store."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from ..models import SessionState
from ..utils.files import atomic_write_text
from .store import SessionStore

logger = logging.getLogger(__name__)


class JSONFileSessionStore(SessionStore):
    """Persist the session snapshot as a single JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> str | None:
        if not self.path.is_file():
            return None
        return self.path.read_text(encoding="utf-8")

    async def save(self, state: SessionState) -> None:
        await asyncio.to_thread(atomic_write_text, self.path, state.to_json())

    async def load(self) -> SessionState | None:
        try:
            raw = await asyncio.to_thread(self._read)
            if not raw:
                return None
            return SessionState.from_json(raw)
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning(f"Discarding unreadable session snapshot {self.path}: {exc}")
            return None

    async def clear(self) -> None:
        await asyncio.to_thread(self.path.unlink, True)
