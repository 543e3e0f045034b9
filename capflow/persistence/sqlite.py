"""SQLite implementation of the session store."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..models import SessionState
from .store import SessionStore

logger = logging.getLogger(__name__)

_SLOT = "current"


class SQLiteSessionStore(SessionStore):
    """Persist the session snapshot using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS session_snapshot (
                slot TEXT PRIMARY KEY,
                state TEXT NOT NULL,
                saved_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Store API
    async def save(self, state: SessionState) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO session_snapshot (slot, state, saved_at) VALUES (?, ?, ?)
            ON CONFLICT(slot) DO UPDATE SET state = excluded.state, saved_at = excluded.saved_at
            """,
            _SLOT,
            state.to_json(),
            datetime.now(timezone.utc).isoformat(),
        )

    async def load(self) -> SessionState | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT state FROM session_snapshot WHERE slot = ?",
            _SLOT,
        )
        if not row:
            return None
        try:
            return SessionState.from_json(row["state"])
        except ValidationError as exc:
            logger.warning(f"Discarding unreadable session snapshot in {self.db_path}: {exc}")
            return None

    async def clear(self) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM session_snapshot WHERE slot = ?", _SLOT
        )
