"""PostgreSQL implementation of the session store."""

from __future__ import annotations

import logging

import asyncpg
from pydantic import ValidationError

from ..models import SessionState
from .store import SessionStore

logger = logging.getLogger(__name__)

_SLOT = "current"


class PostgresSessionStore(SessionStore):
    """Persist the session snapshot using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS session_snapshot (
                slot TEXT PRIMARY KEY,
                state JSONB NOT NULL,
                saved_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )

    # ------------------------------------------------------------------
    async def save(self, state: SessionState) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO session_snapshot (slot, state, saved_at) VALUES ($1, $2, now())
                ON CONFLICT (slot) DO UPDATE SET state = EXCLUDED.state, saved_at = now()
                """,
                _SLOT,
                state.to_json(),
            )
        finally:
            await conn.close()

    async def load(self) -> SessionState | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT state::text AS state FROM session_snapshot WHERE slot = $1",
                _SLOT,
            )
        finally:
            await conn.close()
        if not row:
            return None
        try:
            return SessionState.from_json(row["state"])
        except ValidationError as exc:
            logger.warning(f"Discarding unreadable session snapshot: {exc}")
            return None

    async def clear(self) -> None:
        conn = await self._connect()
        try:
            await conn.execute("DELETE FROM session_snapshot WHERE slot = $1", _SLOT)
        finally:
            await conn.close()
