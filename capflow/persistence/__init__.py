"""Persistence layer for capture session snapshots."""

from __future__ import annotations

import os
from typing import Optional

from ..config import CapflowConfig, load_config
from .inmemory import InMemorySessionStore
from .jsonfile import JSONFileSessionStore
from .sqlite import SQLiteSessionStore
from .store import SessionStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresSessionStore
except ImportError:  # pragma: no cover - optional dependency
    PostgresSessionStore = None  # type: ignore

_store_instance: SessionStore | None = None


def get_session_store(
    url: Optional[str] = None, config: Optional[CapflowConfig] = None
) -> SessionStore:
    """Factory function to obtain the session store.

    The backend is selected from ``url`` which can be provided explicitly,
    via environment variable ``CAPFLOW_SESSION_STORE_URL``, or from loaded
    configuration. Supported schemes are ``file://``, ``sqlite://`` and
    ``postgres://``/``postgresql://``. When nothing is configured, an
    in-memory store is returned.
    """

    global _store_instance
    if _store_instance is not None and url is None and config is None:
        return _store_instance

    config = config or load_config()
    url = (
        url
        or os.getenv("CAPFLOW_SESSION_STORE_URL")
        or getattr(config, "session_store_url", None)
    )

    if not url:
        _store_instance = InMemorySessionStore()
        return _store_instance

    if url.startswith("file://"):
        _store_instance = JSONFileSessionStore(url.replace("file://", "", 1))
    elif url.startswith("sqlite://"):
        _store_instance = SQLiteSessionStore(url.replace("sqlite://", "", 1))
    elif url.startswith("postgres://") or url.startswith("postgresql://"):
        if PostgresSessionStore is None:
            raise RuntimeError("Postgres support not available")
        _store_instance = PostgresSessionStore(url)
    else:
        raise ValueError(f"Unsupported session store backend: {url}")

    return _store_instance


__all__ = [
    "InMemorySessionStore",
    "JSONFileSessionStore",
    "PostgresSessionStore",
    "SQLiteSessionStore",
    "SessionStore",
    "get_session_store",
]
