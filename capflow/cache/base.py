"""Plan cache abstraction."""

from __future__ import annotations

import hashlib
from typing import Protocol

from ..constants import CACHE_KEY_PREFIX
from ..contracts import Plan


class CacheWriteError(OSError):
    """Raised when a compiled plan could not be persisted."""


def plan_cache_key(document: str) -> str:
    """Content hash of a source document, stable across processes."""
    digest = hashlib.sha256(document.encode("utf-8")).hexdigest()
    return f"{CACHE_KEY_PREFIX}{digest}"


def source_name(url: str) -> str:
    """File name used to cache a remote source document fetched from ``url``."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


class PlanCache(Protocol):
    """Protocol for content-addressed compiled plan storage."""

    def key_for(self, document: str) -> str:
        """Return the cache key for ``document``."""

    def get(self, key: str) -> Plan | None:
        """Return the stored plan or ``None``. Never raises for missing keys."""

    def put(self, key: str, plan: Plan) -> None:
        """Store ``plan`` under ``key``, raising ``CacheWriteError`` on failure."""

    def delete(self, key: str) -> None:
        """Remove an entry if present."""

    def keys(self) -> list[str]:
        """Return all stored keys."""

    def get_source(self, url: str) -> str | None:
        """Return a cached source document fetched from ``url``."""

    def put_source(self, url: str, text: str) -> None:
        """Cache a source document fetched from ``url``."""
