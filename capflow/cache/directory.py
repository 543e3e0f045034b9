"""Filesystem plan cache storing one JSON document per key."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from ..contracts import Plan
from ..utils.files import atomic_write_text
from .base import CacheWriteError, PlanCache, plan_cache_key, source_name

logger = logging.getLogger(__name__)


class DirectoryPlanCache(PlanCache):
    """Persist compiled plans as ``<directory>/<key>.json``.

    Remote source documents are kept under ``<directory>/sources`` so a
    workflow fetched once can be compiled again offline.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _plan_path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _source_path(self, url: str) -> Path:
        return self.directory / "sources" / source_name(url)

    def key_for(self, document: str) -> str:
        return plan_cache_key(document)

    def get(self, key: str) -> Plan | None:
        path = self._plan_path(key)
        if not path.is_file():
            return None
        try:
            return Plan.from_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning(f"Ignoring unreadable cache entry {path}: {exc}")
            return None

    def put(self, key: str, plan: Plan) -> None:
        try:
            atomic_write_text(self._plan_path(key), plan.to_json())
        except OSError as exc:
            raise CacheWriteError(f"Failed to cache plan {key}: {exc}") from exc
        logger.debug(f"Cached plan {key} in {self.directory}")

    def delete(self, key: str) -> None:
        self._plan_path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))

    def get_source(self, url: str) -> str | None:
        path = self._source_path(url)
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(f"Ignoring unreadable cached source {path}: {exc}")
            return None

    def put_source(self, url: str, text: str) -> None:
        try:
            atomic_write_text(self._source_path(url), text)
        except OSError as exc:
            raise CacheWriteError(f"Failed to cache source {url}: {exc}") from exc
