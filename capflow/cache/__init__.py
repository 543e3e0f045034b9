"""Content-addressed cache of compiled plans."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from ..config import CapflowConfig, load_config
from .base import CacheWriteError, PlanCache, plan_cache_key
from .directory import DirectoryPlanCache
from .inmemory import InMemoryPlanCache

_cache_instance: PlanCache | None = None


def get_plan_cache(
    directory: Optional[str | Path] = None, config: Optional[CapflowConfig] = None
) -> PlanCache:
    """Factory function to obtain the plan cache.

    An explicit ``directory`` always selects a :class:`DirectoryPlanCache`.
    Otherwise the backend comes from ``config`` (loaded when omitted), with
    ``CAPFLOW_CACHE_DIR`` overriding the configured directory. Without
    arguments the previously created instance is reused.
    """

    global _cache_instance
    if _cache_instance is not None and directory is None and config is None:
        return _cache_instance

    if directory is not None:
        _cache_instance = DirectoryPlanCache(directory)
        return _cache_instance

    config = config or load_config()
    if config.cache.backend == "memory":
        _cache_instance = InMemoryPlanCache()
    else:
        _cache_instance = DirectoryPlanCache(
            os.getenv("CAPFLOW_CACHE_DIR") or config.cache.directory
        )
    return _cache_instance


__all__ = [
    "CacheWriteError",
    "DirectoryPlanCache",
    "InMemoryPlanCache",
    "PlanCache",
    "get_plan_cache",
    "plan_cache_key",
]
