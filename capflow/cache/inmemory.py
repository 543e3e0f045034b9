"""In-memory plan cache."""

from __future__ import annotations

from typing import Dict

from ..contracts import Plan
from .base import PlanCache, plan_cache_key, source_name


class InMemoryPlanCache(PlanCache):
    """Keep compiled plans in local memory.

    Useful for tests or ephemeral processes. Entries are lost on restart.
    """

    def __init__(self) -> None:
        self._plans: Dict[str, Plan] = {}
        self._sources: Dict[str, str] = {}

    def key_for(self, document: str) -> str:
        return plan_cache_key(document)

    def get(self, key: str) -> Plan | None:
        return self._plans.get(key)

    def put(self, key: str, plan: Plan) -> None:
        self._plans[key] = plan

    def delete(self, key: str) -> None:
        self._plans.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._plans)

    def get_source(self, url: str) -> str | None:
        return self._sources.get(source_name(url))

    def put_source(self, url: str, text: str) -> None:
        self._sources[source_name(url)] = text
