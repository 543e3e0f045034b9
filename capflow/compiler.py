"""Compile workflow documents into executable plans."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .backends import BackendError, NormalizationBackend, get_backend
from .cache import CacheWriteError, PlanCache, get_plan_cache
from .config import CapflowConfig, load_config
from .constants import DEFAULT_BACKOFF_BASE, DEFAULT_BACKOFF_JITTER, DEFAULT_MAX_ATTEMPTS
from .contracts import CandidatePlan, Plan
from .utils import retry
from .validation import StructuralDefect, find_defects, repair_plan

logger = logging.getLogger(__name__)


class CompileError(Exception):
    """Base class for compilation failures."""


class BackendCompileError(CompileError):
    """The normalization backend failed or kept rate limiting."""

    def __init__(self, message: str, cause: BackendError, attempts: int = 1) -> None:
        super().__init__(message)
        self.cause = cause
        self.attempts = attempts


class UnrecoverablePlanError(CompileError):
    """The candidate plan has a defect that cannot be repaired."""

    def __init__(self, defect: StructuralDefect) -> None:
        super().__init__(defect.describe())
        self.defect = defect


class CompileReport(BaseModel):
    """Result of a compilation with diagnostics."""

    plan: Plan
    key: str
    cache_hit: bool = False
    corrections: List[StructuralDefect] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class PlanCompiler:
    """Turns raw documents into cached, repaired plans.

    Concurrent compilations of the same document share a single backend
    call; the first caller's task is awaited by the others.
    """

    def __init__(
        self,
        backend: NormalizationBackend,
        cache: PlanCache,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        backoff_jitter: float = DEFAULT_BACKOFF_JITTER,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._backend = backend
        self._cache = cache
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_jitter = backoff_jitter
        self._inflight: Dict[str, asyncio.Task[CompileReport]] = {}

    @classmethod
    def from_config(cls, config: Optional[CapflowConfig] = None) -> "PlanCompiler":
        config = config or load_config()
        return cls(
            backend=get_backend(config),
            cache=get_plan_cache(config=config),
            max_attempts=config.retry.max_attempts,
            backoff_base=config.retry.backoff_base,
            backoff_jitter=config.retry.backoff_jitter,
        )

    @property
    def cache(self) -> PlanCache:
        return self._cache

    async def compile(self, document: str) -> Plan:
        """Return an executable plan for ``document``.

        Raises:
            BackendCompileError: If normalization failed.
            UnrecoverablePlanError: If the normalized plan cannot be executed.
        """
        report = await self.compile_with_report(document)
        return report.plan

    async def compile_with_report(self, document: str) -> CompileReport:
        key = self._cache.key_for(document)
        cached = self._cache.get(key)
        if cached is not None:
            logger.info(f"Using cached plan {key} with {len(cached.steps)} steps")
            return CompileReport(plan=cached, key=key, cache_hit=True)

        task = self._inflight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(self._compile_uncached(key, document))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            logger.debug(f"Joining in-flight compilation of {key}")
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[CompileReport]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Every waiter may have been cancelled; consume the result so a
        # failure is not reported as never retrieved.
        if not task.cancelled():
            task.exception()

    async def _compile_uncached(self, key: str, document: str) -> CompileReport:
        logger.info(f"Compiling {len(document)} characters into plan {key}")
        candidate = await self._normalize(document)
        plan = candidate.rekey(key)

        for defect in find_defects(plan):
            if not defect.recoverable:
                logger.error(f"Rejecting plan {key}: {defect.describe()}")
                raise UnrecoverablePlanError(defect)
            logger.info(f"Plan {key} needs repair: {defect.describe()}")

        repaired = repair_plan(plan)
        report = CompileReport(
            plan=repaired.plan, key=key, corrections=repaired.corrections
        )

        try:
            self._cache.put(key, repaired.plan)
        except CacheWriteError as exc:
            logger.warning(f"Plan {key} compiled but not cached: {exc}")
            report.warnings.append(str(exc))

        logger.info(
            f"Compiled plan {key} ({repaired.plan.plan_id or 'unnamed'}) with "
            f"{len(repaired.plan.steps)} steps and {len(repaired.corrections)} corrections"
        )
        return report

    async def _normalize(self, document: str) -> CandidatePlan:
        attempt = 1
        while True:
            try:
                return await self._backend.normalize(document)
            except BackendError as exc:
                if not exc.retryable or attempt >= self.max_attempts:
                    logger.error(
                        f"Normalization failed after {attempt} attempt(s): {exc}"
                    )
                    raise BackendCompileError(
                        f"Normalization backend failed: {exc}", cause=exc, attempts=attempt
                    ) from exc
                logger.warning(
                    f"Normalization attempt {attempt}/{self.max_attempts} was rate limited; retrying"
                )
                await retry.schedule_retry(
                    attempt, base=self.backoff_base, jitter=self.backoff_jitter
                )
                attempt += 1
