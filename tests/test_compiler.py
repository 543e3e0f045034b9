"""Plan compiler tests."""

import asyncio
import gc

import pytest

from capflow.backends import BackendTransportError, MalformedResponseError, RateLimitedError
from capflow.cache import CacheWriteError, InMemoryPlanCache
from capflow.compiler import (
    BackendCompileError,
    PlanCompiler,
    UnrecoverablePlanError,
)
from capflow.contracts import CandidatePlan, TransitionCondition
from capflow.validation import DefectKind, validate

DOCUMENT = """
name: Home inspection
steps:
  - exterior: photograph the front of the house
  - roof: photograph the roof, skip if unsafe
"""


@pytest.fixture
def no_sleep(monkeypatch):
    delays = []

    async def fake_schedule_retry(attempt, base=1.5, jitter=0.5):
        delays.append(attempt)
        return 0.0

    monkeypatch.setattr("capflow.utils.retry.schedule_retry", fake_schedule_retry)
    return delays


@pytest.fixture
def candidate(make_candidate, make_step) -> CandidatePlan:
    return make_candidate(
        make_step("exterior", [("onSuccess", "roof"), ("onSkip", "workflow_complete")]),
        make_step("roof", [("onSuccess", "workflow_complete")]),
        plan_id="home_inspection_v1",
    )


@pytest.mark.asyncio
async def test_compile_is_idempotent_per_document(fake_backend, candidate):
    backend = fake_backend(candidate)
    cache = InMemoryPlanCache()
    compiler = PlanCompiler(backend, cache)

    first = await compiler.compile(DOCUMENT)
    second = await compiler.compile(DOCUMENT)

    assert backend.calls == 1
    assert first == second
    assert first.id == cache.key_for(DOCUMENT)
    assert first.plan_id == "home_inspection_v1"
    assert cache.get(first.id) == first


@pytest.mark.asyncio
async def test_compile_repairs_candidate_and_reports_corrections(fake_backend, candidate):
    compiler = PlanCompiler(fake_backend(candidate), InMemoryPlanCache())

    report = await compiler.compile_with_report(DOCUMENT)

    assert not report.cache_hit
    validate(report.plan)
    exterior, roof = report.plan.steps
    assert [(t.when, t.to) for t in exterior.transitions] == [
        (TransitionCondition.ON_SUCCESS, "roof")
    ]
    assert roof.transitions == []
    assert {c.target for c in report.corrections} == {"workflow_complete"}

    again = await compiler.compile_with_report(DOCUMENT)
    assert again.cache_hit
    assert again.corrections == []


@pytest.mark.asyncio
async def test_compile_ignores_backend_plan_id_for_identity(fake_backend, candidate):
    other_doc = DOCUMENT + "\n# revised\n"
    compiler = PlanCompiler(fake_backend(candidate), InMemoryPlanCache())

    first = await compiler.compile(DOCUMENT)
    second = await compiler.compile(other_doc)

    assert first.plan_id == second.plan_id
    assert first.id != second.id


@pytest.mark.asyncio
async def test_empty_plan_is_unrecoverable_and_not_cached(fake_backend, make_candidate):
    cache = InMemoryPlanCache()
    compiler = PlanCompiler(fake_backend(make_candidate()), cache)

    with pytest.raises(UnrecoverablePlanError) as exc_info:
        await compiler.compile(DOCUMENT)

    assert exc_info.value.defect.kind is DefectKind.EMPTY_PLAN
    assert cache.keys() == []


@pytest.mark.asyncio
async def test_duplicate_step_ids_are_unrecoverable(fake_backend, make_candidate, make_step):
    cache = InMemoryPlanCache()
    backend = fake_backend(make_candidate(make_step("a", [("onSuccess", "a")]), make_step("a")))
    compiler = PlanCompiler(backend, cache)

    with pytest.raises(UnrecoverablePlanError) as exc_info:
        await compiler.compile(DOCUMENT)

    assert exc_info.value.defect.kind is DefectKind.DUPLICATE_STEP_IDS
    assert cache.keys() == []


@pytest.mark.asyncio
async def test_blank_instruction_compiles_and_is_cached(fake_backend, make_candidate, make_step):
    cache = InMemoryPlanCache()
    backend = fake_backend(
        make_candidate(make_step("A", [("onSuccess", "B")], instruction=""), make_step("B"))
    )
    compiler = PlanCompiler(backend, cache)

    plan = await compiler.compile(DOCUMENT)

    assert plan.steps[0].instruction == ""
    assert cache.get(plan.id) == plan
    assert await compiler.compile(DOCUMENT) == plan
    assert backend.calls == 1


@pytest.mark.asyncio
async def test_rate_limited_backend_is_retried_with_backoff(fake_backend, candidate, no_sleep):
    backend = fake_backend(RateLimitedError(), RateLimitedError(), candidate)
    compiler = PlanCompiler(backend, InMemoryPlanCache(), max_attempts=3)

    plan = await compiler.compile(DOCUMENT)

    assert plan.step_ids() == ["exterior", "roof"]
    assert backend.calls == 3
    assert no_sleep == [1, 2]


@pytest.mark.asyncio
async def test_rate_limiting_gives_up_after_max_attempts(fake_backend, no_sleep):
    backend = fake_backend(RateLimitedError())
    cache = InMemoryPlanCache()
    compiler = PlanCompiler(backend, cache, max_attempts=4)

    with pytest.raises(BackendCompileError) as exc_info:
        await compiler.compile(DOCUMENT)

    assert backend.calls == 4
    assert no_sleep == [1, 2, 3]
    assert exc_info.value.attempts == 4
    assert isinstance(exc_info.value.cause, RateLimitedError)
    assert cache.keys() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [MalformedResponseError("bad json"), BackendTransportError("down")])
async def test_non_transient_backend_errors_are_not_retried(fake_backend, no_sleep, error):
    backend = fake_backend(error)
    compiler = PlanCompiler(backend, InMemoryPlanCache(), max_attempts=5)

    with pytest.raises(BackendCompileError) as exc_info:
        await compiler.compile(DOCUMENT)

    assert backend.calls == 1
    assert no_sleep == []
    assert exc_info.value.cause is error


@pytest.mark.asyncio
async def test_cache_write_failure_is_a_soft_error(fake_backend, candidate):
    class ReadOnlyCache(InMemoryPlanCache):
        def put(self, key, plan):
            raise CacheWriteError("disk full")

    compiler = PlanCompiler(fake_backend(candidate), ReadOnlyCache())

    report = await compiler.compile_with_report(DOCUMENT)

    assert report.plan.step_ids() == ["exterior", "roof"]
    assert report.warnings == ["disk full"]


@pytest.mark.asyncio
async def test_concurrent_compiles_share_one_backend_call(candidate):
    class SlowBackend:
        def __init__(self):
            self.calls = 0
            self.release = asyncio.Event()

        async def normalize(self, document):
            self.calls += 1
            await self.release.wait()
            return candidate

    backend = SlowBackend()
    compiler = PlanCompiler(backend, InMemoryPlanCache())

    pending = [asyncio.ensure_future(compiler.compile(DOCUMENT)) for _ in range(3)]
    await asyncio.sleep(0)
    backend.release.set()
    plans = await asyncio.gather(*pending)

    assert backend.calls == 1
    assert plans[0] == plans[1] == plans[2]


@pytest.mark.asyncio
async def test_failed_compile_can_be_retried(fake_backend, candidate):
    backend = fake_backend(BackendTransportError("offline"), candidate)
    compiler = PlanCompiler(backend, InMemoryPlanCache())

    with pytest.raises(BackendCompileError):
        await compiler.compile(DOCUMENT)
    plan = await compiler.compile(DOCUMENT)

    assert backend.calls == 2
    assert plan.step_ids() == ["exterior", "roof"]


def test_max_attempts_must_be_positive(fake_backend, candidate):
    with pytest.raises(ValueError):
        PlanCompiler(fake_backend(candidate), InMemoryPlanCache(), max_attempts=0)


@pytest.mark.asyncio
async def test_failure_after_every_waiter_left_is_not_reported():
    class GatedBackend:
        def __init__(self):
            self.calls = 0
            self.release = asyncio.Event()

        async def normalize(self, document):
            self.calls += 1
            await self.release.wait()
            raise BackendTransportError("offline")

    loop = asyncio.get_running_loop()
    reported = []
    previous_handler = loop.get_exception_handler()
    loop.set_exception_handler(lambda loop, context: reported.append(context))
    try:
        backend = GatedBackend()
        compiler = PlanCompiler(backend, InMemoryPlanCache())

        waiter = asyncio.ensure_future(compiler.compile(DOCUMENT))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        del waiter

        backend.release.set()
        for _ in range(5):
            await asyncio.sleep(0)
        gc.collect()

        assert compiler._inflight == {}
        assert reported == []
    finally:
        loop.set_exception_handler(previous_handler)
