"""Shared fixtures for capflow tests."""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

import pytest

from capflow.backends import BackendError
from capflow.contracts import CandidatePlan, Plan, Step


def build_step(
    step_id: str,
    transitions: Iterable[tuple[str, str]] = (),
    instruction: Optional[str] = None,
    kind: str = "photo",
) -> Step:
    return Step.model_validate(
        {
            "id": step_id,
            "ui": {"instruction": f"Capture {step_id}" if instruction is None else instruction},
            "capture": {"type": kind, "minCount": 1},
            "validators": [{"name": "sharpness", "op": ">=", "value": 0.4}],
            "transitions": [{"when": when, "to": to} for when, to in transitions],
        }
    )


def build_candidate(*steps: Step, plan_id: str = "test_plan_v1") -> CandidatePlan:
    return CandidatePlan(plan_id=plan_id, steps=list(steps))


def build_plan(*steps: Step, plan_id: str = "test_plan_v1", key: str = "plan_test") -> Plan:
    return build_candidate(*steps, plan_id=plan_id).rekey(key)


class FakeBackend:
    """Normalization backend returning scripted results."""

    def __init__(self, *results: CandidatePlan | BackendError) -> None:
        self._results: List[CandidatePlan | BackendError] = list(results)
        self.calls = 0

    async def normalize(self, document: str) -> CandidatePlan:
        self.calls += 1
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, BaseException):
            raise result
        return result.model_copy(deep=True)


@pytest.fixture
def make_step() -> Callable[..., Step]:
    return build_step


@pytest.fixture
def make_plan() -> Callable[..., Plan]:
    return build_plan


@pytest.fixture
def make_candidate() -> Callable[..., CandidatePlan]:
    return build_candidate


@pytest.fixture
def fake_backend() -> type[FakeBackend]:
    return FakeBackend


@pytest.fixture
def three_step_plan() -> Plan:
    """A -> B -> C with explicit onSuccess/onSkip transitions."""
    return build_plan(
        build_step("A", [("onSuccess", "B"), ("onSkip", "C")]),
        build_step("B", [("onSuccess", "C"), ("onSkip", "C")]),
        build_step("C"),
    )


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Keep tests away from any capflow.yaml or environment in the caller's shell."""
    monkeypatch.setenv("CAPFLOW_CONFIG", str(tmp_path / "absent.yaml"))
    for var in ("CAPFLOW_SESSION_STORE_URL", "CAPFLOW_CACHE_DIR", "GEMINI_API_KEY"):
        monkeypatch.delenv(var, raising=False)
