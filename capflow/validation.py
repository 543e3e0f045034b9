"""Structural validation and repair of compiled plans.

Normalization backends are best-effort translators and regularly reference
steps that were never declared (a ``workflow_complete`` sentinel is a common
one) or leave steps without outgoing transitions. Such plans are repaired
rather than rejected. Only an empty plan and colliding step ids are fatal.
A step without instruction text fails strict validation but passes through
repair unchanged; repair only ever rewrites transition lists.
"""

from __future__ import annotations

import logging
from collections import Counter
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .contracts import Plan, Step, Transition, TransitionCondition

logger = logging.getLogger(__name__)


class DefectKind(str, Enum):
    EMPTY_PLAN = "empty_plan"
    DUPLICATE_STEP_IDS = "duplicate_step_ids"
    MISSING_INSTRUCTION = "missing_instruction"
    MISSING_TRANSITIONS = "missing_transitions"
    DANGLING_TRANSITION = "dangling_transition"


UNRECOVERABLE_DEFECTS = frozenset(
    {
        DefectKind.EMPTY_PLAN,
        DefectKind.DUPLICATE_STEP_IDS,
    }
)


class StructuralDefect(BaseModel):
    """A single structural problem found in a plan."""

    kind: DefectKind
    step_index: Optional[int] = None
    step_id: Optional[str] = None
    target: Optional[str] = None

    @property
    def recoverable(self) -> bool:
        return self.kind not in UNRECOVERABLE_DEFECTS

    def describe(self) -> str:
        if self.kind is DefectKind.EMPTY_PLAN:
            return "Workflow plan has no steps"
        if self.kind is DefectKind.DUPLICATE_STEP_IDS:
            return f"Workflow plan contains duplicate step IDs: {self.step_id}"
        if self.kind is DefectKind.MISSING_INSTRUCTION:
            return f"Step at index {self.step_index} is missing instruction"
        if self.kind is DefectKind.MISSING_TRANSITIONS:
            return f"Step at index {self.step_index} has no transitions"
        return (
            f"Step '{self.step_id}' has a transition to unknown step '{self.target}'"
        )


class PlanValidationError(ValueError):
    """Raised when a plan fails structural validation."""

    def __init__(self, defect: StructuralDefect) -> None:
        super().__init__(defect.describe())
        self.defect = defect

    @property
    def recoverable(self) -> bool:
        return self.defect.recoverable


class RepairReport(BaseModel):
    """Outcome of :func:`repair_plan`."""

    plan: Plan
    corrections: List[StructuralDefect] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.corrections)


def _duplicate_ids(plan: Plan) -> List[str]:
    counts = Counter(plan.step_ids())
    return [step_id for step_id, count in counts.items() if count > 1]


def find_defects(plan: Plan) -> List[StructuralDefect]:
    """Return every structural defect of ``plan``.

    Unrecoverable defects come first so callers can stop at the first one.
    """
    if not plan.steps:
        return [StructuralDefect(kind=DefectKind.EMPTY_PLAN)]

    defects: List[StructuralDefect] = [
        StructuralDefect(kind=DefectKind.DUPLICATE_STEP_IDS, step_id=step_id)
        for step_id in _duplicate_ids(plan)
    ]
    known = set(plan.step_ids())
    for index, step in enumerate(plan.steps):
        if not step.instruction:
            defects.append(
                StructuralDefect(
                    kind=DefectKind.MISSING_INSTRUCTION,
                    step_index=index,
                    step_id=step.id,
                )
            )
    for index, step in enumerate(plan.steps):
        for transition in step.transitions:
            if transition.to not in known:
                defects.append(
                    StructuralDefect(
                        kind=DefectKind.DANGLING_TRANSITION,
                        step_index=index,
                        step_id=step.id,
                        target=transition.to,
                    )
                )
        if not step.transitions and index != plan.last_index:
            defects.append(
                StructuralDefect(
                    kind=DefectKind.MISSING_TRANSITIONS,
                    step_index=index,
                    step_id=step.id,
                )
            )
    return defects


def validate(plan: Plan) -> None:
    """Strictly validate ``plan``.

    Raises:
        PlanValidationError: For the first defect found, in the order empty
            plan, duplicate ids, missing instruction, missing transitions,
            dangling transition.
    """
    defects = find_defects(plan)
    if not defects:
        return
    order = [
        DefectKind.EMPTY_PLAN,
        DefectKind.DUPLICATE_STEP_IDS,
        DefectKind.MISSING_INSTRUCTION,
        DefectKind.MISSING_TRANSITIONS,
        DefectKind.DANGLING_TRANSITION,
    ]
    defects.sort(key=lambda d: (order.index(d.kind), d.step_index or 0))
    raise PlanValidationError(defects[0])


def _default_transitions(next_step: Step) -> List[Transition]:
    return [
        Transition(when=TransitionCondition.ON_SUCCESS, to=next_step.id),
        Transition(when=TransitionCondition.ON_SKIP, to=next_step.id),
    ]


def repair_plan(plan: Plan) -> RepairReport:
    """Make ``plan`` executable by rewriting transition lists only.

    Transitions pointing at unknown steps are dropped. A non-last step left
    without transitions gets ``onSuccess`` and ``onSkip`` to the following
    step. The last step may end up with no transitions; that marks the end
    of the plan.

    Raises:
        PlanValidationError: If the plan has an unrecoverable defect.
    """
    for defect in find_defects(plan):
        if not defect.recoverable:
            raise PlanValidationError(defect)
        if defect.kind is DefectKind.MISSING_INSTRUCTION:
            logger.warning(f"Plan {plan.id} kept as is: {defect.describe()}")

    known = set(plan.step_ids())
    corrections: List[StructuralDefect] = []
    steps: List[Step] = []
    for index, step in enumerate(plan.steps):
        kept: List[Transition] = []
        for transition in step.transitions:
            if transition.to in known:
                kept.append(transition)
                continue
            corrections.append(
                StructuralDefect(
                    kind=DefectKind.DANGLING_TRANSITION,
                    step_index=index,
                    step_id=step.id,
                    target=transition.to,
                )
            )
        if not kept and index != plan.last_index:
            kept = _default_transitions(plan.steps[index + 1])
            corrections.append(
                StructuralDefect(
                    kind=DefectKind.MISSING_TRANSITIONS,
                    step_index=index,
                    step_id=step.id,
                )
            )
        if kept == step.transitions:
            steps.append(step)
        else:
            steps.append(step.model_copy(update={"transitions": kept}))

    for correction in corrections:
        logger.warning(f"Repaired plan {plan.id}: {correction.describe()}")

    repaired = plan.model_copy(update={"steps": steps}) if corrections else plan
    return RepairReport(plan=repaired, corrections=corrections)


def repair(plan: Plan) -> Plan:
    """Return an executable version of ``plan``. See :func:`repair_plan`."""
    return repair_plan(plan).plan
