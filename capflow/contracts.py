"""Plan contracts produced by normalization and executed by sessions."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CaptureKind(str, Enum):
    """Media a step asks the user to capture."""

    PHOTO = "photo"
    VIDEO = "video"


class TransitionCondition(str, Enum):
    """Outcome of a step that selects the next transition."""

    ON_SUCCESS = "onSuccess"
    ON_SKIP = "onSkip"
    ON_FAILURE = "onFailure"

    @classmethod
    def _missing_(cls, value: object) -> Optional["TransitionCondition"]:
        # Accept snake_case and kebab-case spellings emitted by some models.
        if isinstance(value, str):
            compact = value.replace("_", "").replace("-", "").lower()
            for member in cls:
                if member.value.lower() == compact:
                    return member
        return None


class StepUI(BaseModel):
    """What the user is told to do for a step."""

    instruction: str = ""
    overlays: Optional[List[str]] = None


class CaptureRequirement(BaseModel):
    """Capture constraints for a step."""

    model_config = ConfigDict(populate_by_name=True)

    type: CaptureKind = CaptureKind.PHOTO
    min_count: Optional[int] = Field(default=None, alias="minCount")


class ValidatorSpec(BaseModel):
    """Named quality or content check, evaluated outside the core."""

    name: str
    op: Optional[str] = None
    value: Optional[float] = None
    args: Optional[Dict[str, Any]] = None


class Transition(BaseModel):
    """Rule mapping an outcome to a target step id."""

    when: TransitionCondition
    to: str


class ReportTemplate(BaseModel):
    template: Optional[str] = None


class Step(BaseModel):
    """One capture task in a plan."""

    id: str
    ui: StepUI = Field(default_factory=StepUI)
    capture: CaptureRequirement = Field(default_factory=CaptureRequirement)
    validators: List[ValidatorSpec] = Field(default_factory=list)
    transitions: List[Transition] = Field(default_factory=list)

    @property
    def instruction(self) -> str:
        return self.ui.instruction

    @property
    def capture_kind(self) -> CaptureKind:
        return self.capture.type

    @property
    def validator_specs(self) -> List[ValidatorSpec]:
        return self.validators

    def transition_for(self, condition: TransitionCondition) -> Optional[Transition]:
        """Return the first transition declared for ``condition``."""
        return next((t for t in self.transitions if t.when == condition), None)


class _PlanBody(BaseModel):
    """Fields shared by candidate and compiled plans."""

    plan_id: str = ""
    steps: List[Step] = Field(default_factory=list)
    report: Optional[ReportTemplate] = None
    advice: Optional[List[str]] = None

    @field_validator("advice", mode="before")
    @classmethod
    def _coerce_advice(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("report", mode="before")
    @classmethod
    def _coerce_report(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"template": value}
        return value


class CandidatePlan(_PlanBody):
    """Untrusted plan as returned by a normalization backend.

    Nothing about a candidate is guaranteed beyond its shape. It becomes a
    :class:`Plan` only through :meth:`rekey` inside the compiler, after which
    validation and repair decide whether it is executable.
    """

    def rekey(self, key: str) -> "Plan":
        """Return a plan identified by ``key`` instead of the backend's name."""
        return Plan(
            id=key,
            plan_id=self.plan_id,
            steps=[step.model_copy(deep=True) for step in self.steps],
            report=self.report,
            advice=self.advice,
        )


class Plan(_PlanBody):
    """Executable workflow plan identified by its source content hash."""

    model_config = ConfigDict(frozen=True)

    id: str

    @property
    def last_index(self) -> int:
        return len(self.steps) - 1

    def step_ids(self) -> List[str]:
        return [step.id for step in self.steps]

    def index_of(self, step_id: str) -> Optional[int]:
        """Position of the first step named ``step_id``."""
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        return None

    def get_step(self, step_id: str) -> Optional[Step]:
        index = self.index_of(step_id)
        return self.steps[index] if index is not None else None

    def to_json(self) -> str:
        """Serialize plan using wire field names."""
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, data: str | bytes) -> "Plan":
        return cls.model_validate_json(data)
