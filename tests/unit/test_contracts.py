"""Plan contract parsing tests."""

import pytest
from pydantic import ValidationError

from capflow.contracts import CandidatePlan, CaptureKind, Plan, TransitionCondition


WIRE_PLAN = {
    "plan_id": "home_inspection_v1",
    "steps": [
        {
            "id": "exterior",
            "ui": {"instruction": "Photograph the front of the house", "overlays": ["grid"]},
            "capture": {"type": "photo", "minCount": 2},
            "validators": [
                {"name": "sharpness", "op": ">=", "value": 0.4},
                {"name": "contains", "args": {"labelsAnyOf": ["house"]}},
            ],
            "transitions": [
                {"when": "onSuccess", "to": "roof"},
                {"when": "on_skip", "to": "roof"},
            ],
            "unexpected": "ignored",
        },
        {
            "id": "roof",
            "ui": {"instruction": "Record the roof"},
            "capture": {"type": "video"},
            "validators": [],
            "transitions": [],
        },
    ],
    "report": "inspection_basic",
    "advice": "Overlay 'fisheye' is not supported",
}


def test_candidate_parses_wire_format():
    candidate = CandidatePlan.model_validate(WIRE_PLAN)

    first, second = candidate.steps
    assert first.instruction == "Photograph the front of the house"
    assert first.capture.min_count == 2
    assert first.capture_kind is CaptureKind.PHOTO
    assert second.capture_kind is CaptureKind.VIDEO
    assert first.validator_specs[1].args == {"labelsAnyOf": ["house"]}
    assert [t.when for t in first.transitions] == [
        TransitionCondition.ON_SUCCESS,
        TransitionCondition.ON_SKIP,
    ]
    assert candidate.report.template == "inspection_basic"
    assert candidate.advice == ["Overlay 'fisheye' is not supported"]


def test_unknown_capture_type_is_rejected():
    data = {"plan_id": "p", "steps": [{"id": "a", "capture": {"type": "audio"}}]}
    with pytest.raises(ValidationError):
        CandidatePlan.model_validate(data)


def test_rekey_replaces_backend_identity():
    candidate = CandidatePlan.model_validate(WIRE_PLAN)
    plan = candidate.rekey("plan_abc")

    assert plan.id == "plan_abc"
    assert plan.plan_id == "home_inspection_v1"
    assert plan.step_ids() == ["exterior", "roof"]
    assert plan.index_of("roof") == 1
    assert plan.index_of("missing") is None
    assert plan.get_step("exterior").instruction.startswith("Photograph")
    assert plan.last_index == 1


def test_plan_is_immutable(three_step_plan):
    with pytest.raises(ValidationError):
        three_step_plan.id = "other"


def test_transition_for_takes_first_declared_match(make_step):
    step = make_step("A", [("onSuccess", "C"), ("onSuccess", "B"), ("onSkip", "B")])

    assert step.transition_for(TransitionCondition.ON_SUCCESS).to == "C"
    assert step.transition_for(TransitionCondition.ON_SKIP).to == "B"
    assert step.transition_for(TransitionCondition.ON_FAILURE) is None


def test_plan_json_uses_wire_names(three_step_plan):
    raw = three_step_plan.to_json()
    assert '"minCount"' in raw
    assert '"onSuccess"' in raw
    assert Plan.from_json(raw) == three_step_plan
