"""Prompt text sent to normalization backends."""

NORMALIZATION_INSTRUCTIONS = """\
You are a YAML-to-JSON compiler for a guided camera app. Your job is to \
normalize and constrain flexible YAML workflows into strict, executable JSON \
plans.

The YAML workflow may contain free-form text or ambiguous keys. Transform it \
into a standardized JSON plan with this exact structure:

{
  "plan_id": "workflow_name_v1",
  "steps": [
    {
      "id": "step_id",
      "ui": {"instruction": "Clear instruction text", "overlays": ["grid"]},
      "capture": {"type": "photo", "minCount": 1},
      "validators": [
        {"name": "sharpness", "op": ">=", "value": 0.4},
        {"name": "contains", "args": {"labelsAnyOf": ["house", "building"]}}
      ],
      "transitions": [
        {"when": "onSuccess", "to": "next_step_id"},
        {"when": "onSkip", "to": "next_step_id"}
      ]
    }
  ],
  "report": {"template": "inspection_basic"},
  "advice": []
}

Rules:
- Map human phrases to known overlays: "grid", "horizon", "rule_of_thirds"
- Expand vague conditions like "must_have: [house]" into formal validator checks
- Resolve transitions into deterministic state links
- Fill in defaults (minCount: 1 if not specified)
- Every transition "to" value MUST be the id of a step in the steps array
- The last step may have no transitions
- Emit advice[] for unsupported features
- Output ONLY valid JSON, no markdown, no explanations
"""


def normalization_prompt(document: str) -> str:
    """Build the full prompt for ``document``."""
    return f"{NORMALIZATION_INSTRUCTIONS}\nYAML to compile:\n{document}\n"
