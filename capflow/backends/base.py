"""Normalization backend contract and error taxonomy."""

from __future__ import annotations

import json
from typing import Optional, Protocol

from pydantic import ValidationError

from ..contracts import CandidatePlan


class BackendError(Exception):
    """Base class for normalization backend failures."""

    retryable: bool = False


class RateLimitedError(BackendError):
    """The backend asked the caller to slow down."""

    retryable = True

    def __init__(self, message: str = "rate limited", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class MalformedResponseError(BackendError):
    """The response could not be parsed into a candidate plan."""


class BackendTransportError(BackendError):
    """Network or HTTP level failure."""


class NormalizationBackend(Protocol):
    """Turns a loose workflow document into a candidate plan."""

    async def normalize(self, document: str) -> CandidatePlan:
        """Return the candidate plan for ``document``.

        Raises:
            BackendError: On rate limiting, malformed output or transport failure.
        """


def extract_json(text: str) -> str:
    """Strip Markdown fences and surrounding prose from a model response.

    When the cleaned text is not a bare JSON object, the first balanced
    ``{...}`` block is returned. Braces inside string literals are ignored.
    """
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    cleaned = cleaned.strip()

    if cleaned.startswith("{") and cleaned.endswith("}"):
        return cleaned

    start = cleaned.find("{")
    if start == -1:
        return cleaned
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(cleaned)):
        char = cleaned[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return cleaned[start : index + 1]
    return cleaned[start:]


def parse_candidate(text: str) -> CandidatePlan:
    """Parse model output text into a :class:`CandidatePlan`.

    Raises:
        MalformedResponseError: If the text is not a JSON object of plan shape.
    """
    payload = extract_json(text)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedResponseError("Response JSON is not an object")
    try:
        return CandidatePlan.model_validate(data)
    except ValidationError as exc:
        raise MalformedResponseError(f"Response does not match plan schema: {exc}") from exc
