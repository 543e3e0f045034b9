"""Gemini ``generateContent`` normalization backend."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..constants import GEMINI_BASE_URL, GEMINI_MODEL, GEMINI_TEMPERATURE, GEMINI_TIMEOUT
from ..contracts import CandidatePlan
from ..prompts import normalization_prompt
from .base import (
    BackendTransportError,
    MalformedResponseError,
    NormalizationBackend,
    RateLimitedError,
    parse_candidate,
)

logger = logging.getLogger(__name__)


class GeminiBackend(NormalizationBackend):
    """Normalize workflows with the Gemini REST API."""

    def __init__(
        self,
        api_key: str,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_BASE_URL,
        timeout: float = GEMINI_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("A Gemini API key is required for GeminiBackend")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _request_body(self, document: str) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": normalization_prompt(document)}]}],
            "generationConfig": {
                "temperature": GEMINI_TEMPERATURE,
                "responseMimeType": "application/json",
            },
        }

    async def _post(self, client: httpx.AsyncClient, document: str) -> httpx.Response:
        try:
            return await client.post(
                self.endpoint,
                params={"key": self.api_key},
                json=self._request_body(document),
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise BackendTransportError(f"Gemini request failed: {exc}") from exc

    async def normalize(self, document: str) -> CandidatePlan:
        """Send ``document`` to Gemini and parse the returned plan."""
        if self._client is not None:
            response = await self._post(self._client, document)
        else:
            async with httpx.AsyncClient() as client:
                response = await self._post(client, document)

        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            raise RateLimitedError(
                "Gemini rate limit exceeded",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if not response.is_success:
            raise BackendTransportError(
                f"Gemini API error: HTTP {response.status_code}"
            )

        text = self._response_text(response)
        logger.debug(f"Gemini returned {len(text)} characters")
        return parse_candidate(text)

    @staticmethod
    def _response_text(response: httpx.Response) -> str:
        try:
            body = response.json()
            return body["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedResponseError("Invalid response from Gemini API") from exc
