"""Normalization backend factory and initialization."""

from __future__ import annotations

from typing import Optional

from ..config import CapflowConfig, load_config
from .base import (
    BackendError,
    BackendTransportError,
    MalformedResponseError,
    NormalizationBackend,
    RateLimitedError,
    extract_json,
    parse_candidate,
)
from .gemini import GeminiBackend


def get_backend(config: Optional[CapflowConfig] = None) -> NormalizationBackend:
    """Factory function to get the configured normalization backend."""

    config = config or load_config()
    backend_conf = config.backend
    if backend_conf.provider == "gemini":
        return GeminiBackend(
            api_key=backend_conf.api_key or "",
            model=backend_conf.model,
            base_url=backend_conf.base_url,
            timeout=backend_conf.timeout,
        )
    raise ValueError(f"Unsupported normalization backend: {backend_conf.provider}")


__all__ = [
    "BackendError",
    "BackendTransportError",
    "GeminiBackend",
    "MalformedResponseError",
    "NormalizationBackend",
    "RateLimitedError",
    "extract_json",
    "get_backend",
    "parse_candidate",
]
