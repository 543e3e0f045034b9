from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .constants import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_BACKOFF_JITTER,
    DEFAULT_CACHE_DIR,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_WORKFLOWS_DIR,
    GEMINI_BASE_URL,
    GEMINI_MODEL,
    GEMINI_TIMEOUT,
)


class CacheConfig(BaseModel):
    """Plan cache settings."""

    backend: Literal["memory", "directory"] = "directory"
    directory: str = DEFAULT_CACHE_DIR


class BackendConfig(BaseModel):
    """Normalization backend settings."""

    provider: Literal["gemini"] = "gemini"
    model: str = GEMINI_MODEL
    base_url: str = GEMINI_BASE_URL
    api_key: Optional[str] = None
    timeout: float = GEMINI_TIMEOUT


class RetryConfig(BaseModel):
    """Backoff policy for rate-limited backend calls."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_base: float = DEFAULT_BACKOFF_BASE
    backoff_jitter: float = DEFAULT_BACKOFF_JITTER


class CapflowConfig(BaseModel):
    """Top-level configuration model."""

    cache: CacheConfig = CacheConfig()
    backend: BackendConfig = BackendConfig()
    retry: RetryConfig = RetryConfig()
    session_store_url: Optional[str] = None
    workflows_dir: str = DEFAULT_WORKFLOWS_DIR


def load_config(path: Optional[str] = None) -> CapflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CAPFLOW_CONFIG env
            variable or 'capflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("CAPFLOW_CONFIG", "capflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = CapflowConfig(**data)
    else:
        config = CapflowConfig()

    env_store_url = os.getenv("CAPFLOW_SESSION_STORE_URL")
    if env_store_url:
        config.session_store_url = env_store_url
    env_cache_dir = os.getenv("CAPFLOW_CACHE_DIR")
    if env_cache_dir:
        config.cache.directory = env_cache_dir
    env_api_key = os.getenv("GEMINI_API_KEY")
    if env_api_key and not config.backend.api_key:
        config.backend.api_key = env_api_key
    return config
