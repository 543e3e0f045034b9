"""Tests for configuration loading."""

import capflow.cache as cache_module
from capflow.cache import DirectoryPlanCache, get_plan_cache
from capflow.config import load_config
from capflow.constants import DEFAULT_CACHE_DIR, GEMINI_MODEL


def test_load_config_defaults_without_file():
    config = load_config()
    assert config.cache.backend == "directory"
    assert config.cache.directory == DEFAULT_CACHE_DIR
    assert config.backend.model == GEMINI_MODEL
    assert config.backend.api_key is None
    assert config.session_store_url is None


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
cache:
  backend: directory
  directory: /var/cache/capflow
backend:
  model: gemini-1.5-pro
  api_key: from-file
retry:
  max_attempts: 5
session_store_url: sqlite:///tmp/session.db
workflows_dir: /opt/workflows
"""
    )
    monkeypatch.setenv("CAPFLOW_CONFIG", str(config_path))

    config = load_config()
    assert config.cache.directory == "/var/cache/capflow"
    assert config.backend.model == "gemini-1.5-pro"
    assert config.backend.api_key == "from-file"
    assert config.retry.max_attempts == 5
    assert config.session_store_url == "sqlite:///tmp/session.db"
    assert config.workflows_dir == "/opt/workflows"


def test_environment_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("session_store_url: file:///tmp/a.json\n")
    monkeypatch.setenv("CAPFLOW_SESSION_STORE_URL", "sqlite:///tmp/b.db")
    monkeypatch.setenv("CAPFLOW_CACHE_DIR", str(tmp_path / "plans"))
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")

    config = load_config(str(config_path))
    assert config.session_store_url == "sqlite:///tmp/b.db"
    assert config.cache.directory == str(tmp_path / "plans")
    assert config.backend.api_key == "from-env"


def test_api_key_in_file_wins_over_environment(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("backend:\n  api_key: from-file\n")
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")

    assert load_config(str(config_path)).backend.api_key == "from-file"


def test_empty_config_file_uses_defaults(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("")
    assert load_config(str(config_path)).cache.backend == "directory"


def test_get_plan_cache_uses_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"cache:\n  directory: {tmp_path / 'plans'}\n")
    monkeypatch.setenv("CAPFLOW_CONFIG", str(config_path))
    monkeypatch.setattr(cache_module, "_cache_instance", None)

    cache = get_plan_cache(config=load_config())
    assert isinstance(cache, DirectoryPlanCache)
    assert cache.directory == tmp_path / "plans"
