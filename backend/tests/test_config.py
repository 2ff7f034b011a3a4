"""
Unit tests for environment-driven settings.
"""
import pytest

from bizfinder.core.config import Settings, get_settings, reset_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()


def test_defaults(monkeypatch):
    for name in ("LLM_API_KEY", "ANTHROPIC_API_KEY", "CLAUDE_API_KEY", "CHAT_MAX_ITERATIONS"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.llm_configured is False
    assert settings.chat_max_iterations == 5
    assert settings.chat_search_fallback_threshold == 4
    assert settings.cache_ttl_seconds == 300


def test_api_key_fallback_names(monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")

    assert Settings.from_env().llm_api_key == "sk-test"


def test_overrides(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", " Memory ")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "60")
    monkeypatch.setenv("LOG_JSON", "false")

    settings = Settings.from_env()

    assert settings.store_backend == "memory"
    assert settings.cache_ttl_seconds == 60
    assert settings.log_json is False


def test_invalid_number_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("CHAT_MAX_ITERATIONS", "many")

    assert Settings.from_env().chat_max_iterations == 5


def test_get_settings_is_cached(monkeypatch):
    first = get_settings()

    assert get_settings() is first
