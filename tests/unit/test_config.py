from __future__ import annotations

import logging

import pytest

from app.config import AppConfig, setup_logging
from app.domain.exceptions import ConfigurationError, ValidationError


def test_cleanup_policy_comes_from_environment(monkeypatch):
    monkeypatch.setenv("CACHE_SUGGESTION_TTL_HOURS", "12")
    monkeypatch.setenv("CACHE_MAX_SUGGESTIONS_PER_ROD", "5")
    monkeypatch.setenv("CACHE_CLEANUP_LOGGING", "false")

    policy = AppConfig().cleanup_config()

    assert policy.suggestion_ttl_hours == 12
    assert policy.max_suggestions_per_rod == 5
    assert policy.enable_logging is False


def test_generation_timeout_can_be_disabled(monkeypatch):
    monkeypatch.setenv("SUGGESTION_GENERATION_TIMEOUT", "off")

    assert AppConfig().generation_timeout_seconds is None


def test_invalid_number_names_the_variable(monkeypatch):
    monkeypatch.setenv("CACHE_MAX_SUGGESTIONS_PER_ROD", "lots")

    with pytest.raises(ValueError, match="CACHE_MAX_SUGGESTIONS_PER_ROD"):
        AppConfig()


def test_invalid_cleanup_policy_fails_at_startup(monkeypatch):
    monkeypatch.setenv("CACHE_CLEANUP_INTERVAL_HOURS", "0")

    with pytest.raises(ValidationError):
        AppConfig()


def test_unknown_llm_provider_is_rejected(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "anthropic")

    with pytest.raises(ConfigurationError, match="LLM_PROVIDER"):
        AppConfig()


def test_hf_token_is_used_as_api_key(monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    monkeypatch.setenv("HF_TOKEN", "hf_test")

    assert AppConfig().llm_api_key == "hf_test"


def test_setup_logging_is_idempotent(tmp_path):
    root = logging.getLogger()
    original = list(root.handlers)
    original_level = root.level
    try:
        setup_logging(debug=False, log_dir=str(tmp_path))
        setup_logging(debug=True, log_dir=str(tmp_path))

        names = [getattr(h, "name", "") for h in root.handlers]
        assert names.count("farmrod_console") == 1
        assert names.count("farmrod_file") == 1
        assert (tmp_path / "farmrod.log").exists()
    finally:
        for handler in list(root.handlers):
            if handler not in original:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(original_level)


def test_setup_logging_rejects_unknown_level():
    with pytest.raises(ConfigurationError, match="LOUD"):
        setup_logging(log_dir=None, level="LOUD")
