from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import openai
import pytest

from app.domain.exceptions import GenerationError
from app.services.ai.llm_backends import (
    HUGGINGFACE_ROUTER_URL,
    HuggingFaceRouterBackend,
    OpenAIBackend,
    create_backend,
)


def _completion(text: str):
    return SimpleNamespace(
        model="served-model",
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
    )


@pytest.fixture()
def fake_openai(monkeypatch):
    client_cls = MagicMock()
    monkeypatch.setattr(openai, "OpenAI", client_cls)
    return client_cls


@pytest.mark.parametrize("provider", ["none", "", "anthropic"])
def test_create_backend_returns_none_for_unsupported_providers(provider):
    assert create_backend(provider, api_key="key") is None


def test_backend_without_key_fails_to_initialise():
    assert create_backend("openai", api_key="") is None
    assert OpenAIBackend(api_key="").initialize() is False


def test_huggingface_backend_targets_router(fake_openai):
    backend = create_backend("huggingface", api_key="hf_x", timeout=12)

    assert isinstance(backend, HuggingFaceRouterBackend)
    assert backend.name == "huggingface"
    assert backend.is_available is True
    kwargs = fake_openai.call_args.kwargs
    assert kwargs["base_url"] == HUGGINGFACE_ROUTER_URL
    assert kwargs["timeout"] == 12


def test_huggingface_backend_asks_for_json_in_prompt(fake_openai):
    backend = HuggingFaceRouterBackend(api_key="hf_x")
    backend.initialize()
    create = fake_openai.return_value.chat.completions.create
    create.return_value = _completion('{"ok": true}')

    response = backend.generate("system", "user", json_mode=True)

    kwargs = create.call_args.kwargs
    assert "response_format" not in kwargs
    assert kwargs["messages"][1]["content"].endswith("Respond ONLY with valid JSON, no markdown fences.")
    assert response.text == '{"ok": true}'
    assert response.total_tokens == 15


def test_openai_backend_uses_native_json_mode(fake_openai):
    backend = OpenAIBackend(api_key="sk-x")
    backend.initialize()
    create = fake_openai.return_value.chat.completions.create
    create.return_value = _completion("{}")

    backend.generate("system", "user", json_mode=True)

    assert create.call_args.kwargs["response_format"] == {"type": "json_object"}
    assert create.call_args.kwargs["model"] == "gpt-4o-mini"


def test_generate_before_initialise_raises():
    with pytest.raises(GenerationError, match="not initialised"):
        OpenAIBackend(api_key="sk-x").generate("system", "user")


def test_configured_model_and_base_url_override_defaults(fake_openai):
    backend = create_backend("openai", api_key="sk-x", model="gpt-4.1-mini", base_url="http://proxy.local/v1")
    create = fake_openai.return_value.chat.completions.create
    create.return_value = _completion("{}")

    response = backend.generate("system", "user")

    assert fake_openai.call_args.kwargs["base_url"] == "http://proxy.local/v1"
    assert create.call_args.kwargs["model"] == "gpt-4.1-mini"
    assert "response_format" not in create.call_args.kwargs
    assert response.model == "served-model"
