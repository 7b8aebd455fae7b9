"""
LLM backends for suggestion generation
======================================
Thin adapters over OpenAI-compatible chat endpoints.

* ``openai``: api.openai.com, or any proxy named by ``LLM_BASE_URL``.
  Native JSON mode.
* ``huggingface``: the HuggingFace inference router. Routed providers
  ignore ``response_format``, so JSON is requested in the prompt.

Both speak through the ``openai`` SDK. Use :func:`create_backend` to get a
ready backend, or ``None`` when suggestions should stay rule-based::

    backend = create_backend("huggingface", api_key="hf_...")
    if backend is not None:
        reply = backend.generate(system_prompt, user_prompt, json_mode=True)
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import openai

from app.domain.exceptions import GenerationError

logger = logging.getLogger(__name__)

HUGGINGFACE_ROUTER_URL = "https://router.huggingface.co/v1"
HUGGINGFACE_DEFAULT_MODEL = "deepseek-ai/DeepSeek-V3.1-Terminus:novita"
OPENAI_DEFAULT_MODEL = "gpt-4o-mini"

JSON_ONLY_INSTRUCTION = "Respond ONLY with valid JSON, no markdown fences."


@dataclass(frozen=True)
class LLMResponse:
    """One chat completion, reduced to what the generator and the logs need."""

    text: str
    model: str
    latency_ms: float = 0.0
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class LLMBackend(ABC):
    """A chat endpoint able to answer one system/user prompt pair.

    ``name`` is the provider key and doubles as the cache model tag.
    """

    name: str = ""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """``True`` once :meth:`initialize` succeeded."""

    @abstractmethod
    def initialize(self) -> bool:
        """Build the client. Returns ``False`` when the backend cannot be used."""

    @abstractmethod
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 400,
        temperature: float = 0.3,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Run one completion; *json_mode* asks for a bare JSON object."""


class ChatCompletionsBackend(LLMBackend):
    """Shared plumbing for endpoints speaking the chat-completions protocol."""

    default_model: str = ""
    default_base_url: str | None = None
    native_json: bool = True

    def __init__(
        self,
        api_key: str,
        model: str = "",
        base_url: str | None = None,
        timeout: int = 30,
    ):
        self.api_key = api_key
        self.model = model or self.default_model
        self.base_url = base_url or self.default_base_url
        self.timeout = timeout
        self._client: Any = None

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def initialize(self) -> bool:
        if not self.api_key:
            logger.warning("%s backend: no API key configured", self.name)
            return False

        options: dict[str, Any] = {"api_key": self.api_key, "timeout": self.timeout}
        if self.base_url:
            options["base_url"] = self.base_url
        try:
            self._client = openai.OpenAI(**options)
        except openai.OpenAIError as exc:
            logger.error("%s backend init failed: %s", self.name, exc)
            return False

        logger.info("%s backend ready (model=%s)", self.name, self.model)
        return True

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 400,
        temperature: float = 0.3,
        json_mode: bool = False,
    ) -> LLMResponse:
        if self._client is None:
            raise GenerationError(f"{self.name} backend not initialised")

        if json_mode and not self.native_json:
            user_prompt = f"{user_prompt}\n\n{JSON_ONLY_INSTRUCTION}"
        request: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode and self.native_json:
            request["response_format"] = {"type": "json_object"}

        started = time.perf_counter()
        completion = self._client.chat.completions.create(**request)
        latency_ms = (time.perf_counter() - started) * 1000

        choice = completion.choices[0] if completion.choices else None
        usage = completion.usage
        return LLMResponse(
            text=(choice.message.content if choice is not None else None) or "",
            model=completion.model or self.model,
            latency_ms=latency_ms,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )


class OpenAIBackend(ChatCompletionsBackend):
    """OpenAI chat completions, ``gpt-4o-mini`` unless ``LLM_MODEL`` says otherwise."""

    name = "openai"
    default_model = OPENAI_DEFAULT_MODEL


class HuggingFaceRouterBackend(ChatCompletionsBackend):
    """Chat models hosted behind ``router.huggingface.co``."""

    name = "huggingface"
    default_model = HUGGINGFACE_DEFAULT_MODEL
    default_base_url = HUGGINGFACE_ROUTER_URL
    native_json = False


BACKENDS: dict[str, type[ChatCompletionsBackend]] = {
    OpenAIBackend.name: OpenAIBackend,
    HuggingFaceRouterBackend.name: HuggingFaceRouterBackend,
}


def create_backend(
    provider: str,
    *,
    api_key: str = "",
    model: str = "",
    base_url: str | None = None,
    timeout: int = 30,
) -> LLMBackend | None:
    """Return an initialised backend for *provider*, or ``None`` to stay rule-based."""
    key = (provider or "").strip().lower() or "none"
    if key == "none":
        logger.info("LLM provider set to 'none'; suggestions are rule-based")
        return None

    backend_cls = BACKENDS.get(key)
    if backend_cls is None:
        logger.error("Unknown LLM provider '%s'; suggestions are rule-based", provider)
        return None

    backend = backend_cls(api_key, model=model, base_url=base_url, timeout=timeout)
    if not backend.initialize():
        logger.warning("LLM backend '%s' failed to initialise; suggestions are rule-based", key)
        return None
    return backend
