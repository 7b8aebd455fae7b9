"""
AI Services
===========
Suggestion generation for sensor readings.

Services:
- RuleBasedSuggestionGenerator: Threshold table, always available
- LLMSuggestionGenerator: LLM answer with rule-based fallback
- AISuggestionService: Per-reading cache in front of the generators

All public symbols are importable via ``from app.services.ai import X``.
Imports are lazy; the ``openai`` SDK is only pulled in when
``build_generator`` asks for an LLM backend.
"""

from __future__ import annotations

import importlib
from typing import Any

# Keys are public symbol names; values are the dotted submodule path.
_LAZY_IMPORTS: dict[str, str] = {
    # llm_backends
    "ChatCompletionsBackend": "app.services.ai.llm_backends",
    "HuggingFaceRouterBackend": "app.services.ai.llm_backends",
    "LLMBackend": "app.services.ai.llm_backends",
    "LLMResponse": "app.services.ai.llm_backends",
    "OpenAIBackend": "app.services.ai.llm_backends",
    "create_backend": "app.services.ai.llm_backends",
    # suggestion_cache
    "AISuggestionService": "app.services.ai.suggestion_cache",
    "SuggestionResult": "app.services.ai.suggestion_cache",
    # suggestion_generator
    "LLMSuggestionGenerator": "app.services.ai.suggestion_generator",
    "RuleBasedSuggestionGenerator": "app.services.ai.suggestion_generator",
    "SuggestionGenerator": "app.services.ai.suggestion_generator",
    "build_generator": "app.services.ai.suggestion_generator",
}

__all__ = list(_LAZY_IMPORTS.keys())


def __getattr__(name: str) -> Any:
    """Lazy-load symbols on first access."""
    module_path = _LAZY_IMPORTS.get(name)
    if module_path is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = importlib.import_module(module_path)
    value = getattr(module, name)
    # Cache on the module so subsequent accesses skip __getattr__
    globals()[name] = value
    return value
