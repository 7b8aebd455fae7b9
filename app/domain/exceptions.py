"""Centralized exception hierarchy for the FarmRod advisor.

All domain and service exceptions inherit from :class:`FarmRodError` so that
callers can catch a single base class when they need a broad safety net, yet
still match on specific subclasses where narrower handling is appropriate.

Blueprint-level error handling (see ``app/utils/http.safe_route``) maps these
to the correct HTTP status codes automatically.

Hierarchy
---------
::

    FarmRodError (base: maps to 500)
    ├── ValidationError              (400: bad input from caller)
    ├── ServiceError                 (500: business-logic failure)
    │   ├── RepositoryError          (500: database / persistence)
    │   ├── GenerationError          (502: advisory backend failure)
    │   │   └── GenerationTimeoutError (504: backend took too long)
    │   └── CacheLogicError          (500: bug inside the cache layer)
    └── ConfigurationError           (500: missing / invalid config)
"""

from __future__ import annotations

import sqlite3

# Error buckets recorded by the performance monitor
DB_ERROR = "db_error"
AI_ERROR = "ai_error"
CACHE_ERROR = "cache_error"

_DB_MARKERS = ("database", "sqlite", "repository")
_AI_MARKERS = ("openai", "huggingface", "llm")


class FarmRodError(Exception):
    """Base exception for all FarmRod application errors.

    Parameters
    ----------
    message:
        Human-readable description (logged server-side, **not** leaked to
        the HTTP client unless the exception class opts in).
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(FarmRodError):
    """Caller supplied invalid or incomplete input (HTTP 400)."""

    http_status: int = 400


# ── Server errors (5xx) ──────────────────────────────────────────────


class ServiceError(FarmRodError):
    """Business-logic failure in a service method (HTTP 500)."""

    http_status: int = 500


class RepositoryError(ServiceError):
    """Database / persistence layer failure (HTTP 500)."""

    http_status: int = 500


class GenerationError(ServiceError):
    """The advisory backend failed: network, timeout or malformed output (HTTP 502)."""

    http_status: int = 502


class GenerationTimeoutError(GenerationError):
    """The advisory backend did not answer in time (HTTP 504)."""

    http_status: int = 504


class CacheLogicError(ServiceError):
    """Failure inside the cache layer itself, e.g. an unreadable stored payload."""

    http_status: int = 500


class ConfigurationError(FarmRodError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500


def classify_error(exc: BaseException) -> str:
    """Map an exception to the monitor's error bucket.

    Typed errors win; untyped ones are matched on message markers, and
    anything else counts as a cache-logic error.
    """
    if isinstance(exc, (RepositoryError, sqlite3.Error)):
        return DB_ERROR
    if isinstance(exc, GenerationError):
        return AI_ERROR
    if isinstance(exc, FarmRodError):
        return CACHE_ERROR

    message = str(exc).lower()
    if any(marker in message for marker in _DB_MARKERS):
        return DB_ERROR
    if any(marker in message for marker in _AI_MARKERS):
        return AI_ERROR
    return CACHE_ERROR
