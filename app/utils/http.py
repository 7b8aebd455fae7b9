"""
HTTP envelope helpers
=====================
Every API response uses one envelope::

    {"ok": true,  "data": {...}, "error": null}
    {"ok": false, "data": null,  "error": {"message": "...", "timestamp": "..."}, "message": "..."}

Error details (validation errors, valid actions) are merged into ``error``
and repeated under a top-level ``details`` key.

Server-side failures are logged with their traceback and answered with a
generic message; only 4xx errors echo the exception text back.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify
from werkzeug.exceptions import HTTPException

from app.utils.time import iso_now

_log = logging.getLogger(__name__)

_PUBLIC_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    404: "Resource not found",
    405: "Method not allowed",
    500: "An internal error occurred",
    502: "Advisory backend unavailable",
    504: "Advisory backend timed out",
}


def _envelope(ok: bool, data: Any, error: dict | None, status: int, **extra: Any) -> Response:
    body: dict[str, Any] = {"ok": ok, "data": data, "error": error}
    body.update(extra)
    response = jsonify(body)
    response.status_code = status
    return response


def success_response(
    data: dict | list | None = None,
    status: int = 200,
    *,
    message: str | None = None,
) -> Response:
    extra = {"message": message} if message is not None else {}
    return _envelope(True, data, None, status, **extra)


def error_response(
    message: str,
    status: int = 500,
    *,
    details: dict | None = None,
) -> Response:
    error: dict[str, Any] = {"message": message, "timestamp": iso_now()}
    extra: dict[str, Any] = {"message": message}
    if details:
        error.update(details)
        extra["details"] = details
    return _envelope(False, None, error, status, **extra)


def safe_error(exc: BaseException, status: int = 500, *, context: str = "") -> Response:
    """Log *exc* with its traceback and answer with a generic message for *status*."""
    _log.error("API error [%s] %s: %s", status, context, exc, exc_info=exc)
    return error_response(_PUBLIC_MESSAGES.get(status, _PUBLIC_MESSAGES[500]), status)


def exception_response(exc: BaseException, *, fallback_message: str = "Request failed") -> Response:
    """Translate an exception raised while serving an API request.

    ``FarmRodError`` subclasses carry their own ``http_status``, werkzeug
    ``HTTPException`` its ``code``; anything else is a 500.
    """
    from app.domain.exceptions import FarmRodError

    if isinstance(exc, FarmRodError):
        status = exc.http_status
        text = str(exc)
    elif isinstance(exc, HTTPException):
        status = int(exc.code or 500)
        text = exc.description or ""
    else:
        return safe_error(exc, 500, context=fallback_message)

    if status >= 500:
        return safe_error(exc, status, context=fallback_message)
    return error_response(text or fallback_message, status)


def safe_route(error_message: str = "An internal error occurred") -> Callable:
    """Wrap a route handler so every exception leaves as a JSON envelope.

    Usage::

        @cache_api.get("/cache-cleanup")
        @safe_route("Failed to get cache status")
        def get_cleanup_status():
            ...

    *error_message* is logged as context for 5xx errors and returned to
    the client when a 4xx error carries no text of its own.
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                return exception_response(exc, fallback_message=error_message)

        return wrapper

    return decorator
