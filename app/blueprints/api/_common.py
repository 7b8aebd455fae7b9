"""
Blueprint Common Utilities
==========================

Container lookups and envelope shortcuts shared by the cache routes.

Usage:
    from app.blueprints.api._common import (
        get_json, success, fail,
        get_suggestion_service, get_cleanup_service, get_monitor,
    )
"""
from __future__ import annotations

from typing import Any

from flask import current_app, request

from app.utils.http import error_response, success_response


def get_container():
    """Return the ServiceContainer stored by ``create_app``."""
    container = current_app.config.get("CONTAINER")
    if container is None:
        raise RuntimeError("ServiceContainer not found in app config")
    return container


def _service(attribute: str, label: str) -> Any:
    service = getattr(get_container(), attribute, None)
    if service is None:
        raise RuntimeError(f"{label} not available")
    return service


def get_suggestion_service():
    return _service("suggestion_service", "Suggestion service")


def get_cleanup_service():
    return _service("cleanup_service", "Cache cleanup service")


def get_monitor():
    return _service("monitor", "Cache performance monitor")


def get_json() -> dict:
    """Request body as a dict; anything that is not a JSON object reads as ``{}``."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# Short names used by the route modules
success = success_response


def fail(message: str, status: int = 400, *, details: dict | None = None):
    return error_response(message, status, details=details)
