"""
Cache Cleanup Management
========================

Endpoints for the suggestion cache janitor: status, manual and scheduled
cleanup, runtime policy changes and a full wipe.

Routes:
    GET    /api/cache-cleanup  Status plus cache statistics
    POST   /api/cache-cleanup  Run an action (see CLEANUP_ACTIONS)
    DELETE /api/cache-cleanup  Delete every cached suggestion
"""

from __future__ import annotations

import logging

from flask import Response

from app.blueprints.api._common import (
    fail as _fail,
    get_cleanup_service,
    get_json as _json,
    success as _success,
)
from app.utils.http import safe_route

from . import cache_api

logger = logging.getLogger(__name__)

CLEANUP_ACTIONS = ("cleanup", "start-auto", "stop-auto", "configure", "cleanup-rod")
CLEAR_ALL_CONFIRMATION = "DELETE_ALL_CACHE"


@cache_api.get("/cache-cleanup")
@safe_route("Failed to get cache cleanup status")
def get_cleanup_status() -> Response:
    """Return the janitor status and current cache statistics."""
    service = get_cleanup_service()
    return _success({"status": service.get_status(), "stats": service.get_cache_stats()})


@cache_api.post("/cache-cleanup")
@safe_route("Cache cleanup action failed")
def run_cleanup_action() -> Response:
    """
    Run one janitor action.

    Request Body:
        - action (required): cleanup | start-auto | stop-auto | configure | cleanup-rod
        - config (configure): Partial policy, camelCase or snake_case keys
        - rodId (cleanup-rod): Rod to trim
        - keepCount (cleanup-rod, optional): Rows to keep, defaults to the cap
    """
    payload = _json()
    action = payload.get("action")
    service = get_cleanup_service()

    if action == "cleanup":
        stats = service.run_cleanup()
        return _success({"stats": stats.to_dict()}, message="Cache cleanup completed")

    if action == "start-auto":
        service.start_auto_cleanup()
        return _success({"status": service.get_status()}, message="Auto cleanup started")

    if action == "stop-auto":
        service.stop_auto_cleanup()
        return _success({"status": service.get_status()}, message="Auto cleanup stopped")

    if action == "configure":
        partial = payload.get("config")
        if not isinstance(partial, dict) or not partial:
            return _fail("config object is required for configure", 400)
        config = service.configure(partial)
        return _success({"config": config.to_dict()}, message="Cleanup configuration updated")

    if action == "cleanup-rod":
        rod_id = payload.get("rodId", payload.get("rod_id"))
        if rod_id in (None, ""):
            return _fail("rodId is required for cleanup-rod", 400)
        keep_count = payload.get("keepCount", payload.get("keep_count"))
        deleted = service.cleanup_rod(rod_id, keep_count)
        return _success({"rodId": rod_id, "deletedCount": deleted})

    return _fail(
        f"Invalid action. Valid actions: {', '.join(CLEANUP_ACTIONS)}",
        400,
        details={"validActions": list(CLEANUP_ACTIONS)},
    )


@cache_api.delete("/cache-cleanup")
@safe_route("Failed to clear suggestion cache")
def clear_cache() -> Response:
    """
    Delete every cached suggestion.

    Request Body:
        - confirm (required): must equal ``DELETE_ALL_CACHE``
    """
    if _json().get("confirm") != CLEAR_ALL_CONFIRMATION:
        return _fail(f'Confirmation required: send {{"confirm": "{CLEAR_ALL_CONFIRMATION}"}}', 400)

    stats = get_cleanup_service().clear_all()
    logger.warning("Suggestion cache cleared via API (%d rows)", stats.total_deleted)
    return _success({"stats": stats.to_dict()}, message="All cached suggestions deleted")
