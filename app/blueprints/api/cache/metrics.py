"""
Cache Metrics
=============

Read and reset the in-memory suggestion cache performance counters.

Routes:
    GET    /api/cache-metrics                 Metrics and recent events, or a text report
    GET    /api/cache-metrics/rods/<rod_id>   Hit/miss counts for one rod
    DELETE /api/cache-metrics                 Reset all counters and events
"""

from __future__ import annotations

from flask import Response, request

from app.blueprints.api._common import fail as _fail, get_monitor, success as _success
from app.utils.http import safe_route

from . import cache_api

RECENT_EVENTS_LIMIT = 20


@cache_api.get("/cache-metrics")
@safe_route("Failed to get cache metrics")
def get_cache_metrics() -> Response:
    """
    Query parameters:
        format (str, optional): ``json`` (default) or ``report`` for plain text
    """
    monitor = get_monitor()
    fmt = request.args.get("format", "json").lower()

    if fmt == "report":
        return Response(monitor.get_summary_report(), mimetype="text/plain")
    if fmt != "json":
        return _fail("format must be 'json' or 'report'", 400)

    return _success(
        {
            "metrics": monitor.get_metrics().to_dict(),
            "recentEvents": [event.to_dict() for event in monitor.get_recent_events(RECENT_EVENTS_LIMIT)],
        }
    )


@cache_api.get("/cache-metrics/rods/<rod_id>")
@safe_route("Failed to get rod cache metrics")
def get_rod_cache_metrics(rod_id: str) -> Response:
    return _success(get_monitor().get_rod_metrics(rod_id).to_dict())


@cache_api.delete("/cache-metrics")
@safe_route("Failed to reset cache metrics")
def reset_cache_metrics() -> Response:
    get_monitor().reset_metrics()
    return _success({"reset": True}, message="Cache metrics reset")
