"""
Cache API Module
Suggestion, cache cleanup and cache metrics endpoints.
"""

from __future__ import annotations

from flask import Blueprint, Response

from app.utils.http import error_response

# Create blueprint here to avoid circular imports
cache_api = Blueprint("cache_api", __name__)


@cache_api.errorhandler(404)
def not_found(error) -> Response:
    """Handle 404 errors"""
    return error_response("Resource not found", 404)


# Import all route modules to register their endpoints (must be after blueprint creation)
from . import cleanup, metrics, suggestions

_ = (cleanup, metrics, suggestions)

__all__ = ["cache_api"]
