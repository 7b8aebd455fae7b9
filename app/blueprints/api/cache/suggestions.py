"""
AI Suggestions
==============

Get-or-create endpoint for the watering / fertilizing advice of one reading.

Routes:
    POST /api/ai-suggestions  Cached suggestion for a reading (generated on miss)
"""

from __future__ import annotations

import logging

from flask import Response
from pydantic import ValidationError as PydanticValidationError

from app.blueprints.api._common import (
    fail as _fail,
    get_json as _json,
    get_suggestion_service,
    success as _success,
)
from app.domain.sensor_reading import SensorReading
from app.schemas.suggestions import SuggestionRequest
from app.utils.http import safe_route

from . import cache_api

logger = logging.getLogger(__name__)


@cache_api.post("/ai-suggestions")
@safe_route("Failed to get AI suggestions")
def get_ai_suggestions() -> Response:
    """
    Return the cached suggestion for a reading, generating it when none is fresh.

    Request Body:
        - reading (required): id, timestamp and the seven soil values
        - rodId (required): Owning secondary rod
        - plantType (optional): Crop label used in the prompt

    Returns:
        rodId, plantType, lastUpdate, cached, model and the suggestion payload
    """
    try:
        body = SuggestionRequest.model_validate(_json())
    except PydanticValidationError as exc:
        return _fail(
            "Invalid suggestion request",
            400,
            details={"errors": exc.errors(include_url=False, include_context=False)},
        )

    reading = SensorReading.from_dict(body.reading)
    service = get_suggestion_service()
    result = service.get_or_create_suggestions(reading, body.rod_id, body.plant_type)

    return _success(
        {
            "rodId": body.rod_id,
            "plantType": body.plant_type or service.default_plant_type,
            "lastUpdate": reading.timestamp.isoformat(),
            "cached": result.cached,
            "model": result.model_tag,
            "suggestions": result.suggestion.to_payload(),
        }
    )
