"""
Schemas Module
==============

This module provides Pydantic models for request/response validation.
Schemas ensure data integrity and provide automatic validation.
"""

from app.schemas.suggestions import (
    FertilizingAdvice,
    PlantHealth,
    Suggestion,
    SuggestionRequest,
    WateringAdvice,
)

__all__ = [
    "FertilizingAdvice",
    "PlantHealth",
    "Suggestion",
    "SuggestionRequest",
    "WateringAdvice",
]
