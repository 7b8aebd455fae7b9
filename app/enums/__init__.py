"""
Enums Module
============

This module provides enumeration types for the FarmRod advisor.
Enums ensure type safety and consistency across the codebase.
"""

from app.enums.cache import (
    CacheEventType,
    FertilizingUrgency,
    HealthStatus,
    ModelTag,
    NutrientType,
    Recommendation,
    WateringUrgency,
)

__all__ = [
    "CacheEventType",
    "FertilizingUrgency",
    "HealthStatus",
    "ModelTag",
    "NutrientType",
    "Recommendation",
    "WateringUrgency",
]
