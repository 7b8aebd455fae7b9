"""
Suggestion Schemas
==================

Pydantic models for the cached suggestion payload and the suggestion API
request. The payload is stored as JSON and re-validated on every cache read.
"""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.enums.cache import (
    FertilizingUrgency,
    HealthStatus,
    NutrientType,
    Recommendation,
    WateringUrgency,
)

# "not_needed" advice must point at least this far ahead
WATERING_NOT_NEEDED_MIN_HOURS = 24
FERTILIZING_NOT_NEEDED_MIN_DAYS = 14


class WateringAdvice(BaseModel):
    """When to water next and why."""

    recommendation: Recommendation
    hours_until_next: int = Field(..., ge=0, alias="hoursUntilNext")
    reason: str
    urgency: WateringUrgency

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def check_timing(self):
        if self.recommendation == Recommendation.NOW and self.hours_until_next != 0:
            raise ValueError("watering 'now' requires hoursUntilNext == 0")
        if (
            self.recommendation == Recommendation.NOT_NEEDED
            and self.hours_until_next < WATERING_NOT_NEEDED_MIN_HOURS
        ):
            raise ValueError(f"watering 'not_needed' requires hoursUntilNext >= {WATERING_NOT_NEEDED_MIN_HOURS}")
        return self


class FertilizingAdvice(BaseModel):
    """When and what to fertilize next."""

    recommendation: Recommendation
    days_until_next: int = Field(..., ge=0, alias="daysUntilNext")
    reason: str
    type: NutrientType
    urgency: FertilizingUrgency

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def check_timing(self):
        if self.recommendation == Recommendation.NOW and self.days_until_next != 0:
            raise ValueError("fertilizing 'now' requires daysUntilNext == 0")
        if (
            self.recommendation == Recommendation.NOT_NEEDED
            and self.days_until_next < FERTILIZING_NOT_NEEDED_MIN_DAYS
        ):
            raise ValueError(f"fertilizing 'not_needed' requires daysUntilNext >= {FERTILIZING_NOT_NEEDED_MIN_DAYS}")
        return self


class PlantHealth(BaseModel):
    score: int = Field(..., ge=0, le=100)
    status: HealthStatus
    concerns: List[str] = Field(default_factory=list)


class Suggestion(BaseModel):
    """Advisory output for one sensor reading."""

    watering: WateringAdvice
    fertilizing: FertilizingAdvice
    plant_health: PlantHealth = Field(..., alias="plantHealth")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "watering": {
                    "recommendation": "soon",
                    "hoursUntilNext": 2,
                    "reason": "Soil moisture is getting low (35%)",
                    "urgency": "medium",
                },
                "fertilizing": {
                    "recommendation": "later",
                    "daysUntilNext": 14,
                    "reason": "Nutrient levels are adequate",
                    "type": "balanced",
                    "urgency": "low",
                },
                "plantHealth": {"score": 88, "status": "good", "concerns": []},
            }
        },
    )

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready camelCase dict, the form stored in the cache table."""
        return self.model_dump(mode="json", by_alias=True)


class SuggestionRequest(BaseModel):
    """Body of ``POST /api/ai-suggestions``."""

    reading: dict[str, Any] = Field(..., description="Sensor reading with id, timestamp and soil values")
    rod_id: Union[str, int] = Field(..., alias="rodId", description="Owning secondary rod")
    plant_type: Optional[str] = Field(default=None, alias="plantType", max_length=100)

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "reading": {
                    "id": "rd-1024",
                    "timestamp": "2026-05-01T08:00:00Z",
                    "temperature": 22.5,
                    "moisture": 35,
                    "ph": 6.4,
                    "conductivity": 1.2,
                    "nitrogen": 40,
                    "phosphorus": 25,
                    "potassium": 120,
                },
                "rodId": "rod-7",
                "plantType": "Tomato",
            }
        },
    )

    @field_validator("rod_id", mode="before")
    @classmethod
    def normalize_rod_id(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("rodId must not be empty")
        return v
