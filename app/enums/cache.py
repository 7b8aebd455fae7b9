"""
Suggestion Cache Enumerations
=============================

Tags shared by the suggestion payload, the cache and the performance monitor.
"""

from enum import Enum


class CacheEventType(str, Enum):
    """
    Kinds of events recorded by the cache performance monitor.
    Used by: cache_performance_monitor, suggestion_cache, cache_cleanup_service
    """
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    AI_ERROR = "ai_error"
    CACHE_ERROR = "cache_error"
    DB_ERROR = "db_error"

    def __str__(self) -> str:
        return self.value


class ModelTag(str, Enum):
    """
    Backends known to produce suggestions. Other tags may still be recorded.
    Used by: suggestion_generator, cache statistics, monitor seeding
    """
    RULE_BASED = "rule_based"
    HUGGINGFACE = "huggingface"
    OPENAI = "openai"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def known(cls) -> tuple[str, ...]:
        return tuple(tag.value for tag in cls)


class Recommendation(str, Enum):
    """Timing tag shared by watering and fertilizing advice."""
    NOW = "now"
    SOON = "soon"
    LATER = "later"
    NOT_NEEDED = "not_needed"

    def __str__(self) -> str:
        return self.value


class WateringUrgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self) -> str:
        return self.value


class FertilizingUrgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class NutrientType(str, Enum):
    NITROGEN = "nitrogen"
    PHOSPHORUS = "phosphorus"
    POTASSIUM = "potassium"
    BALANCED = "balanced"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


class HealthStatus(str, Enum):
    """
    Plant health bands derived from the 0-100 score.
    """
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_score(cls, score: float) -> "HealthStatus":
        if score >= 90:
            return cls.EXCELLENT
        if score >= 75:
            return cls.GOOD
        if score >= 60:
            return cls.FAIR
        if score >= 40:
            return cls.POOR
        return cls.CRITICAL
