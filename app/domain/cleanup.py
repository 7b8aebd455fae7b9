"""
Cache Cleanup Policy
====================
Value objects for the suggestion-cache janitor: the live retention policy
and the statistics returned by one cleanup run.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Any

from app.domain.exceptions import ValidationError

# camelCase keys accepted by configure() and used in API payloads
_CAMEL_TO_FIELD = {
    "suggestionTtlHours": "suggestion_ttl_hours",
    "maxSuggestionsPerRod": "max_suggestions_per_rod",
    "cleanupIntervalHours": "cleanup_interval_hours",
    "enableLogging": "enable_logging",
}

# Keeps TTL cutoffs and next-run times inside the datetime range
MAX_POLICY_HOURS = 24 * 365 * 100


def _is_hours(value: Any) -> bool:
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value <= MAX_POLICY_HOURS
    )


@dataclass(frozen=True)
class CleanupConfig:
    """Retention policy for cached suggestions.

    ``max_suggestions_per_rod == 0`` disables count-based eviction.
    """

    suggestion_ttl_hours: float = 24.0
    max_suggestions_per_rod: int = 50
    cleanup_interval_hours: float = 6.0
    enable_logging: bool = True

    def validated(self) -> "CleanupConfig":
        """Return ``self`` after checking every field, or raise ValidationError."""
        if not _is_hours(self.suggestion_ttl_hours) or self.suggestion_ttl_hours < 0:
            raise ValidationError(f"suggestionTtlHours must be a number between 0 and {MAX_POLICY_HOURS}")
        if (
            isinstance(self.max_suggestions_per_rod, bool)
            or not isinstance(self.max_suggestions_per_rod, int)
            or self.max_suggestions_per_rod < 0
        ):
            raise ValidationError("maxSuggestionsPerRod must be an integer >= 0")
        if not _is_hours(self.cleanup_interval_hours) or self.cleanup_interval_hours <= 0:
            raise ValidationError(f"cleanupIntervalHours must be a number > 0 and <= {MAX_POLICY_HOURS}")
        if not isinstance(self.enable_logging, bool):
            raise ValidationError("enableLogging must be a boolean")
        return self

    def merged(self, partial: dict[str, Any]) -> "CleanupConfig":
        """Return a new config with the fields in *partial* replaced.

        Keys may be snake_case field names or their camelCase API aliases.
        """
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in partial.items():
            name = _CAMEL_TO_FIELD.get(key, key)
            if name not in known:
                raise ValidationError(f"Unknown cleanup setting: {key}")
            changes[name] = value
        try:
            return replace(self, **changes).validated()
        except TypeError as exc:
            raise ValidationError(f"Invalid cleanup setting: {exc}") from exc

    @property
    def ttl_seconds(self) -> float:
        return self.suggestion_ttl_hours * 3600.0

    @property
    def interval_seconds(self) -> float:
        return self.cleanup_interval_hours * 3600.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "suggestionTtlHours": self.suggestion_ttl_hours,
            "maxSuggestionsPerRod": self.max_suggestions_per_rod,
            "cleanupIntervalHours": self.cleanup_interval_hours,
            "enableLogging": self.enable_logging,
        }


@dataclass
class CleanupStats:
    """Outcome of one cleanup run."""

    expired_suggestions: int
    excess_suggestions: int
    cleanup_duration_ms: float
    timestamp: datetime

    @property
    def total_deleted(self) -> int:
        return self.expired_suggestions + self.excess_suggestions

    def to_dict(self) -> dict[str, Any]:
        return {
            "expiredSuggestions": self.expired_suggestions,
            "excessSuggestions": self.excess_suggestions,
            "totalDeleted": self.total_deleted,
            "cleanupDuration": round(self.cleanup_duration_ms, 1),
            "timestamp": self.timestamp.isoformat(),
        }
