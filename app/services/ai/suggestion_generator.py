"""
Suggestion Generators
=====================
Pluggable producers of watering / fertilizing / plant-health advice for one
sensor reading.

- **RuleBasedSuggestionGenerator** (default): deterministic threshold
  table, always available.
- **LLMSuggestionGenerator**: asks an :class:`LLMBackend` for a structured
  JSON answer and delegates to the rule table whenever the backend fails or
  the answer cannot be parsed.

Generators never cache; :class:`~app.services.ai.suggestion_cache.AISuggestionService`
owns that. Each result is tagged with the backend that actually produced it.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable

from app.domain.exceptions import GenerationError
from app.domain.sensor_reading import SensorReading
from app.enums.cache import (
    FertilizingUrgency,
    HealthStatus,
    ModelTag,
    NutrientType,
    Recommendation,
    WateringUrgency,
)
from app.schemas.suggestions import FertilizingAdvice, PlantHealth, Suggestion, WateringAdvice

if TYPE_CHECKING:
    from app.config import AppConfig
    from app.services.ai.llm_backends import LLMBackend
    from app.services.utilities.cache_performance_monitor import CachePerformanceMonitor

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str, SensorReading], None]

# Nutrient thresholds in ppm
CRITICAL_NITROGEN = 10
CRITICAL_PHOSPHORUS = 5
CRITICAL_POTASSIUM = 30
LOW_NITROGEN = 20
LOW_PHOSPHORUS = 15
LOW_POTASSIUM = 50

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class SuggestionGenerator(ABC):
    """
    Abstract base class for suggestion generators.

    Implementations map ``(reading, plant_type)`` to a :class:`Suggestion`
    and must not cache.
    """

    @property
    @abstractmethod
    def model_tag(self) -> str:
        """Tag recorded with suggestions produced by this generator."""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the generator is ready."""

    @abstractmethod
    def generate(self, reading: SensorReading, plant_type: str) -> Suggestion:
        """Produce advice for one reading."""

    def generate_tagged(self, reading: SensorReading, plant_type: str) -> tuple[Suggestion, str]:
        """Produce advice together with the tag of the backend that made it."""
        return self.generate(reading, plant_type), self.model_tag


class RuleBasedSuggestionGenerator(SuggestionGenerator):
    """
    Threshold table over soil moisture, NPK, temperature and pH.

    Works without external services; also the fallback for every other
    generator.
    """

    @property
    def model_tag(self) -> str:
        return ModelTag.RULE_BASED.value

    @property
    def is_available(self) -> bool:
        return True  # Always available

    def generate(self, reading: SensorReading, plant_type: str) -> Suggestion:
        return Suggestion(
            watering=self._watering(reading),
            fertilizing=self._fertilizing(reading),
            plant_health=self._plant_health(reading),
        )

    # -- watering -----------------------------------------------------------

    @staticmethod
    def _watering(reading: SensorReading) -> WateringAdvice:
        moisture = reading.moisture
        if moisture is None:
            return WateringAdvice(
                recommendation=Recommendation.LATER,
                hours_until_next=24,
                reason="Moisture level optimal",
                urgency=WateringUrgency.LOW,
            )
        if moisture < 20:
            return WateringAdvice(
                recommendation=Recommendation.NOW,
                hours_until_next=0,
                reason="Soil moisture critically low",
                urgency=WateringUrgency.HIGH,
            )
        if moisture < 40:
            return WateringAdvice(
                recommendation=Recommendation.SOON,
                hours_until_next=2,
                reason="Soil moisture getting low",
                urgency=WateringUrgency.MEDIUM,
            )
        if moisture <= 70:
            return WateringAdvice(
                recommendation=Recommendation.LATER,
                hours_until_next=12,
                reason="Soil moisture is adequate",
                urgency=WateringUrgency.LOW,
            )
        return WateringAdvice(
            recommendation=Recommendation.NOT_NEEDED,
            hours_until_next=48,
            reason="Soil is well hydrated",
            urgency=WateringUrgency.LOW,
        )

    # -- fertilizing --------------------------------------------------------

    @staticmethod
    def _below(value: float | None, threshold: float) -> bool:
        return value is not None and value < threshold

    def _fertilizing(self, reading: SensorReading) -> FertilizingAdvice:
        n, p, k = reading.nitrogen, reading.phosphorus, reading.potassium
        low_n = self._below(n, LOW_NITROGEN)
        low_p = self._below(p, LOW_PHOSPHORUS)
        low_k = self._below(k, LOW_POTASSIUM)

        # Critical deficiencies win, phosphorus first
        if self._below(p, CRITICAL_PHOSPHORUS):
            return self._fert(Recommendation.NOW, 0, "Severe phosphorus deficiency detected",
                              NutrientType.PHOSPHORUS, FertilizingUrgency.CRITICAL)
        if self._below(n, CRITICAL_NITROGEN):
            return self._fert(Recommendation.NOW, 0, "Severe nitrogen deficiency detected",
                              NutrientType.NITROGEN, FertilizingUrgency.CRITICAL)
        if self._below(k, CRITICAL_POTASSIUM):
            return self._fert(Recommendation.SOON, 1, "Severe potassium deficiency detected",
                              NutrientType.POTASSIUM, FertilizingUrgency.CRITICAL)
        if low_n and low_p and low_k:
            return self._fert(Recommendation.SOON, 2, "Multiple nutrients are low",
                              NutrientType.BALANCED, FertilizingUrgency.HIGH)
        if low_n:
            return self._fert(Recommendation.SOON, 3, "Nitrogen levels are low",
                              NutrientType.NITROGEN, FertilizingUrgency.MEDIUM)
        if low_p:
            return self._fert(Recommendation.SOON, 3, "Phosphorus levels are low",
                              NutrientType.PHOSPHORUS, FertilizingUrgency.MEDIUM)
        if low_k:
            return self._fert(Recommendation.LATER, 5, "Potassium levels are low",
                              NutrientType.POTASSIUM, FertilizingUrgency.LOW)
        return self._fert(Recommendation.LATER, 14, "Nutrient levels adequate",
                          NutrientType.BALANCED, FertilizingUrgency.LOW)

    @staticmethod
    def _fert(
        recommendation: Recommendation,
        days: int,
        reason: str,
        nutrient: NutrientType,
        urgency: FertilizingUrgency,
    ) -> FertilizingAdvice:
        return FertilizingAdvice(
            recommendation=recommendation,
            days_until_next=days,
            reason=reason,
            type=nutrient,
            urgency=urgency,
        )

    # -- plant health -------------------------------------------------------

    def _plant_health(self, reading: SensorReading) -> PlantHealth:
        score = 70
        concerns: list[str] = []

        temperature = reading.temperature
        if temperature is not None:
            if temperature < 15 or temperature > 35:
                score -= 20
                concerns.append("Temperature stress")
            elif 18 <= temperature <= 25:
                score += 10

        ph = reading.ph
        if ph is not None:
            if ph < 6.0 or ph > 7.5:
                score -= 15
                concerns.append("pH imbalance")
            elif ph <= 7.0:
                score += 8

        moisture = reading.moisture
        if moisture is not None:
            if moisture < 30:
                score -= 25
                concerns.append("Water stress")
            elif 50 <= moisture <= 70:
                score += 12
            elif moisture > 80:
                score -= 10
                concerns.append("Overwatering risk")

        nutrients_ok = not (
            self._below(reading.nitrogen, LOW_NITROGEN)
            or self._below(reading.phosphorus, LOW_PHOSPHORUS)
            or self._below(reading.potassium, LOW_POTASSIUM)
        )
        if nutrients_ok:
            score += 8

        score = max(0, min(100, score))
        return PlantHealth(score=score, status=HealthStatus.from_score(score), concerns=concerns)


class LLMSuggestionGenerator(SuggestionGenerator):
    """
    LLM-powered suggestion generator.

    Delegates to any :class:`LLMBackend`. Falls back to *fallback* (usually
    rule-based) when the backend is unavailable, raises, or returns an
    unparseable response; *on_error* is told about every such failure.

    Parameters
    ----------
    backend:
        An initialised :class:`LLMBackend`.
    fallback:
        Generator used when the LLM cannot answer. Defaults to a fresh
        :class:`RuleBasedSuggestionGenerator`.
    on_error:
        ``callback(message, reading)`` invoked before falling back.
    max_tokens:
        Upper bound on generated tokens per answer.
    temperature:
        Sampling temperature (lower → more deterministic).
    """

    _SYSTEM_PROMPT = (
        "You are an agricultural assistant specializing in precision farming. "
        "Give concise, actionable watering and fertilizing advice based on soil sensor data."
    )

    def __init__(
        self,
        backend: "LLMBackend",
        fallback: SuggestionGenerator | None = None,
        on_error: ErrorCallback | None = None,
        max_tokens: int = 400,
        temperature: float = 0.3,
    ):
        self._backend = backend
        self._fallback = fallback or RuleBasedSuggestionGenerator()
        self._on_error = on_error
        self._max_tokens = max_tokens
        self._temperature = temperature

    # -- ABC ----------------------------------------------------------------

    @property
    def model_tag(self) -> str:
        return self._backend.name

    @property
    def is_available(self) -> bool:
        return self._backend is not None and self._backend.is_available

    @property
    def fallback(self) -> SuggestionGenerator:
        return self._fallback

    def generate(self, reading: SensorReading, plant_type: str) -> Suggestion:
        suggestion, _tag = self.generate_tagged(reading, plant_type)
        return suggestion

    def generate_tagged(self, reading: SensorReading, plant_type: str) -> tuple[Suggestion, str]:
        if not self.is_available:
            logger.debug("LLM backend not available; using fallback generator")
            return self._fallback.generate_tagged(reading, plant_type)

        try:
            response = self._backend.generate(
                system_prompt=self._SYSTEM_PROMPT,
                user_prompt=self.build_prompt(reading, plant_type),
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                json_mode=True,
            )
            if not response.text.strip():
                raise GenerationError(f"Empty response from {self._backend.name} LLM backend")
            suggestion = self.parse_response(response.text)
            logger.debug("LLM suggestion for reading %s (%.0f ms)", reading.id, response.latency_ms)
            return suggestion, self.model_tag
        except Exception as exc:
            message = f"{self._backend.name} LLM suggestion failed: {exc}"
            logger.warning("%s; using rule-based fallback", message)
            if self._on_error is not None:
                self._on_error(message, reading)

        return self._fallback.generate_tagged(reading, plant_type)

    # -- prompt building ----------------------------------------------------

    @staticmethod
    def build_prompt(reading: SensorReading, plant_type: str) -> str:
        def fmt(value: float | None) -> str:
            return "N/A" if value is None else f"{value:g}"

        return "\n".join(
            [
                "Analyze this agricultural sensor data and provide watering/fertilizing recommendations:",
                "",
                f"PLANT TYPE: {plant_type}",
                f"DATA AGE: {reading.age_minutes()} minutes old",
                "",
                "SENSOR READINGS:",
                f"- Temperature: {fmt(reading.temperature)} °C",
                f"- Soil Moisture: {fmt(reading.moisture)} %",
                f"- pH Level: {fmt(reading.ph)}",
                f"- Conductivity: {fmt(reading.conductivity)} mS/cm",
                f"- Nitrogen (N): {fmt(reading.nitrogen)} ppm",
                f"- Phosphorus (P): {fmt(reading.phosphorus)} ppm",
                f"- Potassium (K): {fmt(reading.potassium)} ppm",
                "",
                "Respond with EXACTLY this JSON object and nothing else:",
                "{",
                '  "watering": {',
                '    "recommendation": "now|soon|later|not_needed",',
                '    "hoursUntilNext": <0 for now, 1-4 for soon, 6-24 for later, 24-72 for not_needed>,',
                '    "reason": "<brief explanation>",',
                '    "urgency": "low|medium|high"',
                "  },",
                '  "fertilizing": {',
                '    "recommendation": "now|soon|later|not_needed",',
                '    "daysUntilNext": <0 for now, 1-3 for soon, 3-14 for later, 14+ for not_needed>,',
                '    "reason": "<brief explanation; P<5, N<10 or K<30 ppm needs immediate action>",',
                '    "type": "nitrogen|phosphorus|potassium|balanced|none",',
                '    "urgency": "low|medium|high|critical"',
                "  },",
                '  "plantHealth": {',
                '    "score": <0-100>,',
                '    "status": "excellent|good|fair|poor|critical",',
                '    "concerns": ["<issue>", "..."]',
                "  }",
                "}",
            ]
        )

    # -- response parsing ---------------------------------------------------

    @classmethod
    def parse_response(cls, text: str) -> Suggestion:
        """Parse the model's JSON answer, normalising inconsistent timings.

        Raises :class:`GenerationError` when no JSON object can be read.
        """
        match = _JSON_OBJECT.search(text)
        raw = match.group(0) if match else text.strip()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise GenerationError(f"Unparseable LLM response: {exc}") from exc
        if not isinstance(data, dict):
            raise GenerationError("LLM response is not a JSON object")

        watering = cls._section(data, "watering")
        fertilizing = cls._section(data, "fertilizing")
        health = cls._section(data, "plantHealth")

        water_rec = _enum_or(Recommendation, watering.get("recommendation"), Recommendation.LATER)
        fert_rec = _enum_or(Recommendation, fertilizing.get("recommendation"), Recommendation.LATER)

        score = _number(health.get("score"))
        score = 70 if not score else int(round(max(0.0, min(100.0, score))))
        concerns = health.get("concerns")

        return Suggestion(
            watering=WateringAdvice(
                recommendation=water_rec,
                hours_until_next=normalize_watering_hours(water_rec, _number(watering.get("hoursUntilNext"))),
                reason=_text(watering.get("reason"), "Based on current conditions"),
                urgency=_enum_or(WateringUrgency, watering.get("urgency"), WateringUrgency.MEDIUM),
            ),
            fertilizing=FertilizingAdvice(
                recommendation=fert_rec,
                days_until_next=normalize_fertilizing_days(fert_rec, _number(fertilizing.get("daysUntilNext"))),
                reason=_text(fertilizing.get("reason"), "Nutrient levels stable"),
                type=_enum_or(NutrientType, fertilizing.get("type"), NutrientType.BALANCED),
                urgency=_enum_or(FertilizingUrgency, fertilizing.get("urgency"), FertilizingUrgency.LOW),
            ),
            plant_health=PlantHealth(
                score=score,
                status=_enum_or(HealthStatus, health.get("status"), HealthStatus.from_score(score)),
                concerns=[str(c) for c in concerns] if isinstance(concerns, list) else [],
            ),
        )

    @staticmethod
    def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
        section = data.get(key)
        return section if isinstance(section, dict) else {}


def normalize_watering_hours(recommendation: Recommendation, provided: float | None) -> int:
    """Force ``hoursUntilNext`` into the band its recommendation implies."""
    given = int(round(provided)) if provided and provided > 0 else None
    if recommendation == Recommendation.NOW:
        return 0
    if recommendation == Recommendation.SOON:
        return given if given is not None and given <= 4 else 2
    if recommendation == Recommendation.LATER:
        return given if given is not None and 6 <= given <= 24 else 12
    return given if given is not None and given >= 24 else 48


def normalize_fertilizing_days(recommendation: Recommendation, provided: float | None) -> int:
    """Force ``daysUntilNext`` into the band its recommendation implies."""
    given = int(round(provided)) if provided and provided > 0 else None
    if recommendation == Recommendation.NOW:
        return 0
    if recommendation == Recommendation.SOON:
        return given if given is not None and given <= 3 else 2
    if recommendation == Recommendation.LATER:
        return given if given is not None and 3 <= given <= 14 else 7
    return given if given is not None and given >= 14 else 30


def _enum_or(enum_cls, value: Any, default):
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    return default


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def build_generator(
    config: "AppConfig",
    monitor: "CachePerformanceMonitor | None" = None,
) -> SuggestionGenerator:
    """Pick the LLM generator when a backend initialises, else the rule table."""
    from app.services.ai.llm_backends import create_backend

    rules = RuleBasedSuggestionGenerator()
    backend = create_backend(
        config.llm_provider,
        api_key=config.llm_api_key,
        model=config.llm_model,
        base_url=config.llm_base_url or None,
        timeout=config.llm_timeout,
    )
    if backend is None:
        return rules

    def record_ai_error(message: str, reading: SensorReading) -> None:
        monitor.record_ai_error(message, rod_id=reading.rod_id, reading_id=reading.id)

    on_error: ErrorCallback | None = record_ai_error if monitor is not None else None
    logger.info("Suggestion generator: LLM (%s) with rule-based fallback", backend.name)
    return LLMSuggestionGenerator(
        backend,
        fallback=rules,
        on_error=on_error,
        max_tokens=config.llm_max_tokens,
        temperature=config.llm_temperature,
    )
