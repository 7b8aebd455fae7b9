"""
AI Suggestion Cache
===================
Per-reading cache in front of the suggestion generators.

A lookup for a reading returns the suggestion stored for it within the
freshness window (default 5 minutes). Otherwise the generator runs, every
older row for that reading is deleted, and the fresh suggestion is written.
Each outcome is recorded in the :class:`CachePerformanceMonitor`.

Within one process, lookups for the same reading are serialised so the
generator runs at most once per miss; across processes the
delete-then-insert step (backed by a unique index) still leaves at most one
row per reading.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Iterator

from pydantic import ValidationError as PydanticValidationError

from app.domain.exceptions import CacheLogicError, GenerationTimeoutError, classify_error
from app.domain.sensor_reading import SensorReading, reading_fingerprint
from app.domain.suggestion_store import CacheEntry, CacheEntryDraft, SuggestionStore
from app.schemas.suggestions import Suggestion
from app.services.ai.suggestion_generator import RuleBasedSuggestionGenerator, SuggestionGenerator
from app.services.utilities.cache_performance_monitor import CachePerformanceMonitor
from app.utils.time import utc_now

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_MINUTES = 5
DEFAULT_PLANT_TYPE = "Unknown"


@dataclass
class SuggestionResult:
    """A suggestion plus where it came from."""

    suggestion: Suggestion
    cached: bool
    model_tag: str

    def to_dict(self) -> dict[str, Any]:
        payload = self.suggestion.to_payload()
        payload["cached"] = self.cached
        return payload


@dataclass
class _ReadingLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class AISuggestionService:
    """
    Get-or-create access to cached suggestions.

    Args:
        repository: Suggestion store
        generator: Primary suggestion generator
        monitor: Receives hit/miss/error events
        fallback_generator: Used when the primary generator fails or times
            out; defaults to the rule table
        freshness_minutes: Look-back window for a cache hit
        generation_timeout_seconds: Upper bound on one generator call;
            ``None`` waits indefinitely
        default_plant_type: Label used when the caller gives none
    """

    def __init__(
        self,
        repository: SuggestionStore,
        generator: SuggestionGenerator,
        monitor: CachePerformanceMonitor,
        *,
        fallback_generator: SuggestionGenerator | None = None,
        freshness_minutes: float = DEFAULT_FRESHNESS_MINUTES,
        generation_timeout_seconds: float | None = None,
        default_plant_type: str = DEFAULT_PLANT_TYPE,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if freshness_minutes <= 0:
            raise ValueError("freshness_minutes must be positive")
        if generation_timeout_seconds is not None and generation_timeout_seconds <= 0:
            raise ValueError("generation_timeout_seconds must be positive or None")

        self._repository = repository
        self._generator = generator
        self._monitor = monitor
        if fallback_generator is None and not isinstance(generator, RuleBasedSuggestionGenerator):
            fallback_generator = RuleBasedSuggestionGenerator()
        self._fallback = fallback_generator
        self._freshness = timedelta(minutes=freshness_minutes)
        self._timeout = generation_timeout_seconds
        self._default_plant_type = default_plant_type
        self._clock = clock

        self._locks: dict[str, _ReadingLock] = {}
        self._locks_guard = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    @property
    def generator(self) -> SuggestionGenerator:
        return self._generator

    @property
    def freshness_minutes(self) -> float:
        return self._freshness.total_seconds() / 60.0

    @property
    def default_plant_type(self) -> str:
        return self._default_plant_type

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def get_or_create_suggestions(
        self,
        reading: SensorReading | dict[str, Any],
        rod_id: str | int,
        plant_type: str | None = None,
    ) -> SuggestionResult:
        """Return the cached suggestion for *reading*, generating it on a miss.

        Errors are recorded in the monitor under their classified bucket and
        re-raised.
        """
        if isinstance(reading, dict):
            reading = SensorReading.from_dict(reading)
        plant_type = plant_type or self._default_plant_type
        started = time.perf_counter()

        try:
            data_hash = reading_fingerprint(reading)
            with self._reading_lock(reading.id):
                since = self._clock() - self._freshness
                entry = self._repository.find_latest_for_reading(reading.id, since)
                if entry is not None:
                    suggestion = self._load_payload(entry)
                    elapsed = _elapsed_ms(started)
                    self._monitor.record_cache_hit(elapsed, entry.model_tag, rod_id, reading.id)
                    logger.debug(
                        "Suggestion cache HIT reading=%s hash=%s model=%s (%.1f ms)",
                        reading.id, data_hash, entry.model_tag, elapsed,
                    )
                    return SuggestionResult(suggestion=suggestion, cached=True, model_tag=entry.model_tag)

                suggestion, model_tag = self._generate(reading, plant_type, rod_id, started)

                # Older rows for this reading would otherwise accumulate
                self._repository.delete_by_reading_id(reading.id)
                self._repository.insert(
                    CacheEntryDraft(
                        reading_id=reading.id,
                        rod_id=str(rod_id),
                        plant_type=plant_type,
                        model_tag=model_tag,
                        suggestion=suggestion.to_payload(),
                        data_hash=data_hash,
                        created_at=self._clock(),
                    )
                )
                elapsed = _elapsed_ms(started)
                self._monitor.record_cache_miss(elapsed, model_tag, rod_id, reading.id)
                logger.debug(
                    "Suggestion cache MISS reading=%s hash=%s model=%s (%.1f ms)",
                    reading.id, data_hash, model_tag, elapsed,
                )
                return SuggestionResult(suggestion=suggestion, cached=False, model_tag=model_tag)
        except Exception as exc:
            bucket = classify_error(exc)
            self._monitor.record_error(
                bucket,
                str(exc) or type(exc).__name__,
                response_time_ms=_elapsed_ms(started),
                rod_id=rod_id,
                reading_id=reading.id,
            )
            logger.error("Suggestion lookup failed for reading %s [%s]: %s", reading.id, bucket, exc)
            raise

    def invalidate_reading(self, reading_id: str) -> int:
        """Drop every cached row for a reading, e.g. after it was corrected."""
        try:
            with self._reading_lock(str(reading_id)):
                deleted = self._repository.delete_by_reading_id(str(reading_id))
        except Exception as exc:
            self._monitor.record_error(classify_error(exc), str(exc), reading_id=reading_id)
            raise
        logger.debug("Invalidated %d cached suggestion(s) for reading %s", deleted, reading_id)
        return deleted

    def invalidate_rod(self, rod_id: str | int) -> int:
        """Drop every cached row owned by a rod."""
        try:
            deleted = self._repository.delete_by_rod(str(rod_id))
        except Exception as exc:
            self._monitor.record_error(classify_error(exc), str(exc), rod_id=rod_id)
            raise
        logger.debug("Invalidated %d cached suggestion(s) for rod %s", deleted, rod_id)
        return deleted

    def shutdown(self) -> None:
        """Stop the generation worker pool; in-flight calls are abandoned."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _generate(
        self,
        reading: SensorReading,
        plant_type: str,
        rod_id: str | int,
        started: float,
    ) -> tuple[Suggestion, str]:
        try:
            return self._call_generator(reading, plant_type)
        except Exception as exc:
            if self._fallback is None or self._fallback is self._generator:
                raise
            message = str(exc) or type(exc).__name__
            self._monitor.record_ai_error(
                message,
                response_time_ms=_elapsed_ms(started),
                rod_id=rod_id,
                reading_id=reading.id,
            )
            logger.warning(
                "Generator '%s' failed for reading %s (%s); using %s",
                self._generator.model_tag, reading.id, message, self._fallback.model_tag,
            )
        return self._fallback.generate_tagged(reading, plant_type)

    def _call_generator(self, reading: SensorReading, plant_type: str) -> tuple[Suggestion, str]:
        if self._timeout is None:
            return self._generator.generate_tagged(reading, plant_type)

        future = self._get_executor().submit(self._generator.generate_tagged, reading, plant_type)
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeoutError:
            future.cancel()
            raise GenerationTimeoutError(
                f"{self._generator.model_tag} generator timed out after {self._timeout:g}s",
                detail={"reading_id": reading.id},
            ) from None

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="suggestion-gen")
            return self._executor

    def _load_payload(self, entry: CacheEntry) -> Suggestion:
        try:
            return Suggestion.model_validate(entry.suggestion)
        except PydanticValidationError as exc:
            raise CacheLogicError(
                f"Stored suggestion {entry.id} for reading {entry.reading_id} is invalid "
                f"({exc.error_count()} validation errors)",
                detail={"entry_id": entry.id},
            ) from exc

    @contextmanager
    def _reading_lock(self, reading_id: str) -> Iterator[None]:
        with self._locks_guard:
            slot = self._locks.get(reading_id)
            if slot is None:
                slot = self._locks[reading_id] = _ReadingLock()
            slot.users += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._locks_guard:
                slot.users -= 1
                if slot.users == 0:
                    self._locks.pop(reading_id, None)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0
