"""
Cache Performance Monitor
=========================

In-process metrics for the suggestion cache: hit rate, response latency,
which backend produced each suggestion, and a three-way error taxonomy
(advisory backend, cache logic, persistence).

Events are kept in a bounded ring buffer; the oldest event is dropped once
the buffer is full. Every read and write holds the same lock, so the
counters never expose a half-applied update to another thread.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Callable

from app.domain.exceptions import AI_ERROR, CACHE_ERROR, DB_ERROR
from app.enums.cache import CacheEventType, ModelTag
from app.utils.time import utc_now

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 1000


@dataclass
class PerformanceEvent:
    """One recorded cache outcome or error."""

    timestamp: datetime
    type: CacheEventType
    response_time_ms: float | None = None
    model_tag: str | None = None
    rod_id: str | int | None = None
    reading_id: str | int | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "type": str(self.type),
        }
        if self.response_time_ms is not None:
            data["responseTime"] = round(self.response_time_ms, 3)
        if self.model_tag is not None:
            data["modelType"] = self.model_tag
        if self.rod_id is not None:
            data["rodId"] = self.rod_id
        if self.reading_id is not None:
            data["readingId"] = self.reading_id
        if self.error_message is not None:
            data["errorMessage"] = self.error_message
        return data


@dataclass
class ErrorStats:
    ai_errors: int = 0
    cache_errors: int = 0
    db_errors: int = 0

    @property
    def total(self) -> int:
        return self.ai_errors + self.cache_errors + self.db_errors

    def to_dict(self) -> dict[str, int]:
        return {
            "aiErrors": self.ai_errors,
            "cacheErrors": self.cache_errors,
            "dbErrors": self.db_errors,
        }


def _seed_model_stats() -> dict[str, int]:
    return {tag: 0 for tag in ModelTag.known()}


@dataclass
class CacheMetrics:
    """Running aggregates since the last reset."""

    last_reset: datetime
    total_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    hit_rate: float = 0.0
    average_response_time: float = 0.0
    total_response_time: float = 0.0
    model_type_stats: dict[str, int] = field(default_factory=_seed_model_stats)
    error_stats: ErrorStats = field(default_factory=ErrorStats)

    def copy(self) -> "CacheMetrics":
        return CacheMetrics(
            last_reset=self.last_reset,
            total_requests=self.total_requests,
            cache_hits=self.cache_hits,
            cache_misses=self.cache_misses,
            hit_rate=self.hit_rate,
            average_response_time=self.average_response_time,
            total_response_time=self.total_response_time,
            model_type_stats=dict(self.model_type_stats),
            error_stats=ErrorStats(
                ai_errors=self.error_stats.ai_errors,
                cache_errors=self.error_stats.cache_errors,
                db_errors=self.error_stats.db_errors,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "cacheHits": self.cache_hits,
            "cacheMisses": self.cache_misses,
            "hitRate": self.hit_rate,
            "averageResponseTime": self.average_response_time,
            "totalResponseTime": self.total_response_time,
            "lastReset": self.last_reset.isoformat(),
            "modelTypeStats": dict(self.model_type_stats),
            "errorStats": self.error_stats.to_dict(),
        }


@dataclass
class RodCacheMetrics:
    rod_id: str | int
    hits: int
    misses: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "rodId": self.rod_id,
            "hits": self.hits,
            "misses": self.misses,
            "hitRate": self.hit_rate,
        }


class CachePerformanceMonitor:
    """Thread-safe recorder for suggestion-cache events and aggregates."""

    def __init__(
        self,
        max_events: int = DEFAULT_MAX_EVENTS,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if max_events <= 0:
            raise ValueError("max_events must be positive")
        self._clock = clock
        self._lock = Lock()
        self._events: deque[PerformanceEvent] = deque(maxlen=max_events)
        self._metrics = CacheMetrics(last_reset=self._clock())

    @property
    def max_events(self) -> int:
        return self._events.maxlen or DEFAULT_MAX_EVENTS

    # ------------------------------------------------------------------ #
    # Recording
    # ------------------------------------------------------------------ #

    def record_cache_hit(
        self,
        response_time_ms: float,
        model_tag: str,
        rod_id: str | int | None = None,
        reading_id: str | int | None = None,
    ) -> None:
        self._record_request(CacheEventType.CACHE_HIT, response_time_ms, model_tag, rod_id, reading_id)

    def record_cache_miss(
        self,
        response_time_ms: float,
        model_tag: str,
        rod_id: str | int | None = None,
        reading_id: str | int | None = None,
    ) -> None:
        self._record_request(CacheEventType.CACHE_MISS, response_time_ms, model_tag, rod_id, reading_id)

    def record_ai_error(
        self,
        error_message: str,
        response_time_ms: float | None = None,
        rod_id: str | int | None = None,
        reading_id: str | int | None = None,
    ) -> None:
        self._record_error(CacheEventType.AI_ERROR, error_message, response_time_ms, rod_id, reading_id)

    def record_cache_error(
        self,
        error_message: str,
        rod_id: str | int | None = None,
        reading_id: str | int | None = None,
    ) -> None:
        self._record_error(CacheEventType.CACHE_ERROR, error_message, None, rod_id, reading_id)

    def record_db_error(
        self,
        error_message: str,
        rod_id: str | int | None = None,
        reading_id: str | int | None = None,
    ) -> None:
        self._record_error(CacheEventType.DB_ERROR, error_message, None, rod_id, reading_id)

    def record_error(
        self,
        bucket: str,
        error_message: str,
        *,
        response_time_ms: float | None = None,
        rod_id: str | int | None = None,
        reading_id: str | int | None = None,
    ) -> None:
        """Record an error under a bucket returned by ``classify_error``."""
        event_type = {
            AI_ERROR: CacheEventType.AI_ERROR,
            DB_ERROR: CacheEventType.DB_ERROR,
            CACHE_ERROR: CacheEventType.CACHE_ERROR,
        }.get(bucket, CacheEventType.CACHE_ERROR)
        self._record_error(event_type, error_message, response_time_ms, rod_id, reading_id)

    def _record_request(
        self,
        event_type: CacheEventType,
        response_time_ms: float,
        model_tag: str,
        rod_id: str | int | None,
        reading_id: str | int | None,
    ) -> None:
        response_time_ms = max(0.0, float(response_time_ms))
        tag = str(model_tag)
        event = PerformanceEvent(
            timestamp=self._clock(),
            type=event_type,
            response_time_ms=response_time_ms,
            model_tag=tag,
            rod_id=rod_id,
            reading_id=reading_id,
        )
        with self._lock:
            self._events.append(event)
            m = self._metrics
            m.total_requests += 1
            if event_type == CacheEventType.CACHE_HIT:
                m.cache_hits += 1
            else:
                m.cache_misses += 1
            m.total_response_time += response_time_ms
            m.average_response_time = m.total_response_time / m.total_requests
            m.hit_rate = m.cache_hits / m.total_requests
            m.model_type_stats[tag] = m.model_type_stats.get(tag, 0) + 1

    def _record_error(
        self,
        event_type: CacheEventType,
        error_message: str,
        response_time_ms: float | None,
        rod_id: str | int | None,
        reading_id: str | int | None,
    ) -> None:
        event = PerformanceEvent(
            timestamp=self._clock(),
            type=event_type,
            response_time_ms=response_time_ms,
            rod_id=rod_id,
            reading_id=reading_id,
            error_message=error_message,
        )
        with self._lock:
            self._events.append(event)
            stats = self._metrics.error_stats
            if event_type == CacheEventType.AI_ERROR:
                stats.ai_errors += 1
            elif event_type == CacheEventType.DB_ERROR:
                stats.db_errors += 1
            else:
                stats.cache_errors += 1

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_metrics(self) -> CacheMetrics:
        with self._lock:
            return self._metrics.copy()

    def get_recent_events(self, limit: int = 50) -> list[PerformanceEvent]:
        """Most recent *limit* events, newest first."""
        if limit <= 0:
            return []
        with self._lock:
            events = list(self._events)
        return list(reversed(events[-limit:]))

    def get_events_in_range(self, start: datetime, end: datetime) -> list[PerformanceEvent]:
        """Events with ``start <= timestamp <= end``, oldest first."""
        with self._lock:
            return [e for e in self._events if start <= e.timestamp <= end]

    def get_rod_metrics(self, rod_id: str | int) -> RodCacheMetrics:
        """Hit/miss counts for one rod, over the events still in the buffer."""
        key = str(rod_id)
        hits = misses = 0
        with self._lock:
            for event in self._events:
                if event.rod_id is None or str(event.rod_id) != key:
                    continue
                if event.type == CacheEventType.CACHE_HIT:
                    hits += 1
                elif event.type == CacheEventType.CACHE_MISS:
                    misses += 1
        return RodCacheMetrics(rod_id=rod_id, hits=hits, misses=misses)

    def reset_metrics(self) -> None:
        with self._lock:
            self._events.clear()
            self._metrics = CacheMetrics(last_reset=self._clock())
        logger.info("Cache performance metrics reset")

    # ------------------------------------------------------------------ #
    # Reporting
    # ------------------------------------------------------------------ #

    def get_summary_report(self) -> str:
        """Plain-text report for dashboards and log dumps."""
        metrics = self.get_metrics()
        uptime_hours = (self._clock() - metrics.last_reset).total_seconds() / 3600.0

        lines = [
            "AI Suggestions Cache Performance Report",
            "=======================================",
            "Overall Stats:",
            f"   • Total Requests: {metrics.total_requests}",
            f"   • Cache Hit Rate: {metrics.hit_rate * 100:.1f}% "
            f"({metrics.cache_hits} hits, {metrics.cache_misses} misses)",
            f"   • Average Response: {metrics.average_response_time:.1f}ms",
            f"   • Uptime: {uptime_hours:.1f} hours",
            "",
            "Model Usage:",
        ]
        for tag, count in metrics.model_type_stats.items():
            lines.append(f"   • {tag}: {count} requests")
        lines += [
            "",
            "Error Summary:",
            f"   • AI API Errors: {metrics.error_stats.ai_errors}",
            f"   • Cache Errors: {metrics.error_stats.cache_errors}",
            f"   • DB Errors: {metrics.error_stats.db_errors}",
            "",
            "Performance Insights:",
        ]
        lines += [f"   {insight}" for insight in self._generate_insights(metrics)]
        return "\n".join(lines)

    @staticmethod
    def _generate_insights(metrics: CacheMetrics) -> list[str]:
        insights: list[str] = []
        requests = metrics.total_requests

        if metrics.hit_rate > 0.8:
            insights.append("Excellent cache performance (>80% hit rate)")
        elif metrics.hit_rate > 0.6:
            insights.append("Good cache performance (60-80% hit rate)")
        elif metrics.hit_rate > 0.3:
            insights.append("Moderate cache performance (30-60% hit rate)")
        elif requests > 0:
            insights.append("Low cache performance (<30% hit rate) - consider cache strategy review")

        if metrics.average_response_time < 100:
            insights.append("Fast response times (<100ms average)")
        elif metrics.average_response_time < 500:
            insights.append("Moderate response times (100-500ms average)")
        elif requests > 0:
            insights.append("Slow response times (>500ms average) - performance optimization needed")

        total_model = sum(metrics.model_type_stats.values())
        if total_model > 0:
            rule_pct = metrics.model_type_stats.get(ModelTag.RULE_BASED.value, 0) / total_model * 100
            insights.append(f"{rule_pct:.1f}% rule-based, {100 - rule_pct:.1f}% AI-powered")

        total_errors = metrics.error_stats.total
        if requests > 0:
            if total_errors == 0:
                insights.append("Zero errors - system running smoothly")
            else:
                insights.append(f"{total_errors / requests * 100:.1f}% error rate ({total_errors} errors)")

        return insights
