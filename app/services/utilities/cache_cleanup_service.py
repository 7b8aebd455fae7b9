"""
Cache Cleanup Service
=====================

Janitor for the suggestion cache. Two independent retention rules:

1. **TTL** - rows older than ``suggestion_ttl_hours`` are deleted.
2. **Per-rod cap** - when a rod owns more than ``max_suggestions_per_rod``
   rows, the oldest are deleted (``0`` disables this rule).

Cleanup runs on demand or from a daemon timer thread. The policy can be
replaced at runtime; a running timer is restarted so a new interval takes
effect immediately.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Callable

from app.domain.cleanup import CleanupConfig, CleanupStats
from app.domain.exceptions import ValidationError
from app.domain.suggestion_store import SuggestionStore
from app.enums.cache import ModelTag
from app.services.utilities.cache_performance_monitor import CachePerformanceMonitor
from app.utils.time import as_utc, utc_now

logger = logging.getLogger(__name__)

TOP_RODS_LIMIT = 20
# Longest single Event.wait; long intervals are waited out in slices
MAX_WAIT_SECONDS = 3600.0


class CacheCleanupService:
    """Timer-driven and on-demand retention for cached suggestions."""

    def __init__(
        self,
        repository: SuggestionStore,
        monitor: CachePerformanceMonitor,
        config: CleanupConfig | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repository = repository
        self._monitor = monitor
        self._config = (config or CleanupConfig()).validated()
        self._clock = clock

        self._state_lock = threading.RLock()
        self._thread: threading.Thread | None = None
        self._stop_event: threading.Event | None = None
        self._last_cleanup: datetime | None = None

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> CleanupConfig:
        return self._config

    def get_config(self) -> CleanupConfig:
        # CleanupConfig is frozen, so handing it out is a safe copy
        return self._config

    def configure(self, partial: dict[str, Any]) -> CleanupConfig:
        """Merge *partial* into the live policy (camelCase or snake_case keys).

        Raises ValidationError on unknown keys or invalid values; the
        previous policy stays in force in that case.
        """
        with self._state_lock:
            self._config = self._config.merged(partial)
            if self.is_running:
                self._stop_timer()
                self._start_timer()
            config = self._config
        if config.enable_logging:
            logger.info("Cache cleanup configured: %s", config.to_dict())
        return config

    # ------------------------------------------------------------------ #
    # Timer lifecycle
    # ------------------------------------------------------------------ #

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def last_cleanup(self) -> datetime | None:
        return self._last_cleanup

    @property
    def next_cleanup(self) -> datetime | None:
        """Only known while the timer runs and after one cleanup completed."""
        if not self.is_running or self._last_cleanup is None:
            return None
        return self._last_cleanup + timedelta(hours=self._config.cleanup_interval_hours)

    def start_auto_cleanup(self) -> None:
        """Start the timer; restarts it when already running."""
        with self._state_lock:
            if self.is_running:
                self._stop_timer()
            self._start_timer()
            config = self._config
        if config.enable_logging:
            logger.info("Auto cleanup started (interval: %sh)", config.cleanup_interval_hours)

    def stop_auto_cleanup(self) -> None:
        """Stop the timer. Safe to call in any state."""
        with self._state_lock:
            was_running = self._stop_timer()
        if was_running and self._config.enable_logging:
            logger.info("Auto cleanup stopped")

    def shutdown(self) -> None:
        self.stop_auto_cleanup()

    def _start_timer(self) -> None:
        stop_event = threading.Event()
        interval = self._config.interval_seconds
        thread = threading.Thread(
            target=self._timer_loop,
            args=(stop_event, interval),
            daemon=True,
            name="CacheCleanupTimer",
        )
        self._stop_event = stop_event
        self._thread = thread
        thread.start()

    def _stop_timer(self) -> bool:
        thread, event = self._thread, self._stop_event
        self._thread = None
        self._stop_event = None
        if thread is None or event is None:
            return False
        event.set()
        if thread is not threading.current_thread():
            thread.join(timeout=5.0)
        return True

    @staticmethod
    def _wait_interval(stop_event: threading.Event, interval: float) -> bool:
        """Sleep for *interval* seconds; ``True`` when stopped first."""
        deadline = time.monotonic() + interval
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return stop_event.is_set()
            if stop_event.wait(min(remaining, MAX_WAIT_SECONDS)):
                return True

    def _timer_loop(self, stop_event: threading.Event, interval: float) -> None:
        while not self._wait_interval(stop_event, interval):
            try:
                stats = self.run_cleanup()
                if self._config.enable_logging:
                    logger.info("Auto cleanup completed: %s", stats.to_dict())
            except Exception as exc:
                # One failed run must not kill the timer
                logger.exception("Auto cleanup failed: %s", exc)
                self._monitor.record_cache_error(f"Auto cleanup failed: {exc}")

    # ------------------------------------------------------------------ #
    # Cleanup
    # ------------------------------------------------------------------ #

    def run_cleanup(self) -> CleanupStats:
        """Apply the TTL rule, then the per-rod cap, and report what was deleted.

        Persistence errors are recorded as ``db_error`` and re-raised.
        """
        config = self._config
        started = time.perf_counter()
        expired = 0
        excess = 0

        try:
            expired_cutoff = self._clock() - timedelta(hours=config.suggestion_ttl_hours)
            expired = self._repository.delete_older_than(expired_cutoff)

            if config.max_suggestions_per_rod > 0:
                cap = config.max_suggestions_per_rod
                for group in self._repository.group_counts_by_rod(min_count=cap):
                    overflow = group.count - cap
                    oldest = self._repository.oldest_for_rod(group.rod_id, overflow)
                    if oldest:
                        excess += self._repository.delete_by_ids({entry.id for entry in oldest})
        except Exception as exc:
            self._monitor.record_db_error(f"Cache cleanup failed: {exc}")
            raise

        finished = self._clock()
        self._last_cleanup = finished
        stats = CleanupStats(
            expired_suggestions=expired,
            excess_suggestions=excess,
            cleanup_duration_ms=(time.perf_counter() - started) * 1000.0,
            timestamp=finished,
        )
        if config.enable_logging and stats.total_deleted > 0:
            logger.info(
                "Cache cleanup completed: deleted %d suggestions (%d expired, %d excess) in %.1fms",
                stats.total_deleted, expired, excess, stats.cleanup_duration_ms,
            )
        return stats

    def cleanup_rod(self, rod_id: str | int, keep_count: int | None = None) -> int:
        """Keep only the newest *keep_count* rows of one rod (default: the cap)."""
        keep = self._config.max_suggestions_per_rod if keep_count is None else keep_count
        if isinstance(keep, bool) or not isinstance(keep, int) or keep < 0:
            raise ValidationError("keepCount must be an integer >= 0")

        rod_key = str(rod_id)
        try:
            total = self._repository.count_by_rod(rod_key)
            if total <= keep:
                return 0
            oldest = self._repository.oldest_for_rod(rod_key, total - keep)
            deleted = self._repository.delete_by_ids({entry.id for entry in oldest}) if oldest else 0
        except Exception as exc:
            self._monitor.record_db_error(f"Rod cleanup failed: {exc}", rod_id=rod_id)
            raise

        if self._config.enable_logging and deleted > 0:
            logger.info("Cleaned up rod %s: deleted %d old suggestions", rod_key, deleted)
        return deleted

    def clear_all(self) -> CleanupStats:
        """Delete every cached suggestion, then restore the live policy."""
        with self._state_lock:
            snapshot = self._config
            self._config = snapshot.merged({"suggestion_ttl_hours": 0, "max_suggestions_per_rod": 0})
            try:
                stats = self.run_cleanup()
            finally:
                self._config = snapshot
        logger.warning("Suggestion cache cleared: %d rows deleted", stats.total_deleted)
        return stats

    # ------------------------------------------------------------------ #
    # Reporting
    # ------------------------------------------------------------------ #

    def is_suggestion_stale(self, created_at: datetime) -> bool:
        """Naive *created_at* values are taken as UTC."""
        return as_utc(created_at) < self._clock() - timedelta(hours=self._config.suggestion_ttl_hours)

    def get_cache_stats(self) -> dict[str, Any]:
        """Row counts by model, age and rod, plus the cleanup schedule."""
        config = self._config
        total = self._repository.count_all()

        by_model = {tag: 0 for tag in ModelTag.known()}
        by_model.update(self._repository.count_by_model())

        stale_cutoff = self._clock() - timedelta(hours=config.suggestion_ttl_hours)
        stale = self._repository.count_older_than(stale_cutoff)
        top_rods = self._repository.top_rods_by_count(TOP_RODS_LIMIT)

        return {
            "totalSuggestions": total,
            "suggestionsByModel": by_model,
            "suggestionsByAge": {"fresh": total - stale, "stale": stale},
            "suggestionsByRod": [rod.to_dict() for rod in top_rods],
            "lastCleanup": _iso(self._last_cleanup),
            "nextCleanup": _iso(self.next_cleanup),
        }

    def get_status(self) -> dict[str, Any]:
        return {
            "isAutoCleanupRunning": self.is_running,
            "config": self._config.to_dict(),
            "lastCleanup": _iso(self._last_cleanup),
            "nextCleanup": _iso(self.next_cleanup),
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
