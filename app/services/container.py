from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from app.config import AppConfig
from app.services.ai.suggestion_cache import AISuggestionService
from app.services.ai.suggestion_generator import SuggestionGenerator, build_generator
from app.services.utilities.cache_cleanup_service import CacheCleanupService
from app.services.utilities.cache_performance_monitor import CachePerformanceMonitor
from infrastructure.database.repositories.suggestions import SuggestionRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage the advisor's backend services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    suggestion_repo: SuggestionRepository
    monitor: CachePerformanceMonitor
    suggestion_generator: SuggestionGenerator
    suggestion_service: AISuggestionService
    cleanup_service: CacheCleanupService
    _shutdown_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _is_shut_down: bool = field(default=False, init=False, repr=False)

    @classmethod
    def build(cls, config: AppConfig) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
        """
        logger.info("Building ServiceContainer...")

        database = SQLiteDatabaseHandler(config.database_path)
        database.create_tables()
        suggestion_repo = SuggestionRepository(database)

        monitor = CachePerformanceMonitor(max_events=config.monitor_max_events)
        generator = build_generator(config, monitor=monitor)

        suggestion_service = AISuggestionService(
            suggestion_repo,
            generator,
            monitor,
            freshness_minutes=config.suggestion_freshness_minutes,
            generation_timeout_seconds=config.generation_timeout_seconds,
            default_plant_type=config.default_plant_type,
        )
        cleanup_service = CacheCleanupService(
            suggestion_repo,
            monitor,
            config.cleanup_config(),
        )

        container = cls(
            config=config,
            database=database,
            suggestion_repo=suggestion_repo,
            monitor=monitor,
            suggestion_generator=generator,
            suggestion_service=suggestion_service,
            cleanup_service=cleanup_service,
        )

        if config.cache_auto_cleanup:
            cleanup_service.start_auto_cleanup()
            logger.info("✓ Cache auto cleanup started")

        logger.info("ServiceContainer built successfully (generator=%s).", generator.model_tag)
        return container

    def shutdown(self) -> None:
        """Stop background work and close the database. Later calls do nothing."""
        with self._shutdown_lock:
            if self._is_shut_down:
                return
            self._is_shut_down = True

        try:
            self.cleanup_service.shutdown()
            logger.info("✓ Cache cleanup timer stopped")
        except Exception as e:
            logger.warning("Failed to stop cache cleanup timer: %s", e)

        try:
            self.suggestion_service.shutdown()
            logger.info("✓ Suggestion generator pool stopped")
        except Exception as e:
            logger.warning("Failed to stop suggestion generator pool: %s", e)

        self.database.close()
        logger.info("ServiceContainer shutdown complete.")
