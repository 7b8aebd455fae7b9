"""
Shared test fixtures for the FarmRod advisor test suite.

Provides:
- In-memory SQLite database with the suggestion table created
- Repository and performance monitor wired to the test database
- Suggestion and cache cleanup services driven by a controllable clock
- A mock LLM backend for generator tests
- Helpers for building readings and seeding cache rows

Usage:
    def test_example(suggestion_service, make_reading):
        result = suggestion_service.get_or_create_suggestions(make_reading(), "rod-1")
        assert result.cached is False
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock

import pytest

from app.domain.cleanup import CleanupConfig
from app.domain.sensor_reading import SensorReading
from app.domain.suggestion_store import CacheEntryDraft
from app.services.ai.llm_backends import LLMBackend, LLMResponse
from app.services.ai.suggestion_cache import AISuggestionService
from app.services.ai.suggestion_generator import RuleBasedSuggestionGenerator
from app.services.utilities.cache_cleanup_service import CacheCleanupService
from app.services.utilities.cache_performance_monitor import CachePerformanceMonitor
from infrastructure.database.repositories.suggestions import SuggestionRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("app").setLevel(logging.WARNING)

BASE_TIME = datetime(2026, 5, 1, 8, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler():
    """In-memory SQLite database with all tables created.

    Each test gets a fresh database, no cross-test contamination.
    """
    handler = SQLiteDatabaseHandler(":memory:")
    handler.create_tables()
    yield handler
    handler.close()


@pytest.fixture()
def db_connection(db_handler):
    """Raw sqlite3 connection for direct SQL in tests."""
    with db_handler.connection() as conn:
        yield conn


@pytest.fixture()
def suggestion_repo(db_handler):
    """SuggestionRepository backed by the in-memory DB."""
    return SuggestionRepository(db_handler)


# ========================== Service Fixtures ===============================


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def monitor(clock):
    return CachePerformanceMonitor(max_events=1000, clock=clock)


@pytest.fixture()
def rule_generator():
    return RuleBasedSuggestionGenerator()


@pytest.fixture()
def suggestion_service(suggestion_repo, rule_generator, monitor, clock):
    service = AISuggestionService(suggestion_repo, rule_generator, monitor, clock=clock)
    yield service
    service.shutdown()


@pytest.fixture()
def cleanup_config():
    return CleanupConfig(
        suggestion_ttl_hours=24,
        max_suggestions_per_rod=3,
        cleanup_interval_hours=6,
        enable_logging=False,
    )


@pytest.fixture()
def cleanup_service(suggestion_repo, monitor, cleanup_config, clock):
    service = CacheCleanupService(suggestion_repo, monitor, cleanup_config, clock=clock)
    yield service
    service.shutdown()


# ========================== Mock Service Fixtures ==========================


@pytest.fixture()
def mock_backend():
    """Mock LLM backend answering with a well-formed suggestion."""
    backend = MagicMock(spec=LLMBackend)
    backend.name = "huggingface"
    backend.is_available = True
    backend.generate.return_value = LLMResponse(
        text=(
            '{"watering": {"recommendation": "soon", "hoursUntilNext": 3, '
            '"reason": "Moisture trending down", "urgency": "medium"}, '
            '"fertilizing": {"recommendation": "later", "daysUntilNext": 10, '
            '"reason": "NPK adequate", "type": "balanced", "urgency": "low"}, '
            '"plantHealth": {"score": 82, "status": "good", "concerns": []}}'
        ),
        model="deepseek-ai/DeepSeek-V3.1-Terminus:novita",
        latency_ms=12.0,
    )
    return backend


# ========================== Helpers ========================================


@pytest.fixture()
def make_reading(clock):
    """Factory for sensor readings with healthy defaults."""

    def _make(reading_id: str = "rd-1", **overrides: Any) -> SensorReading:
        values: dict[str, Any] = {
            "id": reading_id,
            "timestamp": clock(),
            "temperature": 22.0,
            "moisture": 55.0,
            "ph": 6.5,
            "conductivity": 1.2,
            "nitrogen": 40.0,
            "phosphorus": 25.0,
            "potassium": 120.0,
        }
        values.update(overrides)
        return SensorReading(**values)

    return _make


@pytest.fixture()
def seed_entry(suggestion_repo, rule_generator, make_reading, clock):
    """Insert a cache row directly through the repository."""

    def _seed(
        reading_id: str,
        rod_id: str = "rod-1",
        *,
        age: timedelta = timedelta(0),
        model_tag: str = "rule_based",
        payload: dict[str, Any] | None = None,
    ):
        if payload is None:
            payload = rule_generator.generate(make_reading(reading_id), "Tomato").to_payload()
        return suggestion_repo.insert(
            CacheEntryDraft(
                reading_id=reading_id,
                rod_id=rod_id,
                plant_type="Tomato",
                model_tag=model_tag,
                suggestion=payload,
                created_at=clock() - age,
            )
        )

    return _seed
