from __future__ import annotations

import sqlite3

import pytest

from app.domain.cleanup import CleanupConfig
from app.domain.exceptions import (
    AI_ERROR,
    CACHE_ERROR,
    DB_ERROR,
    CacheLogicError,
    GenerationTimeoutError,
    RepositoryError,
    ValidationError,
    classify_error,
)
from app.domain.sensor_reading import SensorReading, reading_fingerprint
from app.enums.cache import HealthStatus


def test_cleanup_config_round_trips_camel_case():
    config = CleanupConfig().merged({"suggestionTtlHours": 12, "enableLogging": False})

    assert config.to_dict() == {
        "suggestionTtlHours": 12,
        "maxSuggestionsPerRod": 50,
        "cleanupIntervalHours": 6.0,
        "enableLogging": False,
    }
    assert config.ttl_seconds == 12 * 3600


def test_cleanup_config_merge_leaves_original_untouched():
    original = CleanupConfig()
    original.merged({"max_suggestions_per_rod": 5})

    assert original.max_suggestions_per_rod == 50


def test_cleanup_config_rejects_bool_cap():
    with pytest.raises(ValidationError):
        CleanupConfig(max_suggestions_per_rod=True).validated()


@pytest.mark.parametrize(
    "exc, bucket",
    [
        (RepositoryError("Database error during suggestion insert"), DB_ERROR),
        (sqlite3.OperationalError("database is locked"), DB_ERROR),
        (GenerationTimeoutError("openai generator timed out"), AI_ERROR),
        (CacheLogicError("bad stored payload"), CACHE_ERROR),
        (RuntimeError("SQLite connection closed"), DB_ERROR),
        (RuntimeError("HuggingFace router returned 503"), AI_ERROR),
        (KeyError("watering"), CACHE_ERROR),
    ],
)
def test_classify_error(exc, bucket):
    assert classify_error(exc) == bucket


def test_error_http_status():
    assert ValidationError("x").http_status == 400
    assert GenerationTimeoutError("x").http_status == 504
    assert RepositoryError("x", detail={"op": "insert"}).detail == {"op": "insert"}


def test_reading_from_dict_accepts_camel_case_and_strings():
    reading = SensorReading.from_dict(
        {"readingId": 17, "timestamp": "2026-05-01T08:00:00Z", "moisture": "35.5", "rodId": 4}
    )

    assert reading.id == "17"
    assert reading.rod_id == "4"
    assert reading.moisture == 35.5
    assert reading.nitrogen is None
    assert reading.timestamp.tzinfo is not None


@pytest.mark.parametrize(
    "payload",
    [
        {"timestamp": "2026-05-01T08:00:00Z"},
        {"id": "rd-1", "timestamp": "yesterday"},
        {"id": "rd-1", "moisture": "wet"},
    ],
)
def test_reading_from_dict_rejects_bad_input(payload):
    with pytest.raises(ValidationError):
        SensorReading.from_dict(payload)


def test_fingerprint_is_stable_and_value_sensitive(make_reading):
    base = make_reading("rd-1")
    same_values = make_reading("rd-2")
    changed = make_reading("rd-1", moisture=56.0)
    int_vs_float = make_reading("rd-1", moisture=55)

    assert len(reading_fingerprint(base)) == 8
    assert reading_fingerprint(base) == reading_fingerprint(same_values)
    assert reading_fingerprint(base) == reading_fingerprint(int_vs_float)
    assert reading_fingerprint(base) != reading_fingerprint(changed)
    assert reading_fingerprint(make_reading(moisture=None)) != reading_fingerprint(make_reading(moisture=0))


@pytest.mark.parametrize(
    "score, status",
    [(95, HealthStatus.EXCELLENT), (75, HealthStatus.GOOD), (60, HealthStatus.FAIR), (40, HealthStatus.POOR), (39, HealthStatus.CRITICAL)],
)
def test_health_status_from_score(score, status):
    assert HealthStatus.from_score(score) == status
