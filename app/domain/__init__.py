"""
Domain Package
==============
Value objects, persistence protocols and the exception hierarchy shared by
the suggestion cache, the cleanup janitor and the performance monitor.
"""

from .cleanup import CleanupConfig, CleanupStats
from .sensor_reading import SENSOR_FIELDS, SensorReading, reading_fingerprint
from .suggestion_store import CacheEntry, CacheEntryDraft, RodCount, SuggestionStore

__all__ = [
    # Cleanup policy
    "CleanupConfig",
    "CleanupStats",
    # Sensor input
    "SENSOR_FIELDS",
    "SensorReading",
    "reading_fingerprint",
    # Persistence
    "CacheEntry",
    "CacheEntryDraft",
    "RodCount",
    "SuggestionStore",
]
