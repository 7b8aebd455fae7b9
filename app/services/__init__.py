"""
Service Organization
====================
Services are organized by their lifecycle and instantiation pattern:

**ai/**
  Suggestion generation and the per-reading suggestion cache.
  Examples: AISuggestionService, RuleBasedSuggestionGenerator

**utilities/**
  Cache housekeeping shared by the whole application.
  Examples: CacheCleanupService, CachePerformanceMonitor

All of them are singletons wired by ServiceContainer.
"""

from .ai.suggestion_cache import AISuggestionService, SuggestionResult
from .utilities.cache_cleanup_service import CacheCleanupService
from .utilities.cache_performance_monitor import CachePerformanceMonitor

__all__ = [
    "AISuggestionService",
    "CacheCleanupService",
    "CachePerformanceMonitor",
    "SuggestionResult",
]
