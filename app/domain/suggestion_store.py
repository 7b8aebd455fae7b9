"""
Suggestion Store Protocol
=========================

Defines the persistence interface for cached suggestions.
The store round-trips the suggestion payload as an opaque dict; the
service layer owns its schema and validates it on read.

Implementations can use SQLite, PostgreSQL, or other storage.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from app.utils.time import utc_now


@dataclass
class CacheEntryDraft:
    """A cache row that has not been persisted yet."""

    reading_id: str
    rod_id: str
    plant_type: str
    model_tag: str
    suggestion: dict[str, Any]
    data_hash: str | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class CacheEntry:
    """A persisted cache row."""

    id: int
    reading_id: str
    rod_id: str
    plant_type: str
    model_tag: str
    suggestion: dict[str, Any]
    created_at: datetime
    data_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "readingId": self.reading_id,
            "rodId": self.rod_id,
            "plantType": self.plant_type,
            "model": self.model_tag,
            "dataHash": self.data_hash,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class RodCount:
    """Number of cache rows owned by one rod."""

    rod_id: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"rodId": self.rod_id, "count": self.count}


class SuggestionStore(Protocol):
    """Protocol for suggestion-cache persistence operations.

    Every method raises :class:`~app.domain.exceptions.RepositoryError`
    when the backing store fails.
    """

    @abstractmethod
    def find_latest_for_reading(self, reading_id: str, since: datetime) -> CacheEntry | None:
        """Most recent entry for *reading_id* created at or after *since*."""
        ...

    @abstractmethod
    def insert(self, draft: CacheEntryDraft) -> CacheEntry:
        """Persist *draft* and return it with its assigned id."""
        ...

    @abstractmethod
    def delete_by_reading_id(self, reading_id: str) -> int:
        """Delete every entry for a reading; returns the deleted count."""
        ...

    @abstractmethod
    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete entries with ``created_at < cutoff``."""
        ...

    @abstractmethod
    def delete_by_ids(self, ids: set[int]) -> int:
        """Delete entries by primary key."""
        ...

    @abstractmethod
    def delete_by_rod(self, rod_id: str) -> int:
        """Delete every entry owned by a rod."""
        ...

    @abstractmethod
    def count_all(self) -> int:
        ...

    @abstractmethod
    def count_by_rod(self, rod_id: str) -> int:
        ...

    @abstractmethod
    def count_older_than(self, cutoff: datetime) -> int:
        ...

    @abstractmethod
    def count_by_model(self) -> dict[str, int]:
        """Entry counts keyed by model tag (tags without entries are absent)."""
        ...

    @abstractmethod
    def group_counts_by_rod(self, min_count: int | None = None) -> list[RodCount]:
        """Per-rod counts; with *min_count*, only rods holding more than that."""
        ...

    @abstractmethod
    def oldest_for_rod(self, rod_id: str, limit: int) -> list[CacheEntry]:
        """The *limit* oldest entries of a rod, ascending ``created_at``."""
        ...

    @abstractmethod
    def top_rods_by_count(self, limit: int) -> list[RodCount]:
        """Rods with the most entries, descending."""
        ...
