from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.domain.suggestion_store import CacheEntry, CacheEntryDraft, RodCount
from app.utils.time import coerce_datetime, storage_timestamp
from infrastructure.database.decorators import translates_db_errors
from infrastructure.database.ops.suggestions import SuggestionOperations


@dataclass(frozen=True)
class SuggestionRepository:
    """SQLite implementation of :class:`~app.domain.suggestion_store.SuggestionStore`."""

    _backend: SuggestionOperations

    @translates_db_errors("suggestion lookup")
    def find_latest_for_reading(self, reading_id: str, since: datetime) -> CacheEntry | None:
        row = self._backend.get_latest_suggestion(str(reading_id), storage_timestamp(since))
        return _to_entry(row) if row else None

    @translates_db_errors("suggestion insert")
    def insert(self, draft: CacheEntryDraft) -> CacheEntry:
        row = self._backend.insert_suggestion(
            {
                "reading_id": str(draft.reading_id),
                "rod_id": str(draft.rod_id),
                "plant_type": draft.plant_type,
                "model": draft.model_tag,
                "data_hash": draft.data_hash,
                "suggestion": draft.suggestion,
                "created_at": storage_timestamp(draft.created_at),
            }
        )
        return _to_entry(row)

    @translates_db_errors("delete suggestions by reading")
    def delete_by_reading_id(self, reading_id: str) -> int:
        return self._backend.delete_suggestions_for_reading(str(reading_id))

    @translates_db_errors("delete expired suggestions")
    def delete_older_than(self, cutoff: datetime) -> int:
        return self._backend.delete_suggestions_older_than(storage_timestamp(cutoff))

    @translates_db_errors("delete suggestions by id")
    def delete_by_ids(self, ids: set[int]) -> int:
        return self._backend.delete_suggestions_by_ids(sorted(ids))

    @translates_db_errors("delete suggestions by rod")
    def delete_by_rod(self, rod_id: str) -> int:
        return self._backend.delete_suggestions_for_rod(str(rod_id))

    @translates_db_errors("suggestion count")
    def count_all(self) -> int:
        return self._backend.count_suggestions()

    @translates_db_errors("suggestion count by rod")
    def count_by_rod(self, rod_id: str) -> int:
        return self._backend.count_suggestions(rod_id=str(rod_id))

    @translates_db_errors("stale suggestion count")
    def count_older_than(self, cutoff: datetime) -> int:
        return self._backend.count_suggestions(older_than=storage_timestamp(cutoff))

    @translates_db_errors("suggestion count by model")
    def count_by_model(self) -> dict[str, int]:
        return self._backend.count_suggestions_by_model()

    @translates_db_errors("suggestion group count")
    def group_counts_by_rod(self, min_count: int | None = None) -> list[RodCount]:
        rows = self._backend.get_rod_suggestion_counts(min_count=min_count)
        return [RodCount(rod_id=r["rod_id"], count=r["count"]) for r in rows]

    @translates_db_errors("oldest suggestions lookup")
    def oldest_for_rod(self, rod_id: str, limit: int) -> list[CacheEntry]:
        if limit <= 0:
            return []
        rows = self._backend.get_oldest_suggestions_for_rod(str(rod_id), limit)
        return [_to_entry(r) for r in rows]

    @translates_db_errors("top rods lookup")
    def top_rods_by_count(self, limit: int) -> list[RodCount]:
        rows = self._backend.get_rod_suggestion_counts(limit=limit)
        return [RodCount(rod_id=r["rod_id"], count=r["count"]) for r in rows]


def _to_entry(row: dict[str, Any]) -> CacheEntry:
    return CacheEntry(
        id=int(row["id"]),
        reading_id=row["reading_id"],
        rod_id=row["rod_id"],
        plant_type=row["plant_type"],
        model_tag=row["model"],
        suggestion=row.get("suggestion") or {},
        created_at=coerce_datetime(row["created_at"]),
        data_hash=row.get("data_hash"),
    )
