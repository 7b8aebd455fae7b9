from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

# Column list shared by every SELECT that returns full rows
_ROW_COLUMNS = "id, reading_id, rod_id, plant_type, model, data_hash, suggestion, created_at"


class SuggestionOperations:
    """Database operations for the AISuggestionCache table.

    Timestamps arrive already formatted by ``storage_timestamp`` so that
    string comparison in SQL is chronological. ``sqlite3.Error`` propagates
    to the repository, which translates it.
    """

    def create_suggestion_tables(self, db: sqlite3.Connection) -> None:
        db.execute(
            """
            CREATE TABLE IF NOT EXISTS AISuggestionCache (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                reading_id TEXT NOT NULL,
                rod_id TEXT NOT NULL,
                plant_type TEXT NOT NULL DEFAULT 'Unknown',
                model TEXT NOT NULL DEFAULT 'rule_based',
                data_hash TEXT,
                suggestion TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        db.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_ai_suggestion_reading ON AISuggestionCache(reading_id)"
        )
        db.execute(
            "CREATE INDEX IF NOT EXISTS idx_ai_suggestion_rod_created ON AISuggestionCache(rod_id, created_at)"
        )
        db.execute("CREATE INDEX IF NOT EXISTS idx_ai_suggestion_created ON AISuggestionCache(created_at)")

    # --- Reads ---------------------------------------------------------------
    def get_latest_suggestion(self, reading_id: str, since: str) -> Optional[Dict[str, Any]]:
        with self.connection() as db:
            row = db.execute(
                f"""
                SELECT {_ROW_COLUMNS} FROM AISuggestionCache
                WHERE reading_id = ? AND created_at >= ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (reading_id, since),
            ).fetchone()
        return self._decode_row(row) if row else None

    def get_oldest_suggestions_for_rod(self, rod_id: str, limit: int) -> List[Dict[str, Any]]:
        with self.connection() as db:
            rows = db.execute(
                f"""
                SELECT {_ROW_COLUMNS} FROM AISuggestionCache
                WHERE rod_id = ?
                ORDER BY created_at ASC, id ASC
                LIMIT ?
                """,
                (rod_id, limit),
            ).fetchall()
        return [self._decode_row(r) for r in rows]

    def count_suggestions(self, rod_id: Optional[str] = None, older_than: Optional[str] = None) -> int:
        query = "SELECT COUNT(*) FROM AISuggestionCache WHERE 1=1"
        params: List[Any] = []
        if rod_id is not None:
            query += " AND rod_id = ?"
            params.append(rod_id)
        if older_than is not None:
            query += " AND created_at < ?"
            params.append(older_than)
        with self.connection() as db:
            return int(db.execute(query, params).fetchone()[0])

    def count_suggestions_by_model(self) -> Dict[str, int]:
        with self.connection() as db:
            cursor = db.execute("SELECT model, COUNT(*) AS count FROM AISuggestionCache GROUP BY model")
            return {row[0]: row[1] for row in cursor.fetchall()}

    def get_rod_suggestion_counts(
        self,
        min_count: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Per-rod row counts, largest first.

        ``min_count`` keeps only rods holding strictly more rows than it.
        """
        query = "SELECT rod_id, COUNT(*) AS count FROM AISuggestionCache GROUP BY rod_id"
        params: List[Any] = []
        if min_count is not None:
            query += " HAVING COUNT(*) > ?"
            params.append(min_count)
        query += " ORDER BY count DESC, rod_id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self.connection() as db:
            rows = db.execute(query, params).fetchall()
        return [{"rod_id": r["rod_id"], "count": r["count"]} for r in rows]

    # --- Writes --------------------------------------------------------------
    def insert_suggestion(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row, replacing any row already held for the reading."""
        params = (
            record["reading_id"],
            record["rod_id"],
            record["plant_type"],
            record["model"],
            record.get("data_hash"),
            json.dumps(record["suggestion"]),
            record["created_at"],
        )
        with self.connection() as db:
            db.execute(
                """
                INSERT INTO AISuggestionCache (
                    reading_id, rod_id, plant_type, model, data_hash, suggestion, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(reading_id) DO UPDATE SET
                    rod_id = excluded.rod_id,
                    plant_type = excluded.plant_type,
                    model = excluded.model,
                    data_hash = excluded.data_hash,
                    suggestion = excluded.suggestion,
                    created_at = excluded.created_at
                """,
                params,
            )
            row = db.execute(
                f"SELECT {_ROW_COLUMNS} FROM AISuggestionCache WHERE reading_id = ?",
                (record["reading_id"],),
            ).fetchone()
        return self._decode_row(row)

    def delete_suggestions_for_reading(self, reading_id: str) -> int:
        with self.connection() as db:
            return db.execute("DELETE FROM AISuggestionCache WHERE reading_id = ?", (reading_id,)).rowcount

    def delete_suggestions_for_rod(self, rod_id: str) -> int:
        with self.connection() as db:
            return db.execute("DELETE FROM AISuggestionCache WHERE rod_id = ?", (rod_id,)).rowcount

    def delete_suggestions_older_than(self, cutoff: str) -> int:
        with self.connection() as db:
            return db.execute("DELETE FROM AISuggestionCache WHERE created_at < ?", (cutoff,)).rowcount

    def delete_suggestions_by_ids(self, ids: Iterable[int]) -> int:
        id_list = [int(i) for i in ids]
        if not id_list:
            return 0
        deleted = 0
        with self.connection() as db:
            # Stay under SQLITE_MAX_VARIABLE_NUMBER on older builds
            for start in range(0, len(id_list), 500):
                chunk = id_list[start : start + 500]
                placeholders = ", ".join("?" for _ in chunk)
                deleted += db.execute(
                    f"DELETE FROM AISuggestionCache WHERE id IN ({placeholders})", chunk
                ).rowcount
        return deleted

    # --- Helpers -------------------------------------------------------------
    @staticmethod
    def _decode_row(row: sqlite3.Row) -> Dict[str, Any]:
        data = dict(row)
        raw = data.get("suggestion")
        try:
            data["suggestion"] = json.loads(raw) if raw else None
        except (TypeError, ValueError):
            logger.warning("Undecodable suggestion payload in row %s", data.get("id"))
            data["suggestion"] = None
        return data
