import logging
import sqlite3
import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Iterator, Optional

from flask import Flask

from infrastructure.database.ops.suggestions import SuggestionOperations

logger = logging.getLogger(__name__)

_MEMORY_PATHS = {":memory:", ""}


class SQLiteDatabaseHandler(SuggestionOperations):
    """Thread-safe SQLite handler decoupled from Flask globals.

    File databases get one connection per thread. An in-memory database
    only exists inside its connection, so every thread shares a single
    connection and statements are serialised on a lock.
    """

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._local = threading.local()
        self._shared_lock = threading.RLock()
        self._shared: Optional[sqlite3.Connection] = None

        if not self.is_memory:
            parent = Path(database_path).parent
            if not parent.exists():
                parent.mkdir(parents=True, exist_ok=True)
                logger.info("Created database directory: %s", parent)

    @property
    def is_memory(self) -> bool:
        return self._database_path in _MEMORY_PATHS or self._database_path.startswith("file::memory:")

    @property
    def database_path(self) -> str:
        return self._database_path

    # --- Lifecycle ------------------------------------------------------------
    def init_app(self, app: Flask) -> None:
        """Close request-thread connections when each app context ends."""
        app.teardown_appcontext(self.close_db)

    def get_db(self) -> sqlite3.Connection:
        if self.is_memory:
            with self._shared_lock:
                if self._shared is None:
                    self._shared = self._open_connection()
                return self._shared

        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            connection = self._open_connection()
            self._local.connection = connection
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, check_same_thread=False, timeout=30.0)
        try:
            connection.row_factory = sqlite3.Row
            if not self.is_memory:
                # Readers keep going while the cleanup thread deletes
                connection.execute("PRAGMA journal_mode=WAL")
                connection.execute("PRAGMA synchronous=NORMAL")
            connection.execute("PRAGMA temp_store=MEMORY")
            connection.commit()
        except sqlite3.Error:
            connection.close()
            raise
        logger.debug("Opened SQLite connection to %s", self._database_path)
        return connection

    def _drop_thread_connection(self) -> None:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            del self._local.connection

    def close_db(self, _e: Optional[BaseException] = None) -> None:
        # The shared in-memory connection holds the data; only close() drops it
        if not self.is_memory:
            self._drop_thread_connection()

    def close(self) -> None:
        """Close the shared connection and the calling thread's connection."""
        with self._shared_lock:
            if self._shared is not None:
                self._shared.close()
                self._shared = None
        self._drop_thread_connection()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection; commit on success, roll back on error."""
        with self._shared_lock if self.is_memory else nullcontext():
            conn = self.get_db()
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            else:
                conn.commit()

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Create the suggestion table and its indexes if missing."""
        try:
            with self.connection() as db:
                self.create_suggestion_tables(db)
        except sqlite3.Error as exc:
            logger.error("Error creating tables: %s", exc)
            raise
