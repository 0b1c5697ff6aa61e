"""
Local state in SQLite (``state.db`` in the config directory).

Holds the calendar and form ids normally kept as spreadsheet properties,
the form responses already turned into invitations, and a log of runs.
"""

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional

SCHEMA = """
CREATE TABLE IF NOT EXISTS properties (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS processed_responses (
    id INTEGER PRIMARY KEY,
    form_id TEXT NOT NULL,
    response_id TEXT NOT NULL,
    registrant_email TEXT,
    sessions_joined INTEGER DEFAULT 0,
    processed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(form_id, response_id)
);

CREATE INDEX IF NOT EXISTS idx_processed_responses_form
    ON processed_responses(form_id);

CREATE TABLE IF NOT EXISTS sync_runs (
    id INTEGER PRIMARY KEY,
    table_name TEXT NOT NULL,
    started_at TIMESTAMP NOT NULL,
    finished_at TIMESTAMP,
    created INTEGER DEFAULT 0,
    updated INTEGER DEFAULT 0,
    recreated INTEGER DEFAULT 0,
    status TEXT NOT NULL,
    error TEXT
);

CREATE INDEX IF NOT EXISTS idx_sync_runs_table ON sync_runs(table_name);
"""

# Run status values
RUN_SUCCESS = "success"
RUN_FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SyncDatabase:
    """
    SQLite database manager for sync state.

    Provides methods for:
    - Key-value properties (backing store of the resource registry)
    - Tracking which form responses have been handled
    - Recording synchronization runs for status reporting

    Usage:
        db = SyncDatabase('/path/to/state.db')
        db.initialize()

        # Or use in-memory for testing:
        db = SyncDatabase(':memory:')
        db.initialize()
    """

    def __init__(self, db_path: str):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        In-memory databases share one connection so the schema persists;
        file databases get a new connection each time.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(
                    ":memory:",
                    detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
                )
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection

        conn = sqlite3.connect(
            self.db_path,
            detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        )
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Commits on success and rolls back on error.

        Usage:
            with db.connection() as conn:
                conn.execute("SELECT * FROM properties")
        """
        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create all tables and indexes if they don't exist."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    # =========================================================================
    # Property Operations
    # =========================================================================

    def get_property(self, key: str) -> Optional[str]:
        """
        Get a stored property value.

        Returns:
            The value, or None if the property is not set
        """
        with self.connection() as conn:
            cursor = conn.execute("SELECT value FROM properties WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row["value"] if row else None

    def set_property(self, key: str, value: str) -> None:
        """Insert or overwrite a property."""
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO properties (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, _utcnow()),
            )

    def delete_property(self, key: str) -> bool:
        """
        Delete a property.

        Returns:
            True if the property existed
        """
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM properties WHERE key = ?", (key,))
            return cursor.rowcount > 0

    def get_all_properties(self) -> dict[str, str]:
        """Get every stored property as a dictionary."""
        with self.connection() as conn:
            cursor = conn.execute("SELECT key, value FROM properties ORDER BY key")
            return {row["key"]: row["value"] for row in cursor.fetchall()}

    def clear_properties(self) -> int:
        """
        Delete all properties.

        Returns:
            Number of properties deleted
        """
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM properties")
            return cursor.rowcount

    # =========================================================================
    # Processed Response Operations
    # =========================================================================

    def is_response_processed(self, form_id: str, response_id: str) -> bool:
        """Check whether a form response has already been handled."""
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT 1 FROM processed_responses
                WHERE form_id = ? AND response_id = ?
                """,
                (form_id, response_id),
            )
            return cursor.fetchone() is not None

    def mark_response_processed(
        self,
        form_id: str,
        response_id: str,
        registrant_email: Optional[str] = None,
        sessions_joined: int = 0,
    ) -> None:
        """Record that a form response has been handled."""
        with self.connection() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO processed_responses
                    (form_id, response_id, registrant_email, sessions_joined,
                     processed_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (form_id, response_id, registrant_email, sessions_joined, _utcnow()),
            )

    def get_processed_count(self, form_id: Optional[str] = None) -> int:
        """Count handled responses, optionally for one form."""
        with self.connection() as conn:
            if form_id is None:
                cursor = conn.execute("SELECT COUNT(*) FROM processed_responses")
            else:
                cursor = conn.execute(
                    "SELECT COUNT(*) FROM processed_responses WHERE form_id = ?",
                    (form_id,),
                )
            result: int = cursor.fetchone()[0]
            return result

    def clear_processed_responses(self, form_id: Optional[str] = None) -> int:
        """
        Forget handled responses, optionally for one form only.

        Returns:
            Number of records deleted
        """
        with self.connection() as conn:
            if form_id is None:
                cursor = conn.execute("DELETE FROM processed_responses")
            else:
                cursor = conn.execute(
                    "DELETE FROM processed_responses WHERE form_id = ?", (form_id,)
                )
            return cursor.rowcount

    # =========================================================================
    # Run History Operations
    # =========================================================================

    def record_run(
        self,
        table_name: str,
        started_at: datetime,
        status: str,
        created: int = 0,
        updated: int = 0,
        recreated: int = 0,
        error: Optional[str] = None,
        finished_at: Optional[datetime] = None,
    ) -> None:
        """
        Record the outcome of a synchronization pass over a table.

        Args:
            table_name: Sheet the pass ran over
            started_at: When the pass started
            status: RUN_SUCCESS or RUN_FAILED
            created: Number of resources created
            updated: Number of resources updated
            recreated: Number of stale ids replaced with new resources
            error: Error message for failed runs
            finished_at: When the pass ended (defaults to now)
        """
        if finished_at is None:
            finished_at = _utcnow()

        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO sync_runs
                    (table_name, started_at, finished_at, created, updated,
                     recreated, status, error)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    table_name,
                    started_at,
                    finished_at,
                    created,
                    updated,
                    recreated,
                    status,
                    error,
                ),
            )

    def get_last_run(self, table_name: str) -> Optional[dict[str, Any]]:
        """
        Get the most recent run recorded for a table.

        Returns:
            Dictionary with the run's columns, or None if never run
        """
        with self.connection() as conn:
            cursor = conn.execute(
                """
                SELECT table_name, started_at, finished_at, created, updated,
                       recreated, status, error
                FROM sync_runs
                WHERE table_name = ?
                ORDER BY id DESC
                LIMIT 1
                """,
                (table_name,),
            )
            row = cursor.fetchone()
            return dict(row) if row else None

    # =========================================================================
    # Utility Operations
    # =========================================================================

    def vacuum(self) -> None:
        """Vacuum the database to reclaim space."""
        with self.connection() as conn:
            conn.execute("VACUUM")
