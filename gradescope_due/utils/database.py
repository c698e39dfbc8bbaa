"""SQLite-backed key-value store for whole-object JSON snapshots."""

import json
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional


class PersistenceError(Exception):
    """Raised when the durable store cannot be read or written."""


class Database:
    """SQLite database wrapper exposing a simple get/set map keyed by string.

    Each key holds one JSON document. Values are always read and written as
    whole snapshots; there is no partial update of a stored value.
    """

    def __init__(self, db_path: str = "data/gradescope_due.db"):
        """Initialize database connection."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn: Optional[sqlite3.Connection] = None
        # The API serves requests from a thread pool; one connection is shared.
        self._conn_lock = threading.Lock()
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self.conn is None:
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
        return self.conn

    def _init_schema(self) -> None:
        """Create database tables if they don't exist."""
        try:
            with self._conn_lock:
                conn = self._get_connection()
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to initialise store at {self.db_path}: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """Return the decoded value stored under key, or default if missing.

        Args:
            key: Storage key.
            default: Value returned when the key has never been set.

        Returns:
            The stored JSON value.
        """
        try:
            with self._conn_lock:
                cursor = self._get_connection().execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                )
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read '{key}': {e}") from e

        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Stored value for '{key}' is not valid JSON: {e}") from e

    def set(self, values: Dict[str, Any]) -> None:
        """Write one or more keys in a single transaction.

        Args:
            values: Mapping of key to JSON-serialisable value.
        """
        now = datetime.now().isoformat()
        try:
            rows = [(key, json.dumps(value), now) for key, value in values.items()]
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Value is not JSON serialisable: {e}") from e

        try:
            with self._conn_lock:
                conn = self._get_connection()
                with conn:
                    conn.executemany(
                        "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                        rows
                    )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write {sorted(values)}: {e}") from e

    def remove(self, keys: Iterable[str]) -> None:
        """Delete the given keys in a single transaction."""
        keys = list(keys)
        try:
            with self._conn_lock:
                conn = self._get_connection()
                with conn:
                    conn.executemany("DELETE FROM kv_store WHERE key = ?", [(k,) for k in keys])
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to remove {keys}: {e}") from e

    def bytes_in_use(self) -> int:
        """Approximate size of all stored keys and values, for diagnostics."""
        try:
            with self._conn_lock:
                cursor = self._get_connection().execute(
                    "SELECT COALESCE(SUM(LENGTH(key) + LENGTH(value)), 0) FROM kv_store"
                )
                return int(cursor.fetchone()[0])
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to measure store size: {e}") from e

    def close(self) -> None:
        """Close database connection."""
        with self._conn_lock:
            if self.conn:
                self.conn.close()
                self.conn = None
