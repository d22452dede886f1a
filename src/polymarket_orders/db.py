"""SQLite key-value store for persisting client state."""

import sqlite3
from pathlib import Path


class Database:
    """SQLite-backed :class:`~polymarket_orders.storage.KeyValueStore`."""

    def __init__(self, path: Path) -> None:
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )
        """)
        self._conn.commit()

    # ------------------------------------------------------------------
    # Key-value methods
    # ------------------------------------------------------------------

    def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None."""
        row = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return str(row["value"]) if row else None

    def set(self, key: str, value: str) -> None:
        """Insert or replace the value stored under ``key``."""
        self._conn.execute(
            "INSERT INTO kv_store (key, value) VALUES (?, ?)"
            " ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
            (key, value),
        )
        self._conn.commit()

    def keys(self) -> list[str]:
        """Return all stored keys."""
        rows = self._conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [str(row["key"]) for row in rows]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *_args: object) -> None:
        self.close()
