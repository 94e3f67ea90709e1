"""Client-side persistent key/value storage backends.

These play the role of the browser's ``localStorage`` for the Python client:
an in-memory map for short-lived checkers and tests, and a SQLite file for
a store that survives process restarts. Multi-key writes and removals are
applied as one unit so a reader never sees half a session.
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Protocol


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set_many(self, items: Mapping[str, str]) -> None: ...

    def delete_many(self, keys: Iterable[str]) -> None: ...


class MemoryStorage:
    """Process-local storage guarded by a lock."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_many(self, items: Mapping[str, str]) -> None:
        with self._lock:
            self._data.update(items)

    def delete_many(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)


class SQLiteStorage:
    """Key/value storage persisted in a single SQLite table."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS client_storage (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM client_storage WHERE key = ?", (key,)
            ).fetchone()
        if not row:
            return None
        return row["value"]

    def set_many(self, items: Mapping[str, str]) -> None:
        # the connection context manager commits all rows in one transaction
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO client_storage (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                list(items.items()),
            )

    def delete_many(self, keys: Iterable[str]) -> None:
        with self._connect() as conn:
            conn.executemany(
                "DELETE FROM client_storage WHERE key = ?",
                [(key,) for key in keys],
            )


__all__ = ["KeyValueStorage", "MemoryStorage", "SQLiteStorage"]
