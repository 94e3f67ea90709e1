"""
Sliding-window rate limiting keyed by client identity.

``InMemoryRateLimiter`` is per process, which is fine for a single instance
but not consistent across horizontally scaled workers. ``SQLiteRateLimiter``
shares the window between processes on one host through a database file.
"""

from __future__ import annotations

import sqlite3
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Protocol

from lab_portal.core.config import RateLimitBackend, RateLimitSettings


class RateLimiter(Protocol):
    def check_and_record(self, key: str) -> bool:
        """Record one request for ``key``; return False if it exceeds the window."""
        ...


class InMemoryRateLimiter:
    def __init__(
        self,
        *,
        window_seconds: float,
        max_requests: int,
        clock: Callable[[], float] = time.monotonic,
        sweep_every: int = 1000,
    ) -> None:
        self._window = window_seconds
        self._max = max_requests
        self._clock = clock
        self._sweep_every = sweep_every
        self._calls = 0
        self._hits: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def check_and_record(self, key: str) -> bool:
        now = self._clock()
        window_start = now - self._window
        with self._lock:
            self._calls += 1
            if self._calls % self._sweep_every == 0:
                self._sweep(window_start)
            recent = [ts for ts in self._hits.get(key, ()) if ts > window_start]
            if len(recent) >= self._max:
                self._hits[key] = recent
                return False
            recent.append(now)
            self._hits[key] = recent
            return True

    def _sweep(self, window_start: float) -> None:
        # caller holds the lock
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in stale:
            del self._hits[key]

    @property
    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


class SQLiteRateLimiter:
    def __init__(
        self,
        db_path: str,
        *,
        window_seconds: float,
        max_requests: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._window = window_seconds
        self._max = max_requests
        self._clock = clock
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS rate_limit_hits (
                    key TEXT NOT NULL,
                    ts REAL NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_rate_limit_hits_key_ts ON rate_limit_hits (key, ts)"
            )
        finally:
            conn.close()

    def check_and_record(self, key: str) -> bool:
        now = self._clock()
        conn = self._connect()
        try:
            # IMMEDIATE takes the write lock up front so prune/count/insert is atomic
            conn.execute("BEGIN IMMEDIATE")
            conn.execute(
                "DELETE FROM rate_limit_hits WHERE key = ? AND ts <= ?",
                (key, now - self._window),
            )
            (count,) = conn.execute(
                "SELECT COUNT(*) FROM rate_limit_hits WHERE key = ?", (key,)
            ).fetchone()
            allowed = count < self._max
            if allowed:
                conn.execute(
                    "INSERT INTO rate_limit_hits (key, ts) VALUES (?, ?)", (key, now)
                )
            conn.execute("COMMIT")
            return allowed
        except Exception:
            conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()


def build_rate_limiter(settings: RateLimitSettings) -> RateLimiter:
    if settings.backend is RateLimitBackend.SQLITE:
        return SQLiteRateLimiter(
            settings.db_path,
            window_seconds=settings.window_seconds,
            max_requests=settings.max_requests,
        )
    return InMemoryRateLimiter(
        window_seconds=settings.window_seconds,
        max_requests=settings.max_requests,
    )


__all__ = [
    "InMemoryRateLimiter",
    "RateLimiter",
    "SQLiteRateLimiter",
    "build_rate_limiter",
]
