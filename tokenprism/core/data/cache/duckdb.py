"""DuckDB backed persistent cache."""

import json
import time
from fnmatch import fnmatchcase
from pathlib import Path
from threading import Lock
from typing import Any

import duckdb
from duckdb import DuckDBPyConnection
from loguru import logger

from tokenprism.core.data.cache.base import CacheStrategy
from tokenprism.core.exceptions import CacheError


class SimpleDuckDBCache(CacheStrategy):
    """Persistent cache storing JSON values in a DuckDB table.

    Backend errors are logged and reported as cache misses so a broken cache
    never takes the read path down. Failing to open the database raises
    ``CacheError``.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._lock = Lock()
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn: DuckDBPyConnection | None = duckdb.connect(db_path)
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cache (
                    key VARCHAR PRIMARY KEY,
                    value JSON,
                    expiry DOUBLE
                )
                """
            )
        except duckdb.Error as e:
            raise CacheError(f"Cannot open cache database {db_path}: {e}", cache_type="duckdb") from e

    async def get(self, key: str) -> Any | None:
        try:
            with self._lock:
                if not self._conn:
                    return None
                row = self._conn.execute(
                    "SELECT value FROM cache WHERE key = ? AND expiry > ?",
                    [key, time.time()],
                ).fetchone()
        except duckdb.Error as e:
            logger.error("Cache get error", key=key, error=str(e))
            return None
        return json.loads(row[0]) if row else None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            payload = json.dumps(value, default=str)
            with self._lock:
                if not self._conn:
                    return
                self._conn.execute(
                    "INSERT OR REPLACE INTO cache (key, value, expiry) VALUES (?, ?, ?)",
                    [key, payload, time.time() + ttl],
                )
        except (duckdb.Error, TypeError) as e:
            logger.error("Cache set error", key=key, error=str(e))

    async def delete(self, key: str) -> bool:
        try:
            with self._lock:
                if not self._conn:
                    return False
                existed = self._conn.execute("SELECT 1 FROM cache WHERE key = ?", [key]).fetchone()
                self._conn.execute("DELETE FROM cache WHERE key = ?", [key])
        except duckdb.Error as e:
            logger.error("Cache delete error", key=key, error=str(e))
            return False
        return existed is not None

    async def delete_pattern(self, pattern: str) -> int:
        try:
            with self._lock:
                if not self._conn:
                    return 0
                keys = [row[0] for row in self._conn.execute("SELECT key FROM cache").fetchall()]
                matched = [key for key in keys if fnmatchcase(key, pattern)]
                for key in matched:
                    self._conn.execute("DELETE FROM cache WHERE key = ?", [key])
        except duckdb.Error as e:
            logger.error("Cache delete pattern error", pattern=pattern, error=str(e))
            return 0
        return len(matched)

    async def increment(self, key: str, ttl: int) -> int:
        try:
            with self._lock:
                if not self._conn:
                    return 0
                now = time.time()
                row = self._conn.execute(
                    "SELECT value, expiry FROM cache WHERE key = ? AND expiry > ?",
                    [key, now],
                ).fetchone()
                if row is None:
                    counter, expiry = 1, now + ttl
                else:
                    counter, expiry = int(json.loads(row[0])) + 1, row[1]
                self._conn.execute(
                    "INSERT OR REPLACE INTO cache (key, value, expiry) VALUES (?, ?, ?)",
                    [key, json.dumps(counter), expiry],
                )
        except duckdb.Error as e:
            logger.error("Rate limit increment error", key=key, error=str(e))
            return 0
        return counter

    async def clear(self) -> None:
        try:
            with self._lock:
                if self._conn:
                    self._conn.execute("DELETE FROM cache")
        except duckdb.Error as e:
            logger.error("Cache clear error", error=str(e))

    async def get_ttl(self, key: str) -> int | None:
        try:
            with self._lock:
                if not self._conn:
                    return None
                row = self._conn.execute(
                    "SELECT expiry FROM cache WHERE key = ? AND expiry > ?",
                    [key, time.time()],
                ).fetchone()
        except duckdb.Error as e:
            logger.error("Cache TTL error", key=key, error=str(e))
            return None
        return max(0, int(row[0] - time.time())) if row else None

    async def cleanup_expired(self) -> int:
        """Drop expired rows."""
        try:
            with self._lock:
                if not self._conn:
                    return 0
                count = self._conn.execute("SELECT count(*) FROM cache WHERE expiry <= ?", [time.time()]).fetchone()
                self._conn.execute("DELETE FROM cache WHERE expiry <= ?", [time.time()])
        except duckdb.Error as e:
            logger.error("Cache cleanup error", error=str(e))
            return 0
        return int(count[0]) if count else 0

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
