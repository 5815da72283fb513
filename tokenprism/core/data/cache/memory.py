"""Thread-safe in-memory cache."""

import time
from collections import OrderedDict
from fnmatch import fnmatchcase
from threading import Lock
from typing import Any

from .base import CacheStrategy


class ThreadSafeInMemoryCache(CacheStrategy):
    """Thread-safe LRU cache with per-entry expiry."""

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self._cache: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._lock = Lock()

    def _live_entry(self, key: str) -> tuple[Any, float] | None:
        # caller holds the lock
        entry = self._cache.get(key)
        if entry is None:
            return None
        if time.time() > entry[1]:
            del self._cache[key]
            return None
        return entry

    def _store(self, key: str, value: Any, expiry: float) -> None:
        if key in self._cache:
            del self._cache[key]
        while len(self._cache) >= self.max_size and self._cache:
            self._cache.popitem(last=False)
        self._cache[key] = (value, expiry)

    async def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return None
            self._cache.move_to_end(key)
            return entry[0]

    async def set(self, key: str, value: Any, ttl: int) -> None:
        with self._lock:
            self._store(key, value, time.time() + ttl)

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        with self._lock:
            matched = [key for key in self._cache if fnmatchcase(key, pattern)]
            for key in matched:
                del self._cache[key]
            return len(matched)

    async def increment(self, key: str, ttl: int) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                self._store(key, 1, time.time() + ttl)
                return 1
            value, expiry = entry
            counter = int(value) + 1
            self._cache[key] = (counter, expiry)
            return counter

    async def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    async def get_ttl(self, key: str) -> int | None:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return None
            return max(0, int(entry[1] - time.time()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
