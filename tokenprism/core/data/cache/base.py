"""Cache strategy interface."""

from abc import ABC, abstractmethod
from typing import Any


class CacheStrategy(ABC):
    """Key-value store with TTL, glob pattern delete and expiring counters."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value or ``None`` when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Store ``value`` for ``ttl`` seconds."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key, returning whether it existed."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern (``tokens:list:*``)."""

    @abstractmethod
    async def increment(self, key: str, ttl: int) -> int:
        """Increment a counter; the expiry is set when the counter is created."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove everything."""

    @abstractmethod
    async def get_ttl(self, key: str) -> int | None:
        """Remaining TTL in seconds."""

    def close(self) -> None:
        """Release backend resources."""
