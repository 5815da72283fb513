"""Cache backends."""

from tokenprism.core.data.cache.base import CacheStrategy
from tokenprism.core.data.cache.duckdb import SimpleDuckDBCache
from tokenprism.core.data.cache.memory import ThreadSafeInMemoryCache
from tokenprism.core.config import CacheConfig


def create_cache(config: CacheConfig) -> CacheStrategy:
    """Instantiate the configured cache backend."""

    if config.backend == "duckdb":
        return SimpleDuckDBCache(config.disk_path)
    return ThreadSafeInMemoryCache(max_size=config.memory_size)


__all__ = ["CacheStrategy", "SimpleDuckDBCache", "ThreadSafeInMemoryCache", "create_cache"]
