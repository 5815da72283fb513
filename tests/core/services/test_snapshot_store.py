"""Tests for the snapshot store."""

import pytest

from tokenprism.core.data.cache import ThreadSafeInMemoryCache
from tokenprism.core.services import SnapshotStore
from tokenprism.core.services.snapshot import SNAPSHOT_CACHE_KEY


@pytest.mark.asyncio
async def test_replace_swaps_and_caches(engine, make_record):
    cache = ThreadSafeInMemoryCache()
    store = SnapshotStore(cache, ttl=30)
    snapshot = engine.merge([[make_record("a1"), make_record("a2")]])

    await store.replace(snapshot)

    assert store.current is snapshot
    cached = await cache.get(SNAPSHOT_CACHE_KEY)
    assert [item["address"] for item in cached] == ["a1", "a2"]
    assert await cache.get_ttl(SNAPSHOT_CACHE_KEY) <= 30


@pytest.mark.asyncio
async def test_cached_records_fall_back_to_memory(engine, make_record):
    cache = ThreadSafeInMemoryCache()
    store = SnapshotStore(cache)
    snapshot = engine.merge([[make_record("a1")]])
    await store.replace(snapshot)
    await cache.clear()

    records = await store.cached_records()

    assert [record.address for record in records] == ["a1"]


@pytest.mark.asyncio
async def test_cached_records_empty_before_first_refresh():
    store = SnapshotStore(ThreadSafeInMemoryCache())

    assert await store.cached_records() == []
    assert store.current is None
