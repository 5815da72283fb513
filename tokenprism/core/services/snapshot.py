"""Holder of the current snapshot."""

from __future__ import annotations

from loguru import logger

from tokenprism.core.data.cache import CacheStrategy
from tokenprism.core.models import AggregatedRecord, Snapshot

SNAPSHOT_CACHE_KEY = "tokens:snapshot"


class SnapshotStore:
    """Owns the most recent successful snapshot.

    The snapshot is replaced by a single attribute assignment, so readers
    always see either the old or the new value in full. A JSON copy of the
    records is written to the cache for readers that start before the
    first in-process refresh.
    """

    def __init__(self, cache: CacheStrategy, ttl: int = 30) -> None:
        self.cache = cache
        self.ttl = ttl
        self._current: Snapshot | None = None

    @property
    def current(self) -> Snapshot | None:
        return self._current

    async def replace(self, snapshot: Snapshot) -> None:
        self._current = snapshot
        payload = [record.model_dump(mode="json") for record in snapshot]
        await self.cache.set(SNAPSHOT_CACHE_KEY, payload, self.ttl)
        logger.debug("Snapshot stored", size=len(snapshot), taken_at=snapshot.taken_at)

    async def cached_records(self) -> list[AggregatedRecord]:
        """Records of the last stored snapshot; never triggers an upstream fetch."""
        cached = await self.cache.get(SNAPSHOT_CACHE_KEY)
        if cached:
            return [AggregatedRecord.model_validate(item) for item in cached]
        if self._current is not None:
            return list(self._current)
        return []
