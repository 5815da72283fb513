"""Read path: token lists, lookups and search over the upstream sources."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from loguru import logger

from tokenprism.core.config import CacheConfig
from tokenprism.core.data.cache import CacheStrategy
from tokenprism.core.data.providers import TokenSource
from tokenprism.core.exceptions import DataValidationError
from tokenprism.core.models import AggregatedRecord, PageMeta, Snapshot, SourceRecord, TokenPage, TokenQuery
from tokenprism.core.monitoring import MetricsCollector, get_metrics_collector
from tokenprism.core.services.aggregation import AggregationEngine
from tokenprism.core.services.pagination import paginate
from tokenprism.core.services.snapshot import SnapshotStore

T = TypeVar("T")

LIST_CACHE_PATTERN = "tokens:list:*"
MIN_SEARCH_LENGTH = 2


class TokenDataService:
    """Fetches, merges and caches token data for REST and CLI callers.

    Upstream failures are isolated per source: a failing source contributes
    nothing and the caller still gets a well formed (possibly empty) result.
    """

    def __init__(
        self,
        sources: Sequence[TokenSource],
        engine: AggregationEngine,
        cache: CacheStrategy,
        snapshot_store: SnapshotStore,
        *,
        cache_config: CacheConfig | None = None,
        min_quality_score: int = 50,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.sources = list(sources)
        self.engine = engine
        self.cache = cache
        self.snapshot_store = snapshot_store
        self.cache_config = cache_config or CacheConfig()
        self.min_quality_score = min_quality_score
        self.metrics = metrics or get_metrics_collector()

    @property
    def source_names(self) -> list[str]:
        return [source.name for source in self.sources]

    async def _call(self, source: TokenSource, operation: Callable[[], Awaitable[T]], default: T) -> T:
        started = time.perf_counter()
        try:
            result = await operation()
        except Exception as e:
            self.metrics.observe_source_call(source.name, time.perf_counter() - started, success=False)
            logger.error("Source failed", source=source.name, error=str(e), error_type=type(e).__name__)
            return default
        self.metrics.observe_source_call(source.name, time.perf_counter() - started)
        return result

    async def _gather_lists(self, factory: Callable[[TokenSource], Callable[[], Awaitable[list[SourceRecord]]]]):
        results = await asyncio.gather(*(self._call(source, factory(source), []) for source in self.sources))
        for source, records in zip(self.sources, results):
            logger.info("Source fetched", source=source.name, count=len(records))
        return results

    async def fetch_and_aggregate(self) -> Snapshot:
        """Query every source's candidates concurrently and merge them."""
        logger.info("Fetching from all sources", sources=self.source_names)
        results = await self._gather_lists(lambda source: source.fetch_candidates)
        return self.engine.merge(results)

    async def get_tokens(self, query: TokenQuery | None = None) -> TokenPage:
        """Filtered, sorted and paginated token list."""
        query = query or TokenQuery()
        started = time.perf_counter()
        cache_key = query.cache_key

        cached = await self.cache.get(cache_key)
        if cached is not None:
            records = [AggregatedRecord.model_validate(item) for item in cached["records"]]
            page, pagination = paginate(records, query.cursor, query.limit)
            logger.info("Cache hit", cache_key=cache_key)
            return TokenPage(
                records=page,
                pagination=pagination,
                meta=PageMeta(cached=True, sources=cached.get("sources", []), timestamp=cached.get("timestamp", 0)),
            )

        snapshot = self.snapshot_store.current
        if snapshot is None:
            snapshot = await self.fetch_and_aggregate()

        filtered = self.engine.filter(
            snapshot,
            min_volume=query.min_volume,
            min_liquidity=query.min_liquidity,
            min_quality_score=self.min_quality_score,
        )
        ordered = self.engine.sort(filtered, query.sort_by, query.period)
        timestamp = int(time.time() * 1000)

        await self.cache.set(
            cache_key,
            {
                "records": [record.model_dump(mode="json") for record in ordered],
                "sources": self.source_names,
                "timestamp": timestamp,
            },
            self.cache_config.ttl_token_list,
        )

        page, pagination = paginate(ordered, query.cursor, query.limit)
        logger.info(
            "Tokens fetched",
            count=len(page),
            total=len(ordered),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return TokenPage(
            records=page,
            pagination=pagination,
            meta=PageMeta(cached=False, sources=self.source_names, timestamp=timestamp),
        )

    async def get_token_by_address(self, address: str) -> AggregatedRecord | None:
        cache_key = f"token:{address.lower()}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            logger.info("Token cache hit", address=address)
            return AggregatedRecord.model_validate(cached)

        found = await asyncio.gather(
            *(self._call(source, lambda s=source: s.fetch_by_address(address), None) for source in self.sources)
        )
        records = [record for record in found if record is not None]
        if not records:
            return None

        snapshot = self.engine.merge([records])
        record = snapshot.records[0]
        await self.cache.set(cache_key, record.model_dump(mode="json"), self.cache_config.ttl_token_detail)
        return record

    async def search_tokens(self, query: str) -> list[AggregatedRecord]:
        """Search every source and merge the results.

        Raises:
            DataValidationError: the query is shorter than two characters.
        """
        query = (query or "").strip()
        if len(query) < MIN_SEARCH_LENGTH:
            raise DataValidationError(
                f"Search query must be at least {MIN_SEARCH_LENGTH} characters",
                validation_errors={"query": query},
            )

        cache_key = f"tokens:search:{query.lower()}"
        cached = await self.cache.get(cache_key)
        if cached is not None:
            logger.info("Search cache hit", query=query)
            return [AggregatedRecord.model_validate(item) for item in cached]

        results = await self._gather_lists(lambda source: (lambda: source.search(query)))
        records = list(self.engine.merge(results))
        await self.cache.set(
            cache_key, [record.model_dump(mode="json") for record in records], self.cache_config.ttl_search
        )
        return records

    async def get_cached_tokens(self) -> list[AggregatedRecord]:
        return await self.snapshot_store.cached_records()

    async def invalidate(self) -> int:
        """Drop cached list pages so reads never trail the snapshot."""
        removed = await self.cache.delete_pattern(LIST_CACHE_PATTERN)
        logger.debug("List cache invalidated", removed=removed)
        return removed

    async def close(self) -> None:
        for source in self.sources:
            await source.close()

