"""Composition root wiring the long-lived service instances together."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from tokenprism.core.config import TokenPrismConfig
from tokenprism.core.data.cache import CacheStrategy, create_cache
from tokenprism.core.data.providers import TokenSource, build_sources
from tokenprism.core.monitoring import MetricsCollector, get_metrics_collector
from tokenprism.core.services import (
    AggregationEngine,
    FanoutBroadcaster,
    RefreshLoop,
    SnapshotStore,
    SubscriptionRegistry,
    TokenDataService,
)


@dataclass
class ServiceContainer:
    """One instance of every service, shared by reference."""

    config: TokenPrismConfig
    cache: CacheStrategy
    engine: AggregationEngine
    snapshot_store: SnapshotStore
    token_service: TokenDataService
    registry: SubscriptionRegistry
    broadcaster: FanoutBroadcaster
    refresh_loop: RefreshLoop
    metrics: MetricsCollector

    async def close(self) -> None:
        await self.refresh_loop.stop()
        await self.token_service.close()
        self.cache.close()
        logger.info("Services shut down")


def build_container(
    config: TokenPrismConfig | None = None,
    *,
    sources: Sequence[TokenSource] | None = None,
    cache: CacheStrategy | None = None,
    metrics: MetricsCollector | None = None,
) -> ServiceContainer:
    """Create the service graph from configuration.

    ``sources``, ``cache`` and ``metrics`` override the configured defaults,
    which is how tests inject fakes.
    """
    config = config or TokenPrismConfig()
    cache = cache or create_cache(config.cache)
    metrics = metrics or get_metrics_collector()
    sources = list(sources) if sources is not None else build_sources(config.providers)
    min_quality = config.websocket.min_quality_score

    engine = AggregationEngine(config.providers.source_priority)
    snapshot_store = SnapshotStore(cache, ttl=config.cache.ttl_token_list)
    token_service = TokenDataService(
        sources,
        engine,
        cache,
        snapshot_store,
        cache_config=config.cache,
        min_quality_score=min_quality,
        metrics=metrics,
    )
    registry = SubscriptionRegistry()
    broadcaster = FanoutBroadcaster(registry, engine, snapshot_store, min_quality_score=min_quality)
    refresh_loop = RefreshLoop(token_service, engine, snapshot_store, broadcaster, config, metrics=metrics)

    logger.debug("Service container built", sources=token_service.source_names, cache=type(cache).__name__)
    return ServiceContainer(
        config=config,
        cache=cache,
        engine=engine,
        snapshot_store=snapshot_store,
        token_service=token_service,
        registry=registry,
        broadcaster=broadcaster,
        refresh_loop=refresh_loop,
        metrics=metrics,
    )
