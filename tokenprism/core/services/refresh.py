"""Periodic refresh: fetch, merge, diff, broadcast, store."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import uuid4

from loguru import logger

from tokenprism.core.config import TokenPrismConfig
from tokenprism.core.logging import log_context
from tokenprism.core.models import Snapshot
from tokenprism.core.monitoring import MetricsCollector, get_metrics_collector
from tokenprism.core.services.aggregation import AggregationEngine
from tokenprism.core.services.broadcaster import FanoutBroadcaster
from tokenprism.core.services.snapshot import SnapshotStore
from tokenprism.core.services.tokens import TokenDataService


class RepeatingTimer:
    """Fires ``callback`` every ``interval`` seconds.

    Each tick is started as its own task and not awaited, so a slow callback
    never delays the next tick. ``cancel`` stops future ticks only.
    """

    def __init__(self, interval: float, callback: Callable[[], Awaitable[Any]]) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.callback = callback
        self._task: asyncio.Task[None] | None = None
        self._ticks: set[asyncio.Task[Any]] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            tick = asyncio.create_task(self.callback())
            self._ticks.add(tick)
            tick.add_done_callback(self._ticks.discard)

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None


class RefreshLoop:
    """Runs refresh cycles, at most one at a time.

    A cycle triggered while another is in flight is skipped, not queued.
    """

    POLL_INTERVAL = 0.1

    def __init__(
        self,
        token_service: TokenDataService,
        engine: AggregationEngine,
        snapshot_store: SnapshotStore,
        broadcaster: FanoutBroadcaster,
        settings: TokenPrismConfig | None = None,
        *,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.token_service = token_service
        self.engine = engine
        self.snapshot_store = snapshot_store
        self.broadcaster = broadcaster
        self.settings = settings or TokenPrismConfig()
        self.metrics = metrics or get_metrics_collector()
        self._refreshing = False
        self._timer: RepeatingTimer | None = None

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    @property
    def previous_snapshot(self) -> Snapshot | None:
        return self.snapshot_store.current

    async def start(self) -> None:
        """Run one refresh, then schedule the rest."""
        interval = self.settings.jobs.refresh_interval
        logger.info("Initializing data refresh job", interval_seconds=interval)
        await self.refresh()
        self._timer = RepeatingTimer(interval, self.refresh)
        self._timer.start()

    async def refresh(self) -> bool:
        """Run one cycle; returns whether a new snapshot was stored."""
        if self._refreshing:
            logger.debug("Refresh already in progress, skipping")
            self.metrics.record_refresh("skipped")
            return False

        self._refreshing = True
        started = time.perf_counter()
        try:
            with log_context(cycle_id=uuid4().hex[:12]):
                return await self._run_cycle(started)
        except Exception:
            logger.exception("Data refresh failed")
            self.metrics.record_refresh("error", time.perf_counter() - started)
            return False
        finally:
            self._refreshing = False

    async def _run_cycle(self, started: float) -> bool:
        logger.info("Starting data refresh")
        snapshot = await self.token_service.fetch_and_aggregate()

        if not snapshot:
            logger.warning("No tokens fetched during refresh")
            self.metrics.record_refresh("empty", time.perf_counter() - started)
            return False

        ws = self.settings.websocket
        previous = self.snapshot_store.current
        if previous:
            changes = self.engine.detect_significant_changes(
                previous, snapshot, ws.price_change_threshold, ws.volume_spike_threshold
            )
            for hit in changes.price_changes:
                await self.broadcaster.broadcast_price_alert(hit.record, hit.change_percent)
            for spike in changes.volume_spikes:
                await self.broadcaster.broadcast_volume_spike(spike.record, spike.spike_percent)

        clients = self.broadcaster.registry.connection_count
        self.metrics.set_connected_clients(clients)
        if clients > 0:
            await self.broadcaster.broadcast_tokens_refresh(snapshot.top(ws.broadcast_limit))
            await self.broadcaster.broadcast_filter_groups(snapshot)

        await self.snapshot_store.replace(snapshot)
        await self.token_service.invalidate()

        duration = time.perf_counter() - started
        self.metrics.record_refresh("success", duration)
        self.metrics.set_snapshot_size(len(snapshot))
        logger.info("Data refresh completed", token_count=len(snapshot), duration_ms=round(duration * 1000, 2))
        return True

    async def stop(self, timeout: float | None = None) -> None:
        """Cancel future ticks, then wait up to ``timeout`` for an in-flight cycle."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        timeout = self.settings.jobs.stop_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        while self._refreshing and time.monotonic() < deadline:
            await asyncio.sleep(self.POLL_INTERVAL)

        if self._refreshing:
            logger.warning("Refresh still running after stop timeout", timeout=timeout)
        logger.info("Data refresh job stopped")
