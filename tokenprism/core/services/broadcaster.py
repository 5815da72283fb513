"""Event fan-out to connected real-time clients."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from loguru import logger

from tokenprism.core.models import AggregatedRecord, FilterCriterion, Snapshot
from tokenprism.core.services.aggregation import AggregationEngine
from tokenprism.core.services.snapshot import SnapshotStore
from tokenprism.core.services.subscriptions import Connection, SubscriptionRegistry

TOKEN_UPDATE = "token:update"
TOKENS_REFRESH = "tokens:refresh"
PRICE_ALERT = "price:alert"
VOLUME_SPIKE = "volume:spike"
CONNECTED = "connected"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _serialize(records: Iterable[AggregatedRecord]) -> list[dict[str, Any]]:
    return [record.model_dump(mode="json") for record in records]


def refresh_payload(records: Sequence[AggregatedRecord]) -> dict[str, Any]:
    return {"tokens": _serialize(records), "count": len(records), "timestamp": _now_ms()}


class FanoutBroadcaster:
    """Pushes token events to every client, token rooms and filter groups.

    A send failure on one connection is logged and never interrupts delivery
    to the others.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        engine: AggregationEngine,
        snapshot_store: SnapshotStore,
        *,
        min_quality_score: int = 50,
    ) -> None:
        self.registry = registry
        self.engine = engine
        self.snapshot_store = snapshot_store
        self.min_quality_score = min_quality_score

    async def _deliver(self, connections: Sequence[Connection], event: str, payload: dict[str, Any]) -> int:
        if not connections:
            return 0
        results = await asyncio.gather(
            *(connection.send(event, payload) for connection in connections), return_exceptions=True
        )
        delivered = 0
        for connection, result in zip(connections, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Failed to deliver event",
                    event=event,
                    connection_id=connection.connection_id,
                    error=str(result),
                )
            else:
                delivered += 1
        return delivered

    def slice_for(self, records: Iterable[AggregatedRecord], criterion: FilterCriterion) -> list[AggregatedRecord]:
        return self.engine.apply_criterion(records, criterion, self.min_quality_score)

    async def subscribe_filters(self, connection: Connection, raw: Mapping[str, Any] | None) -> dict[str, Any]:
        """Join the group for ``raw`` and send it the current cached slice."""
        criterion = FilterCriterion.normalize(raw)
        group = self.registry.join_group(connection.connection_id, criterion)
        logger.debug(
            "Client subscribed to filters",
            connection_id=connection.connection_id,
            group=criterion.group_name,
        )

        try:
            records = await self.snapshot_store.cached_records()
            await connection.send(TOKENS_REFRESH, refresh_payload(self.slice_for(records, group.criterion)))
        except Exception as e:
            logger.error("Failed to send initial filtered snapshot", connection_id=connection.connection_id, error=str(e))
            return {"ok": False}
        return {"ok": True}

    async def unsubscribe_filters(self, connection: Connection) -> dict[str, Any]:
        self.registry.leave_all_groups(connection.connection_id)
        logger.debug("Client unsubscribed from all filters", connection_id=connection.connection_id)
        return {"ok": True}

    async def broadcast_token_update(self, record: AggregatedRecord) -> None:
        """Emit to everyone, then again to the token's room."""
        payload = {"token": record.model_dump(mode="json"), "timestamp": _now_ms()}
        await self._deliver(self.registry.connections(), TOKEN_UPDATE, payload)
        await self._deliver(self.registry.members_of_token(record.key), TOKEN_UPDATE, payload)
        logger.debug("Token update broadcasted", address=record.address, clients=self.registry.connection_count)

    async def broadcast_tokens_refresh(self, records: Sequence[AggregatedRecord]) -> None:
        await self._deliver(self.registry.connections(), TOKENS_REFRESH, refresh_payload(records))
        logger.info("Token list refresh broadcasted", count=len(records), clients=self.registry.connection_count)

    async def broadcast_filter_groups(self, snapshot: Snapshot | Sequence[AggregatedRecord]) -> None:
        """Send each group its own slice of the snapshot."""
        groups = self.registry.groups()
        if not groups:
            return
        records = list(snapshot)
        for name, criterion in groups.items():
            members = self.registry.members_of_group(name)
            await self._deliver(members, TOKENS_REFRESH, refresh_payload(self.slice_for(records, criterion)))
        logger.info(
            "Filtered token list refresh broadcasted",
            groups=len(groups),
            clients=self.registry.connection_count,
        )

    async def broadcast_price_alert(self, record: AggregatedRecord, change_percent: float) -> None:
        payload = {"token": record.model_dump(mode="json"), "changePercent": change_percent, "timestamp": _now_ms()}
        await self._deliver(self.registry.connections(), PRICE_ALERT, payload)
        logger.info(
            "Price alert broadcasted", address=record.address, ticker=record.ticker, change_percent=change_percent
        )

    async def broadcast_volume_spike(self, record: AggregatedRecord, spike_percent: float) -> None:
        payload = {"token": record.model_dump(mode="json"), "spikePercent": spike_percent, "timestamp": _now_ms()}
        await self._deliver(self.registry.connections(), VOLUME_SPIKE, payload)
        logger.info(
            "Volume spike broadcasted", address=record.address, ticker=record.ticker, spike_percent=spike_percent
        )

    async def send_to(self, connection_id: str, event: str, payload: dict[str, Any]) -> bool:
        connection = self.registry.get(connection_id)
        if connection is None:
            return False
        return await self._deliver([connection], event, payload) == 1
