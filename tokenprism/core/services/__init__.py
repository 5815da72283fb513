"""Core services: reconciliation, read path, fan-out and refresh."""

from tokenprism.core.services.aggregation import (
    AggregationEngine,
    PriceChange,
    SignificantChanges,
    VolumeSpike,
)
from tokenprism.core.services.broadcaster import FanoutBroadcaster
from tokenprism.core.services.pagination import decode_cursor, encode_cursor, paginate
from tokenprism.core.services.refresh import RefreshLoop, RepeatingTimer
from tokenprism.core.services.snapshot import SnapshotStore
from tokenprism.core.services.subscriptions import Connection, SubscriptionRegistry
from tokenprism.core.services.tokens import TokenDataService

__all__ = [
    "AggregationEngine",
    "Connection",
    "FanoutBroadcaster",
    "PriceChange",
    "RefreshLoop",
    "RepeatingTimer",
    "SignificantChanges",
    "SnapshotStore",
    "SubscriptionRegistry",
    "TokenDataService",
    "VolumeSpike",
    "decode_cursor",
    "encode_cursor",
    "paginate",
]
