"""tokenprism - multi-source trending token aggregation with real-time fan-out.

Upstream token feeds are reconciled into one scored record per address, refreshed
on a fixed interval and pushed to WebSocket subscribers as filtered slices.
"""

from tokenprism.core.models import (
    AggregatedRecord,
    FilterCriterion,
    Period,
    Snapshot,
    SortKey,
    SourceRecord,
)
from tokenprism.core.services.aggregation import AggregationEngine

__version__ = "0.1.0"

__all__ = [
    "AggregatedRecord",
    "AggregationEngine",
    "FilterCriterion",
    "Period",
    "Snapshot",
    "SortKey",
    "SourceRecord",
    "__version__",
]
