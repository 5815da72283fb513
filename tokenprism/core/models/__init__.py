"""Domain models."""

from tokenprism.core.models.enums import Period, SortKey
from tokenprism.core.models.filters import DEFAULT_LIMIT, MAX_LIMIT, FilterCriterion
from tokenprism.core.models.query import PageMeta, PaginationMeta, TokenPage, TokenQuery, validate_limit
from tokenprism.core.models.token import AggregatedRecord, Snapshot, SourceRecord

__all__ = [
    "AggregatedRecord",
    "DEFAULT_LIMIT",
    "FilterCriterion",
    "MAX_LIMIT",
    "PageMeta",
    "PaginationMeta",
    "Period",
    "Snapshot",
    "SortKey",
    "SourceRecord",
    "TokenPage",
    "TokenQuery",
    "validate_limit",
]
