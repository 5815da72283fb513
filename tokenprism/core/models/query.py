"""Read path query and page models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tokenprism.core.models.enums import Period, SortKey
from tokenprism.core.models.filters import DEFAULT_LIMIT, MAX_LIMIT, format_threshold
from tokenprism.core.models.token import AggregatedRecord


def validate_limit(limit: Any) -> int:
    """Clamp a requested page size to ``[1, MAX_LIMIT]``; invalid input yields the default."""
    if limit is None or isinstance(limit, bool):
        return DEFAULT_LIMIT
    try:
        parsed = int(limit)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    if parsed < 1:
        return DEFAULT_LIMIT
    return min(parsed, MAX_LIMIT)


def _parse_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class TokenQuery(BaseModel):
    """List query accepted by the read path."""

    limit: int = DEFAULT_LIMIT
    cursor: str | None = None
    sort_by: SortKey = SortKey.VOLUME
    period: Period = Period.HOUR_24
    min_volume: float | None = None
    min_liquidity: float | None = None

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp_limit(cls, value: Any) -> int:
        return validate_limit(value)

    @classmethod
    def from_params(
        cls,
        *,
        limit: Any = None,
        cursor: str | None = None,
        sort_by: Any = None,
        period: Any = None,
        min_volume: Any = None,
        min_liquidity: Any = None,
    ) -> "TokenQuery":
        """Build a query from raw request parameters, defaulting anything unparseable."""
        try:
            sort_key = SortKey(sort_by)
        except ValueError:
            sort_key = SortKey.VOLUME
        try:
            period_value = Period(period)
        except ValueError:
            period_value = Period.HOUR_24
        return cls(
            limit=limit,
            cursor=cursor or None,
            sort_by=sort_key,
            period=period_value,
            min_volume=_parse_float(min_volume),
            min_liquidity=_parse_float(min_liquidity),
        )

    @property
    def cache_key(self) -> str:
        return (
            f"tokens:list:{self.sort_by.value}:{self.period.value}:"
            f"{format_threshold(self.min_volume)}:{format_threshold(self.min_liquidity)}"
        )


class PaginationMeta(BaseModel):
    """Cursor pagination details."""

    model_config = ConfigDict(populate_by_name=True)

    next_cursor: str | None = Field(None, alias="nextCursor")
    has_more: bool = Field(False, alias="hasMore")
    total: int = 0


class PageMeta(BaseModel):
    """Provenance details for a page."""

    cached: bool = False
    sources: list[str] = Field(default_factory=list)
    timestamp: int = 0


class TokenPage(BaseModel):
    """One page of the token list."""

    records: list[AggregatedRecord] = Field(default_factory=list)
    pagination: PaginationMeta = Field(default_factory=PaginationMeta)
    meta: PageMeta = Field(default_factory=PageMeta)
