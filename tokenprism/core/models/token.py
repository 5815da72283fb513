"""Token records and snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceRecord(BaseModel):
    """One upstream source's observation of one token."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(..., min_length=1)
    name: str = ""
    ticker: str = ""
    price: float = 0.0
    market_cap: float = 0.0
    volume: float = 0.0
    liquidity: float = 0.0
    transaction_count: int = 0
    price_change_1h: float | None = 0.0
    price_change_24h: float | None = None
    price_change_7d: float | None = None
    protocol: str = ""
    source: str
    last_updated: int = 0

    @field_validator("address")
    @classmethod
    def _strip_address(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("address must not be empty")
        return value

    @field_validator("price", "market_cap", "volume", "liquidity", mode="before")
    @classmethod
    def _zero_when_missing(cls, value: object) -> object:
        return 0.0 if value is None else value

    @field_validator("transaction_count", mode="before")
    @classmethod
    def _zero_count_when_missing(cls, value: object) -> object:
        return 0 if value is None else value

    @property
    def key(self) -> str:
        """Case-insensitive identity."""
        return self.address.lower()


class AggregatedRecord(SourceRecord):
    """Canonical merged view of a token across sources."""

    sources: list[str] = Field(default_factory=list)
    quality_score: int = Field(0, ge=0, le=100)


@dataclass(frozen=True)
class Snapshot:
    """Immutable, ordered collection of aggregated records."""

    records: tuple[AggregatedRecord, ...] = ()
    taken_at: int = 0
    _index: dict[str, AggregatedRecord] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "records", tuple(self.records))
        object.__setattr__(self, "_index", {record.key: record for record in self.records})

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[AggregatedRecord]:
        return iter(self.records)

    def __bool__(self) -> bool:
        return bool(self.records)

    def get(self, address: str) -> AggregatedRecord | None:
        return self._index.get(address.lower())

    def by_address(self) -> dict[str, AggregatedRecord]:
        return dict(self._index)

    def top(self, limit: int) -> list[AggregatedRecord]:
        return list(self.records[:limit])
