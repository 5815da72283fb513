"""Reconciliation of per-source token observations into scored aggregate records."""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from tokenprism.core.models import AggregatedRecord, FilterCriterion, Period, Snapshot, SortKey, SourceRecord

DEFAULT_SOURCE_PRIORITY: dict[str, int] = {"dexscreener": 3, "jupiter": 2, "geckoterminal": 1}

# Identity/display fields copied from the winning (highest priority) record.
_IDENTITY_FIELDS = ("name", "ticker", "market_cap", "price_change_7d", "protocol", "source")


@dataclass(frozen=True)
class PriceChange:
    """A record whose price moved past the alert threshold."""

    record: AggregatedRecord
    change_percent: float


@dataclass(frozen=True)
class VolumeSpike:
    """A record whose volume grew past the spike threshold."""

    record: AggregatedRecord
    spike_percent: float


@dataclass(frozen=True)
class SignificantChanges:
    price_changes: list[PriceChange] = field(default_factory=list)
    volume_spikes: list[VolumeSpike] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.price_changes or self.volume_spikes)


def _running_average(existing: float, count: int, incoming: float) -> float:
    return (existing * count + incoming) / (count + 1)


def _average_optional(existing: float | None, count: int, incoming: float | None) -> float | None:
    if existing is None or incoming is None:
        return existing if existing is not None else incoming
    return _running_average(existing, count, incoming)


class AggregationEngine:
    """Merges, scores, sorts, filters and diffs token records.

    The engine is stateless apart from the source priority table; one
    instance is shared by the read path, the refresh loop and the fan-out
    layer.
    """

    def __init__(self, source_priority: Mapping[str, int] | None = None) -> None:
        self.source_priority = dict(DEFAULT_SOURCE_PRIORITY if source_priority is None else source_priority)

    def priority_of(self, source: str) -> int:
        return self.source_priority.get(source, 0)

    def merge(self, source_lists: Iterable[Sequence[SourceRecord]]) -> Snapshot:
        """Deduplicate records from every source into one snapshot.

        Records are processed in arrival order; the first observation of an
        address fixes its position in the result.
        """
        merged: dict[str, AggregatedRecord] = {}
        total = 0

        for records in source_lists:
            for record in records:
                total += 1
                existing = merged.get(record.key)
                if existing is None:
                    merged[record.key] = self._seed(record)
                else:
                    merged[record.key] = self._merge_pair(existing, record)

        snapshot = Snapshot(records=tuple(merged.values()), taken_at=int(time.time() * 1000))
        logger.info("Tokens merged", unique_tokens=len(snapshot), original_count=total)
        return snapshot

    def _seed(self, record: SourceRecord) -> AggregatedRecord:
        data = record.model_dump()
        data["sources"] = [record.source]
        data["quality_score"] = self.calculate_quality_score(record)
        return AggregatedRecord(**data)

    def _merge_pair(self, existing: AggregatedRecord, incoming: SourceRecord) -> AggregatedRecord:
        count = len(existing.sources)
        primary: SourceRecord = existing
        if self.priority_of(incoming.source) > self.priority_of(existing.source):
            primary = incoming

        data: dict[str, Any] = existing.model_dump()
        for name in _IDENTITY_FIELDS:
            data[name] = getattr(primary, name)

        data.update(
            price=_running_average(existing.price, count, incoming.price),
            volume=existing.volume + incoming.volume,
            liquidity=existing.liquidity + incoming.liquidity,
            transaction_count=existing.transaction_count + incoming.transaction_count,
            price_change_1h=_average_optional(existing.price_change_1h, count, incoming.price_change_1h),
            price_change_24h=_average_optional(existing.price_change_24h, count, incoming.price_change_24h),
            sources=[*existing.sources, incoming.source],
            last_updated=max(existing.last_updated, incoming.last_updated),
        )
        if primary is incoming and data["price_change_7d"] is None:
            data["price_change_7d"] = existing.price_change_7d

        data["quality_score"] = 0
        record = AggregatedRecord(**data)
        return record.model_copy(update={"quality_score": self.calculate_quality_score(record)})

    @staticmethod
    def calculate_quality_score(record: SourceRecord) -> int:
        """Additive completeness score in ``[0, 100]``."""
        score = 0
        if record.price > 0:
            score += 20
        if record.volume > 0:
            score += 20
        if record.liquidity > 0:
            score += 20
        if record.market_cap > 0:
            score += 15
        if record.transaction_count > 0:
            score += 15
        if record.price_change_1h is not None:
            score += 10
        return min(score, 100)

    @staticmethod
    def sort_value(record: AggregatedRecord, sort_by: SortKey, period: Period) -> float:
        if sort_by is SortKey.PRICE_CHANGE:
            if period is Period.HOUR_1:
                value = record.price_change_1h
            elif period is Period.HOUR_24:
                value = record.price_change_24h
            else:
                value = record.price_change_7d
            return value if value is not None else 0.0
        if sort_by is SortKey.MARKET_CAP:
            return record.market_cap
        if sort_by is SortKey.LIQUIDITY:
            return record.liquidity
        return record.volume

    def sort(
        self,
        records: Iterable[AggregatedRecord],
        sort_by: SortKey | str = SortKey.VOLUME,
        period: Period | str = Period.HOUR_24,
    ) -> list[AggregatedRecord]:
        """Return a new list ordered descending by the metric; ties keep input order."""
        sort_by = SortKey(sort_by)
        period = Period(period)
        items = list(records)
        logger.debug("Sorting tokens", sort_by=sort_by.value, period=period.value, count=len(items))
        # sorted() is stable, so equal keys keep their relative order
        return sorted(items, key=lambda record: -self.sort_value(record, sort_by, period))

    def filter(
        self,
        records: Iterable[AggregatedRecord],
        *,
        min_volume: float | None = None,
        min_liquidity: float | None = None,
        min_quality_score: int | None = None,
    ) -> list[AggregatedRecord]:
        """Keep records satisfying every supplied ``>=`` threshold."""
        items = list(records)
        filtered = [
            record
            for record in items
            if (min_volume is None or record.volume >= min_volume)
            and (min_liquidity is None or record.liquidity >= min_liquidity)
            and (min_quality_score is None or record.quality_score >= min_quality_score)
        ]
        logger.debug("Tokens filtered", original=len(items), filtered=len(filtered))
        return filtered

    def apply_criterion(
        self,
        records: Iterable[AggregatedRecord],
        criterion: FilterCriterion,
        min_quality_score: int | None = None,
    ) -> list[AggregatedRecord]:
        """Filter, sort and truncate to the criterion's limit."""
        filtered = self.filter(
            records,
            min_volume=criterion.min_volume,
            min_liquidity=criterion.min_liquidity,
            min_quality_score=min_quality_score,
        )
        return self.sort(filtered, criterion.sort_by, criterion.period)[: criterion.limit]

    def detect_significant_changes(
        self,
        old: Iterable[AggregatedRecord],
        new: Iterable[AggregatedRecord],
        price_threshold: float = 5.0,
        volume_threshold: float = 50.0,
    ) -> SignificantChanges:
        """Compare two snapshots by lower-cased address.

        Percentages are computed against the matched old record. Addresses
        absent from ``old`` never produce an event.
        """
        previous = {record.key: record for record in old}
        changes = SignificantChanges()

        for record in new:
            before = previous.get(record.key)
            if before is None:
                continue

            if before.price != 0:
                change = (record.price - before.price) / before.price * 100
                if abs(change) >= price_threshold:
                    changes.price_changes.append(PriceChange(record, change))

            if before.volume > 0:
                spike = (record.volume - before.volume) / before.volume * 100
                if spike >= volume_threshold:
                    changes.volume_spikes.append(VolumeSpike(record, spike))

        logger.info(
            "Significant changes detected",
            price_changes=len(changes.price_changes),
            volume_spikes=len(changes.volume_spikes),
        )
        return changes
