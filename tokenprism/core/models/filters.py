"""Subscription filter criteria with canonical group naming."""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict

from tokenprism.core.models.enums import Period, SortKey

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def _as_number(value: Any) -> float | None:
    # bool is an int subclass but never a meaningful threshold
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def format_threshold(value: float | None) -> str:
    """Exact text form of a threshold for keys; absent thresholds render as ``0``."""
    if value is None:
        return "0"
    return str(int(value)) if float(value).is_integer() else repr(float(value))


class FilterCriterion(BaseModel):
    """Normalised subscription filter shared by every member of a filter group."""

    model_config = ConfigDict(frozen=True)

    sort_by: SortKey = SortKey.VOLUME
    period: Period = Period.HOUR_24
    min_volume: float | None = None
    min_liquidity: float | None = None
    limit: int = DEFAULT_LIMIT

    @classmethod
    def normalize(cls, raw: Mapping[str, Any] | None) -> "FilterCriterion":
        """Build a criterion from client input, substituting defaults for invalid fields.

        Accepts both the wire names (``sortBy``, ``minVolume``...) and the
        attribute names. Never raises.
        """
        raw = raw if isinstance(raw, Mapping) else {}

        def pick(*names: str) -> Any:
            for name in names:
                if name in raw:
                    return raw[name]
            return None

        sort_raw = pick("sortBy", "sort_by")
        try:
            sort_by = SortKey(sort_raw)
        except ValueError:
            sort_by = SortKey.VOLUME

        period_raw = pick("period")
        try:
            period = Period(period_raw)
        except ValueError:
            period = Period.HOUR_24

        limit_raw = _as_number(pick("limit"))
        if limit_raw is None or limit_raw <= 0:
            limit = DEFAULT_LIMIT
        else:
            limit = max(1, min(int(limit_raw), MAX_LIMIT))

        return cls(
            sort_by=sort_by,
            period=period,
            min_volume=_as_number(pick("minVolume", "min_volume")),
            min_liquidity=_as_number(pick("minLiquidity", "min_liquidity")),
            limit=limit,
        )

    @property
    def group_name(self) -> str:
        """Deterministic room name; equal criteria always map to the same name."""
        parts = [
            f"sort={self.sort_by.value}",
            f"period={self.period.value}",
            f"minVol={format_threshold(self.min_volume)}",
            f"minLiq={format_threshold(self.min_liquidity)}",
            f"limit={self.limit}",
        ]
        return "filters:" + "&".join(parts)
