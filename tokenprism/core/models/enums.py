"""Enumerations shared by queries and subscription filters."""

from enum import Enum


class SortKey(str, Enum):
    """Metric used to order token lists."""

    VOLUME = "volume"
    PRICE_CHANGE = "priceChange"
    MARKET_CAP = "marketCap"
    LIQUIDITY = "liquidity"


class Period(str, Enum):
    """Window for price change based ordering."""

    HOUR_1 = "1h"
    HOUR_24 = "24h"
    DAY_7 = "7d"
