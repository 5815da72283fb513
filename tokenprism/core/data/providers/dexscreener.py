"""DexScreener token source."""

from __future__ import annotations

import time
from typing import Any
from urllib.parse import quote

from loguru import logger

from tokenprism.core.data.providers.base import TokenSource, to_float
from tokenprism.core.data.providers.http import HttpClient
from tokenprism.core.exceptions import ProviderError
from tokenprism.core.models import SourceRecord

SOLANA_CHAIN = "solana"
TRENDING_LIMIT = 50


class DexScreenerSource(TokenSource):
    """Pairs from the DexScreener search and token endpoints.

    DexScreener has no trending endpoint, so candidates are the union of
    searches for a handful of popular terms.
    """

    name = "dexscreener"

    def __init__(
        self,
        client: HttpClient,
        *,
        trending_terms: list[str] | None = None,
        native_price_usd: float = 100.0,
    ) -> None:
        super().__init__(client)
        self.trending_terms = trending_terms or ["sol", "bonk", "wif"]
        self.native_price_usd = native_price_usd

    async def search(self, query: str) -> list[SourceRecord]:
        logger.info("Fetching tokens from DexScreener", query=query)
        payload = await self.client.get_json(f"/search?q={quote(query)}")
        return [self._to_record(pair) for pair in self._solana_pairs(payload)]

    async def fetch_by_address(self, address: str) -> SourceRecord | None:
        logger.info("Fetching token from DexScreener", address=address)
        payload = await self.client.get_json(f"/tokens/{quote(address)}")
        pairs = self._solana_pairs(payload)
        if not pairs:
            return None
        best = max(pairs, key=lambda pair: to_float((pair.get("liquidity") or {}).get("usd")))
        return self._to_record(best)

    async def fetch_candidates(self) -> list[SourceRecord]:
        """Union of the trending-term searches; a failing term is skipped unless all fail."""
        unique: dict[str, SourceRecord] = {}
        errors: list[ProviderError] = []
        for term in self.trending_terms:
            try:
                records = await self.search(term)
            except ProviderError as e:
                logger.warning("Search term failed", source=self.name, term=term, error=e.message)
                errors.append(e)
                continue
            for record in records:
                unique[record.address] = record

        if errors and len(errors) == len(self.trending_terms):
            raise errors[-1]

        ranked = sorted(unique.values(), key=lambda record: record.volume, reverse=True)
        return ranked[:TRENDING_LIMIT]

    @staticmethod
    def _solana_pairs(payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, dict):
            return []
        pairs = payload.get("pairs") or []
        return [
            pair
            for pair in pairs
            if isinstance(pair, dict)
            and pair.get("chainId") == SOLANA_CHAIN
            and (pair.get("baseToken") or {}).get("address")
        ]

    def _to_record(self, pair: dict[str, Any]) -> SourceRecord:
        base = pair.get("baseToken") or {}
        volume = pair.get("volume") or {}
        liquidity = pair.get("liquidity") or {}
        txns = (pair.get("txns") or {}).get("h24") or {}
        changes = pair.get("priceChange") or {}
        market_cap = pair.get("marketCap") or pair.get("fdv") or 0

        return SourceRecord(
            address=base.get("address", ""),
            name=base.get("name") or "",
            ticker=base.get("symbol") or "",
            price=to_float(pair.get("priceNative")),
            market_cap=to_float(market_cap) / self.native_price_usd,
            volume=to_float(volume.get("h24")) / self.native_price_usd,
            liquidity=to_float(liquidity.get("usd")) / self.native_price_usd,
            transaction_count=int(to_float(txns.get("buys")) + to_float(txns.get("sells"))),
            price_change_1h=to_float(changes.get("h1")),
            price_change_24h=to_float(changes.get("h24")),
            protocol=pair.get("dexId") or "",
            source=self.name,
            last_updated=int(time.time() * 1000),
        )
