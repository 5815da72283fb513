"""GeckoTerminal token source."""

from __future__ import annotations

import time
from typing import Any
from urllib.parse import quote

from loguru import logger

from tokenprism.core.data.providers.base import TokenSource, to_float, to_optional_float
from tokenprism.core.models import SourceRecord

NETWORK = "solana"


class GeckoTerminalSource(TokenSource):
    """Pools from the GeckoTerminal public API, Solana network only."""

    name = "geckoterminal"

    async def fetch_candidates(self) -> list[SourceRecord]:
        logger.info("Fetching trending pools from GeckoTerminal")
        payload = await self.client.get_json(f"/networks/{NETWORK}/trending_pools")
        return self._dedupe(self._to_record(pool) for pool in self._pools(payload))

    async def fetch_by_address(self, address: str) -> SourceRecord | None:
        logger.info("Fetching token pools from GeckoTerminal", address=address)
        payload = await self.client.get_json(f"/networks/{NETWORK}/tokens/{quote(address)}/pools")
        pools = self._pools(payload)
        if not pools:
            return None
        best = max(pools, key=lambda pool: to_float(pool.get("attributes", {}).get("reserve_in_usd")))
        return self._to_record(best)

    async def search(self, query: str) -> list[SourceRecord]:
        logger.info("Searching pools on GeckoTerminal", query=query)
        payload = await self.client.get_json("/search/pools", params={"query": query, "network": NETWORK})
        return self._dedupe(self._to_record(pool) for pool in self._pools(payload))

    @staticmethod
    def _pools(payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, dict):
            return []
        pools = payload.get("data") or []
        return [pool for pool in pools if isinstance(pool, dict) and _base_token_address(pool)]

    @staticmethod
    def _dedupe(records) -> list[SourceRecord]:
        unique: dict[str, SourceRecord] = {}
        for record in records:
            unique.setdefault(record.key, record)
        return list(unique.values())

    def _to_record(self, pool: dict[str, Any]) -> SourceRecord:
        attrs = pool.get("attributes") or {}
        volume = attrs.get("volume_usd") or {}
        changes = attrs.get("price_change_percentage") or {}
        txns = (attrs.get("transactions") or {}).get("h24") or {}
        pool_name = attrs.get("name") or ""
        ticker = pool_name.split(" / ")[0].strip()
        dex = ((pool.get("relationships") or {}).get("dex") or {}).get("data") or {}

        return SourceRecord(
            address=_base_token_address(pool),
            name=ticker,
            ticker=ticker,
            price=to_float(attrs.get("base_token_price_native_currency")),
            market_cap=to_float(attrs.get("market_cap_usd") or attrs.get("fdv_usd")),
            volume=to_float(volume.get("h24")),
            liquidity=to_float(attrs.get("reserve_in_usd")),
            transaction_count=int(to_float(txns.get("buys")) + to_float(txns.get("sells"))),
            price_change_1h=to_float(changes.get("h1")),
            price_change_24h=to_optional_float(changes.get("h24")),
            protocol=dex.get("id") or "",
            source=self.name,
            last_updated=int(time.time() * 1000),
        )


def _base_token_address(pool: dict[str, Any]) -> str:
    """Token ids look like ``solana_<mint>``."""
    relationships = pool.get("relationships") or {}
    token_id = ((relationships.get("base_token") or {}).get("data") or {}).get("id") or ""
    prefix = f"{NETWORK}_"
    return token_id[len(prefix):] if token_id.startswith(prefix) else token_id
