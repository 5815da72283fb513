"""Jupiter token source."""

from __future__ import annotations

import time
from typing import Any
from urllib.parse import quote

from loguru import logger

from tokenprism.core.data.providers.base import TokenSource, to_float
from tokenprism.core.models import SourceRecord


class JupiterSource(TokenSource):
    """Jupiter token search.

    Jupiter only exposes identity and daily volume; every other metric is 0.
    """

    name = "jupiter"
    candidate_query = "SOL"

    async def search(self, query: str) -> list[SourceRecord]:
        logger.info("Fetching tokens from Jupiter", query=query)
        payload = await self.client.get_json(f"/tokens/v2/search?query={quote(query)}")
        return [self._to_record(item) for item in self._items(payload) if self._address(item)]

    async def fetch_candidates(self) -> list[SourceRecord]:
        return await self.search(self.candidate_query)

    async def fetch_by_address(self, address: str) -> SourceRecord | None:
        for record in await self.search(address):
            if record.key == address.lower():
                return record
        return None

    @staticmethod
    def _items(payload: Any) -> list[dict[str, Any]]:
        if isinstance(payload, dict):
            payload = payload.get("data") or []
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]

    @staticmethod
    def _address(item: dict[str, Any]) -> str:
        return item.get("address") or item.get("id") or ""

    def _to_record(self, item: dict[str, Any]) -> SourceRecord:
        return SourceRecord(
            address=self._address(item),
            name=item.get("name") or "",
            ticker=item.get("symbol") or "",
            volume=to_float(item.get("daily_volume")),
            protocol="Jupiter",
            source=self.name,
            last_updated=int(time.time() * 1000),
        )
