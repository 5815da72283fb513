"""Smoke tests against the live upstream APIs."""

import pytest

from tokenprism.core.config import ProviderConfig
from tokenprism.core.data.providers import build_sources
from tokenprism.core.services import AggregationEngine

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["dexscreener", "jupiter", "geckoterminal"])
async def test_source_returns_solana_candidates(name):
    (source,) = build_sources(ProviderConfig(enabled=[name], max_attempts=2))
    try:
        records = await source.fetch_candidates()
    finally:
        await source.close()

    assert records
    assert all(record.source == name and record.address for record in records)


@pytest.mark.asyncio
async def test_all_sources_merge():
    sources = build_sources(ProviderConfig(max_attempts=2))
    try:
        lists = [await source.fetch_candidates() for source in sources]
    finally:
        for source in sources:
            await source.close()

    snapshot = AggregationEngine().merge(lists)

    assert len(snapshot) > 0
    assert all(0 <= record.quality_score <= 100 for record in snapshot)
