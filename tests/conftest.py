"""Pytest configuration and shared fakes for the tokenprism test suite."""

from __future__ import annotations

from typing import Any, Callable

import pytest
from prometheus_client import CollectorRegistry

from tokenprism.core.config import TokenPrismConfig
from tokenprism.core.container import ServiceContainer, build_container
from tokenprism.core.data.cache import ThreadSafeInMemoryCache
from tokenprism.core.exceptions import NetworkError
from tokenprism.core.models import AggregatedRecord, SourceRecord
from tokenprism.core.monitoring import MetricsCollector
from tokenprism.core.services import AggregationEngine


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--tokenprism-run-integration",
        action="store_true",
        default=False,
        help="Run tokenprism integration tests that call the live upstream APIs.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: marks tokenprism tests requiring network access",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--tokenprism-run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="integration tests require --tokenprism-run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def build_record(address: str, source: str = "dexscreener", **fields: Any) -> SourceRecord:
    defaults: dict[str, Any] = {
        "name": address.upper(),
        "ticker": address[:4].upper(),
        "price": 1.0,
        "market_cap": 1000.0,
        "volume": 100.0,
        "liquidity": 50.0,
        "transaction_count": 10,
        "price_change_1h": 0.0,
        "price_change_24h": 0.0,
        "protocol": "raydium",
        "last_updated": 1_000,
    }
    defaults.update(fields)
    return SourceRecord(address=address, source=source, **defaults)


class FakeSource:
    """In-memory token source with scripted responses."""

    def __init__(
        self,
        name: str,
        candidates: list[SourceRecord] | None = None,
        *,
        fail: bool = False,
        by_address: dict[str, SourceRecord] | None = None,
        search_results: list[SourceRecord] | None = None,
    ) -> None:
        self.name = name
        self.candidates = candidates or []
        self.fail = fail
        self.by_address = by_address or {}
        self.search_results = search_results or []
        self.candidate_calls = 0
        self.search_calls: list[str] = []
        self.closed = False

    async def fetch_candidates(self) -> list[SourceRecord]:
        self.candidate_calls += 1
        if self.fail:
            raise NetworkError(f"{self.name} unavailable", self.name)
        return list(self.candidates)

    async def fetch_by_address(self, address: str) -> SourceRecord | None:
        if self.fail:
            raise NetworkError(f"{self.name} unavailable", self.name)
        return self.by_address.get(address.lower())

    async def search(self, query: str) -> list[SourceRecord]:
        self.search_calls.append(query)
        if self.fail:
            raise NetworkError(f"{self.name} unavailable", self.name)
        return list(self.search_results)

    async def close(self) -> None:
        self.closed = True


class RecordingConnection:
    """Connection that stores every event it is sent."""

    def __init__(self, connection_id: str, *, fail: bool = False) -> None:
        self.connection_id = connection_id
        self.fail = fail
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.events.append((event, payload))

    def named(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]


@pytest.fixture
def make_record() -> Callable[..., SourceRecord]:
    return build_record


@pytest.fixture
def engine() -> AggregationEngine:
    return AggregationEngine()


@pytest.fixture
def make_aggregated(engine: AggregationEngine) -> Callable[..., AggregatedRecord]:
    def factory(address: str, source: str = "dexscreener", **fields: Any) -> AggregatedRecord:
        return engine.merge([[build_record(address, source, **fields)]]).records[0]

    return factory


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def config() -> TokenPrismConfig:
    return TokenPrismConfig()


@pytest.fixture
def fake_sources() -> list[FakeSource]:
    return [
        FakeSource(
            "dexscreener",
            [
                build_record("TokenA", volume=300.0),
                build_record("TokenB", volume=200.0),
            ],
        ),
        FakeSource("jupiter", [build_record("tokena", "jupiter", volume=50.0, price=3.0)]),
    ]


@pytest.fixture
def container(config: TokenPrismConfig, fake_sources: list[FakeSource], metrics: MetricsCollector) -> ServiceContainer:
    return build_container(config, sources=fake_sources, cache=ThreadSafeInMemoryCache(), metrics=metrics)


@pytest.fixture
def source_factory() -> type[FakeSource]:
    return FakeSource


@pytest.fixture
def connection_factory() -> type[RecordingConnection]:
    return RecordingConnection
