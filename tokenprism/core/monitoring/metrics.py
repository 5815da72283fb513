"""Prometheus metrics helpers for tokenprism services."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import DefaultDict

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest


@dataclass
class _SourceStats:
    """Internal container tracking source level success and failure counts."""

    total: int = 0
    failures: int = 0


_REFRESH_OUTCOMES = {"success", "empty", "skipped", "error"}


class MetricsCollector:
    """Collects and exposes core Prometheus metrics for service operations."""

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.source_latency_seconds = Histogram(
            "tokenprism_source_latency_seconds",
            "Latency distribution for upstream token source calls.",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, float("inf")),
            registry=self.registry,
        )
        self.source_requests_total = Counter(
            "tokenprism_source_requests_total",
            "Total count of upstream token source calls.",
            ("source",),
            registry=self.registry,
        )
        self.source_failures_total = Counter(
            "tokenprism_source_failures_total",
            "Total count of failed upstream token source calls.",
            ("source",),
            registry=self.registry,
        )
        self.source_error_rate = Gauge(
            "tokenprism_source_error_rate",
            "Error rate for upstream token sources (0-1 range).",
            ("source",),
            registry=self.registry,
        )
        self.refresh_cycles_total = Counter(
            "tokenprism_refresh_cycles_total",
            "Refresh cycles grouped by outcome.",
            ("outcome",),
            registry=self.registry,
        )
        self.refresh_duration_seconds = Histogram(
            "tokenprism_refresh_duration_seconds",
            "Duration of completed refresh cycles.",
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, float("inf")),
            registry=self.registry,
        )
        self.snapshot_size = Gauge(
            "tokenprism_snapshot_size",
            "Number of aggregated records in the current snapshot.",
            registry=self.registry,
        )
        self.connected_clients = Gauge(
            "tokenprism_connected_clients",
            "Number of connected real-time clients.",
            registry=self.registry,
        )
        self._source_stats: DefaultDict[str, _SourceStats] = defaultdict(_SourceStats)

    def observe_source_call(self, source: str, latency_seconds: float, *, success: bool = True) -> None:
        """Record an upstream source call."""

        self.source_latency_seconds.observe(latency_seconds)
        self._record_outcome(source=source, success=success)

    def record_refresh(self, outcome: str, duration_seconds: float | None = None) -> None:
        """Record a refresh cycle outcome with constrained labels."""

        label = outcome if outcome in _REFRESH_OUTCOMES else "__other__"
        self.refresh_cycles_total.labels(outcome=label).inc()
        if duration_seconds is not None:
            self.refresh_duration_seconds.observe(duration_seconds)

    def set_snapshot_size(self, size: int) -> None:
        self.snapshot_size.set(size)

    def set_connected_clients(self, count: int) -> None:
        self.connected_clients.set(count)

    def render(self) -> bytes:
        """Render metrics in Prometheus exposition format."""

        return generate_latest(self.registry)

    def _record_outcome(self, *, source: str, success: bool) -> None:
        stats = self._source_stats[source]
        stats.total += 1
        self.source_requests_total.labels(source=source).inc()
        if not success:
            stats.failures += 1
            self.source_failures_total.labels(source=source).inc()
        error_rate = stats.failures / stats.total if stats.total else 0.0
        self.source_error_rate.labels(source=source).set(error_rate)


_DEFAULT_COLLECTOR: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Return the global metrics collector instance."""

    global _DEFAULT_COLLECTOR
    if _DEFAULT_COLLECTOR is None:
        _DEFAULT_COLLECTOR = MetricsCollector()
    return _DEFAULT_COLLECTOR


def configure_metrics_collector(collector: MetricsCollector | None) -> None:
    """Override the global metrics collector for application wiring or tests."""

    global _DEFAULT_COLLECTOR
    _DEFAULT_COLLECTOR = collector
