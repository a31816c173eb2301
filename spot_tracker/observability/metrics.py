"""
Prometheus metrics for monitoring spot aggregation and the spot store.

Defines and exposes metrics for:
- Upstream fetch volume and latency per source
- Upserts and per-record parse failures
- Aggregator errors and health
- Expiry sweeps and self-spot submissions

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from spot_tracker.config.settings import get_settings
from spot_tracker.spots.schemas import SpotSource

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


def _label(source: SpotSource | str) -> str:
    return source.value if isinstance(source, SpotSource) else source


class MetricsCollector:
    """
    Prometheus metrics collector for the spot-tracker service.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_fetch(SpotSource.POTA, count=42, latency=0.8)
        metrics.record_sweep(removed=17)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Aggregation counters
        self.spots_fetched = Counter(
            "spot_tracker_spots_fetched_total",
            "Raw records fetched from upstream feeds",
            ["source"],
        )

        self.spots_upserted = Counter(
            "spot_tracker_spots_upserted_total",
            "Normalized spots written to the store",
            ["source"],
        )

        self.parse_failures = Counter(
            "spot_tracker_parse_failures_total",
            "Upstream records skipped because they failed to normalize",
            ["source"],
        )

        self.aggregator_errors = Counter(
            "spot_tracker_aggregator_errors_total",
            "Aggregator cycle errors",
            ["source", "error_type"],
        )

        self.fetch_latency = Histogram(
            "spot_tracker_fetch_latency_seconds",
            "Time for one fetch-normalize-upsert cycle",
            ["source"],
            buckets=LATENCY_BUCKETS,
        )

        self.aggregator_health = Gauge(
            "spot_tracker_aggregator_health",
            "Outcome of the last aggregator cycle (1=ok, 0=failed)",
            ["source"],
        )

        # Store metrics
        self.spots_swept = Counter(
            "spot_tracker_spots_swept_total",
            "Expired spots removed by the sweep",
        )

        self.self_spots_created = Counter(
            "spot_tracker_self_spots_total",
            "Self-spots accepted",
            ["program"],
        )

        self.storage_latency = Histogram(
            "spot_tracker_storage_latency_seconds",
            "Time spent in spot store operations",
            ["operation"],  # list, upsert, sweep, get_program, ...
            buckets=LATENCY_BUCKETS,
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info("Prometheus metrics server started on port %d", port)

    # Convenience methods

    def record_fetch(
        self,
        source: SpotSource | str,
        count: int,
        latency: float | None = None,
    ) -> None:
        """
        Record records fetched from one upstream poll.

        Args:
            source: Upstream feed
            count: Number of raw records in the response
            latency: Optional cycle latency in seconds
        """
        label = _label(source)
        self.spots_fetched.labels(source=label).inc(count)
        if latency is not None:
            self.fetch_latency.labels(source=label).observe(latency)

    def record_upserted(self, source: SpotSource | str, count: int = 1) -> None:
        self.spots_upserted.labels(source=_label(source)).inc(count)

    def record_parse_failure(self, source: SpotSource | str, count: int = 1) -> None:
        self.parse_failures.labels(source=_label(source)).inc(count)

    def record_error(self, source: SpotSource | str, error_type: str) -> None:
        """
        Record an aggregator error.

        Args:
            source: Upstream feed, or "sweep" for the expiry loop
            error_type: Exception class name or category
        """
        self.aggregator_errors.labels(
            source=_label(source),
            error_type=error_type,
        ).inc()

    def set_aggregator_health(self, source: SpotSource | str, healthy: bool) -> None:
        self.aggregator_health.labels(source=_label(source)).set(1 if healthy else 0)

    def record_sweep(self, removed: int) -> None:
        if removed > 0:
            self.spots_swept.inc(removed)

    def record_self_spot(self, program_slug: str) -> None:
        self.self_spots_created.labels(program=program_slug).inc()

    def record_storage_latency(self, operation: str, latency: float) -> None:
        self.storage_latency.labels(operation=operation).observe(latency)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
