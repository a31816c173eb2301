"""Observability layer - logging, metrics, and tracing."""

from spot_tracker.observability.logging import setup_logging
from spot_tracker.observability.metrics import MetricsCollector, get_metrics
from spot_tracker.observability.tracing import get_tracer, setup_tracing

__all__ = ["setup_logging", "MetricsCollector", "get_metrics", "setup_tracing", "get_tracer"]
