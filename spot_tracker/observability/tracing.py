"""
OpenTelemetry tracing for spot-tracker.

Tracing is off unless ``TRACING_ENABLED`` is set. When on, every API
request and every upstream fetch (``pota.fetch``, ``rbn.fetch``, ...) gets
a span, and log lines emitted inside a span carry its ``trace_id`` and
``span_id`` so a slow feed can be followed from metrics to logs to trace.

Usage:
    setup_tracing("spot-tracker", "http://localhost:4317")
    tracer = get_tracer("spot-tracker.aggregator")

    with traced(tracer, "sota.fetch", {"spot.source": "sota"}):
        records = await fetch_records(client, feed)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import Span, StatusCode, Tracer

logger = logging.getLogger(__name__)

_tracing_enabled = False


def _otlp_exporter(endpoint: str) -> SpanExporter:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    return OTLPSpanExporter(endpoint=endpoint, insecure=True)


def setup_tracing(
    service_name: str,
    otlp_endpoint: str | None = None,
    *,
    exporter: SpanExporter | None = None,
) -> TracerProvider:
    """
    Install a global TracerProvider for this process.

    Spans go to an OTLP gRPC collector in batches. A caller-supplied
    exporter (tests pass an ``InMemorySpanExporter``) is flushed
    synchronously instead.
    """
    global _tracing_enabled

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if exporter is not None:
        provider.add_span_processor(SimpleSpanProcessor(exporter))
    else:
        endpoint = otlp_endpoint or "http://localhost:4317"
        provider.add_span_processor(BatchSpanProcessor(_otlp_exporter(endpoint)))
    trace.set_tracer_provider(provider)

    _tracing_enabled = True
    logger.info("Tracing enabled for %s (%s)", service_name, otlp_endpoint or "custom exporter")
    return provider


def get_tracer(name: str) -> Tracer:
    """Named tracer; a no-op tracer until ``setup_tracing`` has run."""
    return trace.get_tracer(name)


def is_tracing_enabled() -> bool:
    return _tracing_enabled


@contextmanager
def traced(
    tracer: Tracer,
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span]:
    """Open a current span; an escaping exception marks it as failed."""
    with tracer.start_as_current_span(
        name,
        attributes=attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(StatusCode.ERROR, str(exc))
            raise


def add_trace_context(
    logger_: Any, method: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor stamping the active span's ids onto the event."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict
