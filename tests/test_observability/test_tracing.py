"""
Tests for OpenTelemetry tracing module.

Verifies:
- TracerProvider setup with InMemorySpanExporter
- Structlog processor adds trace_id/span_id to log entries
- traced() context manager creates spans and records exceptions
"""

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from spot_tracker.observability.tracing import (
    add_trace_context,
    get_tracer,
    is_tracing_enabled,
    setup_tracing,
    traced,
)

# OTel's global TracerProvider can only be set once per process, so it is
# initialized once and the exporter cleared between tests.
_exporter = InMemorySpanExporter()
_provider = setup_tracing("test-service", exporter=_exporter)


@pytest.fixture(autouse=True)
def _clear_spans():
    """Clear exported spans before each test."""
    _exporter.clear()
    yield
    _exporter.clear()


class TestSetupTracing:
    def test_setup_enables_tracing(self):
        assert is_tracing_enabled()


class TestTracedContextManager:
    """Tests for the traced() convenience context manager."""

    def test_traced_creates_span(self):
        tracer = get_tracer("test")

        with traced(tracer, "pota.fetch", {"source": "pota"}):
            pass

        spans = _exporter.get_finished_spans()
        assert len(spans) == 1
        assert spans[0].name == "pota.fetch"
        assert spans[0].attributes.get("source") == "pota"

    def test_traced_records_exception(self):
        """traced() should record exceptions and set error status."""
        tracer = get_tracer("test")

        with pytest.raises(ValueError, match="upstream down"):
            with traced(tracer, "rbn.fetch"):
                raise ValueError("upstream down")

        spans = _exporter.get_finished_spans()
        assert len(spans) == 1
        assert spans[0].status.status_code.name == "ERROR"
        assert any(e.name == "exception" for e in spans[0].events)

    def test_nested_spans_share_trace(self):
        tracer = get_tracer("test")

        with traced(tracer, "sota.cycle") as parent:
            with traced(tracer, "sota.fetch"):
                pass

        spans = _exporter.get_finished_spans()
        assert len(spans) == 2
        child = next(s for s in spans if s.name == "sota.fetch")
        assert child.context.trace_id == parent.get_span_context().trace_id
        assert child.parent.span_id == parent.get_span_context().span_id


class TestStructlogProcessor:
    """Tests for the add_trace_context structlog processor."""

    def test_adds_trace_id_with_active_span(self):
        tracer = get_tracer("test")

        with tracer.start_as_current_span("log_test") as span:
            result = add_trace_context(None, "info", {"event": "spot_upserted"})

            assert result["trace_id"] == f"{span.get_span_context().trace_id:032x}"
            assert result["span_id"] == f"{span.get_span_context().span_id:016x}"

    def test_no_trace_id_without_span(self):
        result = add_trace_context(None, "info", {"event": "spot_upserted"})

        assert "trace_id" not in result

    def test_preserves_existing_fields(self):
        tracer = get_tracer("test")

        with tracer.start_as_current_span("test"):
            result = add_trace_context(None, "info", {"event": "test", "source": "rbn"})

            assert result["source"] == "rbn"
            assert result["event"] == "test"
