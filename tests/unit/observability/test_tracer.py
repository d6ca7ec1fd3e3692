"""
Unit tests for the tracer implementations.
"""

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from tenantsync.observability import (
    ATTR_TENANT_ID,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    SpanKindEnum,
    Tracer,
    create_tracer,
)


class TestCreateTracer:
    def test_enabled_returns_opentelemetry_tracer(self) -> None:
        tracer = create_tracer(__name__, enable_tracing=True)

        assert isinstance(tracer, OpenTelemetryTracer)
        assert tracer.enabled is True

    def test_disabled_returns_null_tracer(self) -> None:
        tracer = create_tracer(__name__, enable_tracing=False)

        assert isinstance(tracer, NullTracer)
        assert tracer.enabled is False

    @pytest.mark.parametrize("tracer", [NullTracer(), MockTracer(), OpenTelemetryTracer("x")])
    def test_implementations_satisfy_protocol(self, tracer: Tracer) -> None:
        assert isinstance(tracer, Tracer)


class TestNullTracer:
    def test_spans_yield_none(self) -> None:
        tracer = NullTracer()

        with tracer.span("op", {"k": "v"}) as span:
            assert span is None
        with tracer.span_with_kind("op", SpanKindEnum.PRODUCER) as span:
            assert span is None


class TestMockTracer:
    def test_records_spans(self) -> None:
        tracer = MockTracer()

        with tracer.span("a", {ATTR_TENANT_ID: "t1"}):
            pass
        with tracer.span_with_kind("b", SpanKindEnum.CONSUMER):
            pass

        assert tracer.span_names == ["a", "b"]
        assert tracer.spans[0] == ("a", {"tenantsync.tenant.id": "t1"})
        assert tracer.kinds == [SpanKindEnum.INTERNAL, SpanKindEnum.CONSUMER]

        tracer.clear()
        assert tracer.spans == []
        assert tracer.kinds == []


class TestOpenTelemetryTracer:
    """Spans reach a configured SDK provider."""

    def test_span_kind_and_attributes(self) -> None:
        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        tracer = OpenTelemetryTracer(__name__, tracer_provider=provider)

        with tracer.span_with_kind("sync", SpanKindEnum.PRODUCER, {ATTR_TENANT_ID: "t1"}):
            pass

        (span,) = exporter.get_finished_spans()
        assert span.name == "sync"
        assert span.kind == trace.SpanKind.PRODUCER
        assert span.attributes[ATTR_TENANT_ID] == "t1"
