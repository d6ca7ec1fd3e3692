"""
Tracer protocol and implementations for composition-based tracing.

Components receive a tracer as a constructor dependency instead of talking to
OpenTelemetry directly, which keeps tracing swappable and easy to assert on
in tests.

Example:
    >>> from tenantsync.observability import create_tracer
    >>>
    >>> class MigrationExecutor:
    ...     def __init__(self, tracer: Tracer | None = None, enable_tracing: bool = True):
    ...         self._tracer = tracer or create_tracer(__name__, enable_tracing)
    ...
    ...     async def execute_migration(self, tenant_id: str) -> None:
    ...         with self._tracer.span("tenantsync.migration.execute", {"tenant.id": tenant_id}):
    ...             ...
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from contextlib import AbstractContextManager
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from opentelemetry import trace
from opentelemetry.trace import SpanKind as OtelSpanKind

if TYPE_CHECKING:
    from opentelemetry.trace import Span


class SpanKindEnum(Enum):
    """
    Span kinds for distributed tracing.

    Values:
        INTERNAL: Default span kind for internal operations
        PRODUCER: Forwarding a payload to another subsystem
        CONSUMER: Handling a change notification from another subsystem
    """

    INTERNAL = "internal"
    PRODUCER = "producer"
    CONSUMER = "consumer"


_KIND_MAPPING = {
    SpanKindEnum.INTERNAL: OtelSpanKind.INTERNAL,
    SpanKindEnum.PRODUCER: OtelSpanKind.PRODUCER,
    SpanKindEnum.CONSUMER: OtelSpanKind.CONSUMER,
}


@runtime_checkable
class Tracer(Protocol):
    """
    Protocol for tracers that can create tracing spans.

    Implementations:
    - NullTracer: No-op tracer for when tracing is disabled
    - OpenTelemetryTracer: Wrapper around the OpenTelemetry tracer
    - MockTracer: Records span names and attributes for tests
    """

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        """
        Create a tracing span context manager.

        Args:
            name: Span name (e.g., "tenantsync.consistency.check")
            attributes: Span attributes (optional)

        Returns:
            Context manager that yields Span or None
        """
        ...

    @property
    def enabled(self) -> bool:
        """True if tracing is active and will create real spans."""
        ...

    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        """
        Create a tracing span context manager with a SpanKind.

        Args:
            name: Span name
            kind: The span kind (PRODUCER, CONSUMER, INTERNAL)
            attributes: Span attributes (optional)

        Returns:
            Context manager that yields Span or None
        """
        ...


class NullTracer:
    """Tracer used when tracing is disabled. Every span yields None."""

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False

    @contextlib.contextmanager
    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        yield None


class OpenTelemetryTracer:
    """
    OpenTelemetry tracer implementation.

    Spans are created through the globally configured TracerProvider. When no
    SDK is configured, OpenTelemetry hands out non-recording spans.

    Args:
        tracer_name: Name for the tracer (typically __name__)
        tracer_provider: Provider to use instead of the global one
    """

    def __init__(
        self,
        tracer_name: str,
        tracer_provider: trace.TracerProvider | None = None,
    ) -> None:
        self._tracer = trace.get_tracer(tracer_name, tracer_provider=tracer_provider)

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        """Create an OpenTelemetry span context."""
        return self._tracer.start_as_current_span(
            name,
            attributes=attributes or {},
        )

    @property
    def enabled(self) -> bool:
        """Always returns True for OpenTelemetryTracer."""
        return True

    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        """Create an OpenTelemetry span context with SpanKind."""
        return self._tracer.start_as_current_span(
            name,
            kind=_KIND_MAPPING.get(kind, OtelSpanKind.INTERNAL),
            attributes=attributes or {},
        )


class MockTracer:
    """
    In-process tracer that records spans for assertions.

    Attributes:
        spans: (name, attributes) pairs in the order the spans were opened
        kinds: Span kind of each recorded span, parallel to ``spans``

    Example:
        >>> tracer = MockTracer()
        >>> executor = MigrationExecutor(..., tracer=tracer)
        >>> await executor.execute_migration("t1")
        >>> "tenantsync.migration.execute" in tracer.span_names
        True
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, dict[str, Any] | None]] = []
        self.kinds: list[SpanKindEnum] = []

    def _record(self, name: str, kind: SpanKindEnum, attributes: dict[str, Any] | None) -> None:
        self.spans.append((name, attributes))
        self.kinds.append(kind)

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        self._record(name, SpanKindEnum.INTERNAL, attributes)
        yield None

    @contextlib.contextmanager
    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        self._record(name, kind, attributes)
        yield None

    @property
    def enabled(self) -> bool:
        # Components only compute span attributes when tracing is enabled
        return True

    @property
    def span_names(self) -> list[str]:
        """Recorded span names, in order."""
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        """Forget recorded spans."""
        self.spans.clear()
        self.kinds.clear()


def create_tracer(
    name: str,
    enable_tracing: bool = True,
) -> Tracer:
    """
    Factory function to create the appropriate tracer.

    Args:
        name: Tracer name (typically __name__)
        enable_tracing: Whether tracing should be enabled (default True)

    Returns:
        OpenTelemetryTracer if enabled, NullTracer otherwise

    Example:
        >>> def __init__(self, tracer: Tracer | None = None, enable_tracing: bool = True):
        ...     self._tracer = tracer or create_tracer(__name__, enable_tracing)
    """
    if enable_tracing:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "SpanKindEnum",
    "create_tracer",
]
