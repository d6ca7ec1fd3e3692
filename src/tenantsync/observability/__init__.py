"""
Observability utilities for tenantsync.

This module provides the composition-based tracer and the standard attribute
definitions shared by every tenantsync component.

Example:
    >>> from tenantsync.observability import create_tracer
    >>>
    >>> class MyComponent:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
    ...         self._enable_tracing = self._tracer.enabled
"""

from tenantsync.observability.attributes import (
    ATTR_BACKUP_ID,
    ATTR_CHANGE_TYPE,
    ATTR_CHANNEL,
    ATTR_DATA_TYPE,
    ATTR_FORWARDED,
    ATTR_LOCK_KEY,
    ATTR_LOCK_TIMEOUT,
    ATTR_MIGRATION_ID,
    ATTR_MIGRATION_STRATEGY,
    ATTR_MODULE_ID,
    ATTR_PLAN_ITEM_COUNT,
    ATTR_RULE_COUNT,
    ATTR_RULE_ID,
    ATTR_SYNC_TARGET,
    ATTR_SYSTEMS,
    ATTR_TABLE,
    ATTR_TENANT_ID,
    ATTR_VIOLATION_COUNT,
)
from tenantsync.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    SpanKindEnum,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer (composition-based API)
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "SpanKindEnum",
    "create_tracer",
    # Attributes
    "ATTR_BACKUP_ID",
    "ATTR_CHANGE_TYPE",
    "ATTR_CHANNEL",
    "ATTR_DATA_TYPE",
    "ATTR_FORWARDED",
    "ATTR_LOCK_KEY",
    "ATTR_LOCK_TIMEOUT",
    "ATTR_MIGRATION_ID",
    "ATTR_MIGRATION_STRATEGY",
    "ATTR_MODULE_ID",
    "ATTR_PLAN_ITEM_COUNT",
    "ATTR_RULE_COUNT",
    "ATTR_RULE_ID",
    "ATTR_SYNC_TARGET",
    "ATTR_SYSTEMS",
    "ATTR_TABLE",
    "ATTR_TENANT_ID",
    "ATTR_VIOLATION_COUNT",
]
