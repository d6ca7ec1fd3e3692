"""
Shared test builders for the tenantsync test suite.

Usage:
    from tests.fixtures import make_rows, parity_rule, registry_entry
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from tenantsync.consistency import ConsistencyRule, ConsistencySeverity, DatasetSnapshot
from tenantsync.migration import ModuleStatus, RegistryEntry
from tenantsync.types import Record, Subsystem


def make_rows(count: int, prefix: str = "row", **fields: Any) -> list[Record]:
    """Build ``count`` rows with ids ``{prefix}-0`` .. and shared extra fields."""
    return [{"id": f"{prefix}-{i}", **fields} for i in range(count)]


def registry_entry(
    module_id: str,
    tenant_id: str = "t1",
    *,
    status: ModuleStatus = ModuleStatus.INACTIVE,
    config: Record | None = None,
    capabilities: list[str] | None = None,
    dependencies: list[str] | None = None,
    version: str = "1.0.0",
) -> RegistryEntry:
    """Registry entry with sensible defaults."""
    return RegistryEntry(
        module_id=module_id,
        tenant_id=tenant_id,
        status=status,
        capabilities=capabilities or [],
        dependencies=dependencies or [],
        config=config or {},
        version=version,
    )


def parity_rule(
    rule_id: str = "parity",
    *,
    systems: Sequence[Subsystem] = (Subsystem.MODULES, Subsystem.MARKETPLACE),
    data_type: str = "modules",
    severity: ConsistencySeverity = ConsistencySeverity.WARNING,
    repair: Any = None,
) -> ConsistencyRule:
    """Rule comparing the row counts of the first two snapshots."""

    def check(data: Sequence[DatasetSnapshot]) -> bool:
        return len(data[0].data) == len(data[1].data)

    return ConsistencyRule(
        id=rule_id,
        systems=tuple(systems),
        data_type=data_type,
        check=check,
        repair=repair,
        severity=severity,
    )


def change_payload(
    event_type: str,
    new: Record | None = None,
    old: Record | None = None,
    table: str | None = None,
) -> dict[str, Any]:
    """Raw change feed payload in the wire shape."""
    payload: dict[str, Any] = {"eventType": event_type, "new": new or {}, "old": old or {}}
    if table is not None:
        payload["table"] = table
    return payload


__all__ = [
    "change_payload",
    "make_rows",
    "parity_rule",
    "registry_entry",
]
