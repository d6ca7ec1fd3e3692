"""Resolution of (subsystem, data type) pairs to physical table names."""

from __future__ import annotations

from tenantsync.types import Subsystem

TABLE_MAP: dict[tuple[Subsystem, str], str] = {
    (Subsystem.ORCHESTRATION, "workflows"): "workflow_definitions",
    (Subsystem.ORCHESTRATION, "executions"): "workflow_executions",
    (Subsystem.ORCHESTRATION, "modules"): "workflow_module_bindings",
    (Subsystem.MODULES, "activations"): "module_activations",
    (Subsystem.MODULES, "configurations"): "module_configurations",
    (Subsystem.MODULES, "modules"): "module_registry",
    (Subsystem.MARKETPLACE, "installations"): "marketplace_installations",
    (Subsystem.MARKETPLACE, "templates"): "marketplace_templates",
    (Subsystem.MARKETPLACE, "modules"): "marketplace_installations",
    (Subsystem.HANDOVER, "packages"): "handover_packages",
    (Subsystem.HANDOVER, "executions"): "handover_packages",
}


def resolve_table(system: Subsystem, data_type: str) -> str:
    """
    Resolve the physical table holding `data_type` rows for a subsystem.

    Unmapped pairs fall back to "{system}_{data_type}".

    Example:
        >>> resolve_table(Subsystem.MODULES, "activations")
        'module_activations'
        >>> resolve_table(Subsystem.HANDOVER, "notes")
        'handover_notes'
    """
    return TABLE_MAP.get((system, data_type), f"{system.value}_{data_type}")


__all__ = ["TABLE_MAP", "resolve_table"]
