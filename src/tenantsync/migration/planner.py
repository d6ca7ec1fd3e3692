"""
MigrationPlanner - Builds read-only migration plans.

The planner inspects the unified view of a tenant's modules and decides,
per module, whether and how it must be migrated into the registry. It never
writes anything.

Usage:
    >>> planner = MigrationPlanner(unifier)
    >>> plan = await planner.create_migration_plan("tenant-1")
    >>> for item in plan.items:
    ...     print(item.module_id, item.migration_strategy.value)
"""

from __future__ import annotations

import logging
from typing import Any

from tenantsync.config import MigrationConfig
from tenantsync.migration.interface import ModuleUnifier
from tenantsync.migration.models import (
    MigrationConflict,
    MigrationPlan,
    MigrationStrategy,
    MigrationWarning,
    ModuleMigrationItem,
    ModuleSource,
    UnifiedModule,
)
from tenantsync.observability import (
    ATTR_PLAN_ITEM_COUNT,
    ATTR_TENANT_ID,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)


def conflicting_keys(legacy_config: dict[str, Any], registry_config: dict[str, Any]) -> list[str]:
    """Keys present in both configurations with different values, sorted."""
    return sorted(
        key
        for key in legacy_config.keys() & registry_config.keys()
        if legacy_config[key] != registry_config[key]
    )


class MigrationPlanner:
    """
    Produces inspectable migration plans from the unified module view.

    Strategy selection per module:
        - UNIFIED: preserve (already migrated)
        - LEGACY with a differing registry entry: merge, conflict recorded
        - LEGACY otherwise: merge
        - REGISTRY: no item

    Example:
        >>> plan = await MigrationPlanner(unifier).create_migration_plan("t1")
        >>> plan.requires_backup
        True
    """

    def __init__(
        self,
        unifier: ModuleUnifier,
        *,
        config: MigrationConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the planner.

        Args:
            unifier: Source of the merged legacy/registry view.
            config: Migration configuration (per-item estimate).
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing.
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._unifier = unifier
        self._config = config or MigrationConfig()

    async def create_migration_plan(self, tenant_id: str) -> MigrationPlan:
        """
        Build a migration plan for a tenant.

        Args:
            tenant_id: The tenant to plan for.

        Returns:
            MigrationPlan; empty when the tenant has nothing to migrate.
        """
        with self._tracer.span(
            "tenantsync.migration.create_plan",
            {ATTR_TENANT_ID: tenant_id},
        ) as span:
            modules = await self._unifier.unify_module_systems(tenant_id)

            items: list[ModuleMigrationItem] = []
            conflicts: list[MigrationConflict] = []
            warnings: list[MigrationWarning] = []

            for module in modules:
                if not module.source.needs_migration:
                    continue

                strategy, conflict = self._choose_strategy(module)
                if conflict is not None:
                    conflicts.append(conflict)
                if module.source == ModuleSource.LEGACY and module.registry_entry is None:
                    warnings.append(
                        MigrationWarning(
                            module.module_id,
                            "no registry entry; module will be skipped until it is registered",
                        )
                    )

                items.append(
                    ModuleMigrationItem(
                        module_id=module.module_id,
                        current_source=module.source,
                        migration_strategy=strategy,
                        legacy_config=module.legacy_config,
                        registry_entry=module.registry_entry,
                    )
                )

            plan = MigrationPlan(
                tenant_id=tenant_id,
                items=items,
                estimated_duration_ms=len(items) * self._config.per_item_estimate_ms,
                requires_backup=len(items) > 0,
                conflicts=conflicts,
                warnings=warnings,
            )

            if span:
                span.set_attribute(ATTR_PLAN_ITEM_COUNT, plan.item_count)

            logger.info(
                "Created migration plan for tenant %s: %d item(s), %d conflict(s), %d warning(s)",
                tenant_id,
                plan.item_count,
                len(conflicts),
                len(warnings),
            )
            return plan

    def _choose_strategy(
        self, module: UnifiedModule
    ) -> tuple[MigrationStrategy, MigrationConflict | None]:
        match module.source:
            case ModuleSource.UNIFIED:
                return MigrationStrategy.PRESERVE, None
            case ModuleSource.LEGACY:
                if module.legacy_config is not None and module.registry_entry is not None:
                    keys = conflicting_keys(module.legacy_config, module.registry_entry.config)
                    if keys:
                        return MigrationStrategy.MERGE, MigrationConflict(
                            module_id=module.module_id,
                            conflict_type="configuration",
                            description=(
                                "Legacy and registry configuration differ for "
                                f"{', '.join(keys)}"
                            ),
                        )
                return MigrationStrategy.MERGE, None
            case ModuleSource.REGISTRY:
                raise ValueError(f"Registry-only module {module.module_id} needs no migration")


__all__ = ["MigrationPlanner", "conflicting_keys"]
