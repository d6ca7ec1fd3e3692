"""
Collaborator protocols used by the migration planner and executor.

The module registry, per-module config store and the unification service
are owned by the modules subsystem. tenantsync only depends on the narrow
surface below.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tenantsync.migration.models import ModuleStatus, RegistryEntry, UnifiedModule
from tenantsync.types import Record


@runtime_checkable
class ModuleUnifier(Protocol):
    """Produces the merged legacy/registry view of a tenant's modules."""

    async def unify_module_systems(self, tenant_id: str) -> list[UnifiedModule]:
        """
        Get the tenant's modules tagged with provenance.

        Returns:
            One UnifiedModule per module known to either store.
        """
        ...

    async def migrate_to_unified(self, tenant_id: str, module_id: str) -> None:
        """Mark a module as migrated. Idempotent."""
        ...

    async def clear_cache(self, tenant_id: str) -> None:
        """Drop any cached unified view for the tenant."""
        ...


@runtime_checkable
class ModuleRegistry(Protocol):
    """Per-module registry records."""

    async def get_module(self, tenant_id: str, module_id: str) -> RegistryEntry | None:
        """Read a registry entry, or None if the module is not registered."""
        ...

    async def update_module_status(
        self,
        tenant_id: str,
        module_id: str,
        status: ModuleStatus,
        *,
        reason: str | None = None,
    ) -> None:
        """Change a registry entry's status."""
        ...


@runtime_checkable
class ModuleConfigStore(Protocol):
    """Per-tenant, per-module configuration writes."""

    async def set_module_config(self, tenant_id: str, module_id: str, config: Record) -> None:
        """Replace the module's configuration for the tenant."""
        ...


__all__ = [
    "ModuleConfigStore",
    "ModuleRegistry",
    "ModuleUnifier",
]
