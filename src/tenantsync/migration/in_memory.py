"""
In-memory module systems for tests and development.

InMemoryModuleSystems plays the three collaborator roles the migration
components depend on (ModuleUnifier, ModuleRegistry, ModuleConfigStore) on
top of a DataStore:

    - Legacy aggregate: one row per tenant in ``tenant_app_config``:
      ``{"modules_enabled": [...], "module_settings": {module_id: {...}},
      "unified_modules": [...]}``
    - Registry: one row per module in ``module_registry`` keyed
      ``"{tenant_id}:{module_id}"``
    - Per-module configuration: one row per module in
      ``module_configurations`` keyed the same way

The unified marker lives in the legacy row, so restoring that row verbatim
also reverts the markers.
"""

from __future__ import annotations

import logging

from tenantsync.exceptions import NotFoundError
from tenantsync.migration.models import (
    ModuleSource,
    ModuleStatus,
    RegistryEntry,
    UnifiedModule,
)
from tenantsync.stores.in_memory import InMemoryDataStore
from tenantsync.stores.interface import DataStore
from tenantsync.types import Record

logger = logging.getLogger(__name__)


def module_row_id(tenant_id: str, module_id: str) -> str:
    """Row key for per-module tables."""
    return f"{tenant_id}:{module_id}"


class InMemoryModuleSystems:
    """
    Legacy aggregate, module registry and per-module config store in one.

    Example:
        >>> systems = InMemoryModuleSystems()
        >>> await systems.set_legacy_config("t1", ["billing"])
        >>> await systems.register_module(RegistryEntry("billing", "t1"))
        >>> [m.source for m in await systems.unify_module_systems("t1")]
        [<ModuleSource.LEGACY: 'legacy'>]
    """

    def __init__(
        self,
        store: DataStore | None = None,
        *,
        legacy_table: str = "tenant_app_config",
        registry_table: str = "module_registry",
        config_table: str = "module_configurations",
        registry_scan_limit: int = 1000,
    ) -> None:
        self._store = store or InMemoryDataStore(enable_tracing=False)
        self._legacy_table = legacy_table
        self._registry_table = registry_table
        self._config_table = config_table
        self._registry_scan_limit = registry_scan_limit
        self._cache: dict[str, list[UnifiedModule]] = {}

    @property
    def store(self) -> DataStore:
        """The backing data store."""
        return self._store

    # -------------------------------------------------------------------------
    # Seeding helpers
    # -------------------------------------------------------------------------

    async def set_legacy_config(
        self,
        tenant_id: str,
        modules_enabled: list[str],
        module_settings: dict[str, Record] | None = None,
    ) -> None:
        """Write a tenant's legacy aggregate row."""
        await self._store.write_row(
            self._legacy_table,
            tenant_id,
            {
                "modules_enabled": list(modules_enabled),
                "module_settings": dict(module_settings or {}),
            },
        )
        self._cache.pop(tenant_id, None)

    async def register_module(self, entry: RegistryEntry) -> None:
        """Create or replace a registry entry."""
        await self._store.write_row(
            self._registry_table,
            module_row_id(entry.tenant_id, entry.module_id),
            entry.to_dict(),
        )
        self._cache.pop(entry.tenant_id, None)

    # -------------------------------------------------------------------------
    # ModuleUnifier
    # -------------------------------------------------------------------------

    async def unify_module_systems(self, tenant_id: str) -> list[UnifiedModule]:
        cached = self._cache.get(tenant_id)
        if cached is not None:
            return list(cached)

        legacy = await self._store.get_row(self._legacy_table, tenant_id) or {}
        enabled: list[str] = list(legacy.get("modules_enabled") or [])
        settings: dict[str, Record] = dict(legacy.get("module_settings") or {})
        unified = set(legacy.get("unified_modules") or [])

        rows = await self._store.select_rows(
            self._registry_table, limit=self._registry_scan_limit, tenant_id=tenant_id
        )
        registry = {row["module_id"]: RegistryEntry.from_dict(row) for row in rows}

        module_ids = list(dict.fromkeys([*enabled, *sorted(unified), *registry]))
        modules: list[UnifiedModule] = []
        for module_id in module_ids:
            in_legacy = module_id in enabled or module_id in unified
            if module_id in unified:
                source = ModuleSource.UNIFIED
            elif module_id in enabled:
                source = ModuleSource.LEGACY
            else:
                source = ModuleSource.REGISTRY

            modules.append(
                UnifiedModule(
                    module_id=module_id,
                    source=source,
                    legacy_config=dict(settings.get(module_id) or {}) if in_legacy else None,
                    registry_entry=registry.get(module_id),
                )
            )

        self._cache[tenant_id] = modules
        return list(modules)

    async def migrate_to_unified(self, tenant_id: str, module_id: str) -> None:
        legacy = await self._store.get_row(self._legacy_table, tenant_id) or {}
        markers: list[str] = list(legacy.get("unified_modules") or [])
        if module_id not in markers:
            markers.append(module_id)
            legacy["unified_modules"] = markers
            await self._store.write_row(self._legacy_table, tenant_id, legacy)
            logger.debug("Marked module %s unified for tenant %s", module_id, tenant_id)
        self._cache.pop(tenant_id, None)

    async def clear_cache(self, tenant_id: str) -> None:
        self._cache.pop(tenant_id, None)

    # -------------------------------------------------------------------------
    # ModuleRegistry
    # -------------------------------------------------------------------------

    async def get_module(self, tenant_id: str, module_id: str) -> RegistryEntry | None:
        row = await self._store.get_row(self._registry_table, module_row_id(tenant_id, module_id))
        return RegistryEntry.from_dict(row) if row is not None else None

    async def update_module_status(
        self,
        tenant_id: str,
        module_id: str,
        status: ModuleStatus,
        *,
        reason: str | None = None,
    ) -> None:
        row_id = module_row_id(tenant_id, module_id)
        row = await self._store.get_row(self._registry_table, row_id)
        if row is None:
            raise NotFoundError("Module", row_id)

        row["status"] = status.value
        row["status_reason"] = reason
        await self._store.write_row(self._registry_table, row_id, row)
        self._cache.pop(tenant_id, None)
        logger.info(
            "Module %s for tenant %s set to %s (%s)",
            module_id,
            tenant_id,
            status.value,
            reason or "no reason given",
        )

    # -------------------------------------------------------------------------
    # ModuleConfigStore
    # -------------------------------------------------------------------------

    async def set_module_config(self, tenant_id: str, module_id: str, config: Record) -> None:
        await self._store.write_row(
            self._config_table,
            module_row_id(tenant_id, module_id),
            {"tenant_id": tenant_id, "module_id": module_id, "config": config},
        )

    async def get_module_config(self, tenant_id: str, module_id: str) -> Record | None:
        """Read back a module's configuration, or None if never written."""
        row = await self._store.get_row(self._config_table, module_row_id(tenant_id, module_id))
        return row["config"] if row is not None else None


__all__ = ["InMemoryModuleSystems", "module_row_id"]
