"""
MigrationExecutor - Applies migration plans with backup and rollback.

The executor walks a plan item by item, writing each module's configuration
into the per-module config store and marking it unified. Before the first
write it snapshots the tenant's legacy aggregate row and the registry
entries the plan references, so the migration can be rolled back.

Responsibilities:
    - Serialize migrations per tenant
    - Back up before any mutation; abort with zero writes if that fails
    - Apply items sequentially, isolating per-item failures
    - Report pollable progress per tenant
    - Keep an in-memory history of results and backups
    - Roll back from a stored backup
    - Validate a tenant's post-migration state

Usage:
    >>> executor = MigrationExecutor(planner, unifier, registry, config_store, store)
    >>> result = await executor.execute_migration("tenant-1")
    >>> if not result.success:
    ...     for failure in result.failed_modules:
    ...         print(failure.module_id, failure.error, failure.can_retry)
    >>> await executor.rollback_migration(result.backup_id)
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from uuid import uuid4

from tenantsync.config import MigrationConfig
from tenantsync.exceptions import (
    BackupError,
    BackupNotFoundError,
    MigrationInProgressError,
    ValidationError,
)
from tenantsync.locks import InMemoryLockManager, migration_lock_key
from tenantsync.migration.interface import ModuleConfigStore, ModuleRegistry, ModuleUnifier
from tenantsync.migration.models import (
    MigrationBackup,
    MigrationFailure,
    MigrationPlan,
    MigrationResult,
    MigrationStatistics,
    MigrationStrategy,
    MigrationValidationReport,
    ModuleMigrationItem,
    ModuleSource,
    ModuleStatus,
    RegistryEntry,
)
from tenantsync.migration.planner import MigrationPlanner
from tenantsync.observability import (
    ATTR_BACKUP_ID,
    ATTR_MIGRATION_ID,
    ATTR_MIGRATION_STRATEGY,
    ATTR_MODULE_ID,
    ATTR_PLAN_ITEM_COUNT,
    ATTR_TENANT_ID,
    Tracer,
    create_tracer,
)
from tenantsync.stores.interface import DataStore
from tenantsync.types import Record

logger = logging.getLogger(__name__)

ROLLBACK_REASON = "Rolled back from migration"


def merged_config(legacy_config: Record | None, entry: RegistryEntry) -> Record:
    """Legacy fields plus registry fields, registry values winning on overlap."""
    return {
        **(legacy_config or {}),
        **entry.config,
        "capabilities": list(entry.capabilities),
        "dependencies": list(entry.dependencies),
    }


def replacement_config(entry: RegistryEntry) -> Record:
    """Registry-derived fields only."""
    return {
        **entry.config,
        "capabilities": list(entry.capabilities),
        "dependencies": list(entry.dependencies),
        "version": entry.version,
    }


class MigrationExecutor:
    """
    Executes migration plans for tenants.

    Items are processed strictly sequentially. Migrations of different
    tenants are independent; a second migration of a tenant that already
    has one running is refused with a failed result.

    The progress map, result history and backup store are owned by the
    instance and are not persisted.

    Example:
        >>> result = await executor.execute_migration("t1")
        >>> result.statistics.migrated, result.statistics.skipped
        (3, 1)
    """

    def __init__(
        self,
        planner: MigrationPlanner,
        unifier: ModuleUnifier,
        registry: ModuleRegistry,
        config_store: ModuleConfigStore,
        store: DataStore,
        *,
        lock_manager: InMemoryLockManager | None = None,
        config: MigrationConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the executor.

        Args:
            planner: Builds a plan when execute_migration() gets none.
            unifier: Unified view, unified marker and cache control.
            registry: Registry entries (backup reads, rollback demotion).
            config_store: Target of per-module configuration writes.
            store: Data store holding the legacy aggregate table.
            lock_manager: Per-tenant locks (a private one if omitted).
            config: Migration configuration.
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing.
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._planner = planner
        self._unifier = unifier
        self._registry = registry
        self._config_store = config_store
        self._store = store
        self._locks = lock_manager or InMemoryLockManager(enable_tracing=False)
        self._config = config or MigrationConfig()

        self._progress: dict[str, float] = {}
        self._history: dict[str, MigrationResult] = {}
        self._backups: dict[str, MigrationBackup] = {}

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute_migration(
        self,
        tenant_id: str,
        plan: MigrationPlan | None = None,
    ) -> MigrationResult:
        """
        Migrate a tenant's modules into the unified representation.

        Args:
            tenant_id: Tenant to migrate.
            plan: Plan to apply; built with the planner when omitted.

        Returns:
            MigrationResult; expected failures are reported, not raised.
        """
        migration_id = f"migration-{tenant_id}-{uuid4().hex[:12]}"
        started_at = datetime.now(UTC)
        start = time.monotonic()

        with self._tracer.span(
            "tenantsync.migration.execute",
            {ATTR_TENANT_ID: tenant_id, ATTR_MIGRATION_ID: migration_id},
        ):
            lock_key = migration_lock_key(tenant_id)
            if await self._locks.try_acquire(lock_key, timeout=self._config.lock_timeout) is None:
                error = MigrationInProgressError(tenant_id)
                logger.warning("%s; refusing migration %s", error, migration_id)
                return self._aborted(migration_id, tenant_id, started_at, start, str(error))

            try:
                return await self._execute_locked(
                    migration_id, tenant_id, plan, started_at, start
                )
            finally:
                await self._locks.release(lock_key)

    async def _execute_locked(
        self,
        migration_id: str,
        tenant_id: str,
        plan: MigrationPlan | None,
        started_at: datetime,
        start: float,
    ) -> MigrationResult:
        try:
            if plan is None:
                plan = await self._planner.create_migration_plan(tenant_id)
            elif plan.tenant_id != tenant_id:
                raise ValidationError(
                    f"Plan for tenant {plan.tenant_id} cannot be applied to tenant {tenant_id}",
                    field="tenant_id",
                )
            already_unified = await self._unified_module_ids(tenant_id)
        except Exception as e:
            logger.error("Migration %s for tenant %s could not start: %s", migration_id, tenant_id, e)
            return self._aborted(migration_id, tenant_id, started_at, start, str(e))

        backup: MigrationBackup | None = None
        if plan.requires_backup:
            try:
                backup = await self._create_backup(tenant_id, plan)
            except BackupError as e:
                logger.error("Migration %s aborted before any write: %s", migration_id, e)
                return self._aborted(
                    migration_id,
                    tenant_id,
                    started_at,
                    start,
                    str(e),
                    warnings=[str(w) for w in plan.warnings],
                )

        logger.info(
            "Starting migration %s for tenant %s: %d item(s), backup=%s",
            migration_id,
            tenant_id,
            plan.item_count,
            backup.backup_id if backup else None,
        )

        migrated: list[str] = []
        skipped: list[str] = []
        failures: list[MigrationFailure] = []
        total = plan.item_count
        stopped = False

        self._progress[tenant_id] = 0.0
        try:
            for index, item in enumerate(plan.items):
                if stopped:
                    skipped.append(item.module_id)
                    continue

                try:
                    if await self._migrate_item(tenant_id, item, already_unified):
                        migrated.append(item.module_id)
                    else:
                        skipped.append(item.module_id)
                except Exception as e:
                    failure = MigrationFailure.from_exception(item.module_id, e)
                    failures.append(failure)
                    logger.error(
                        "Migration %s failed for module %s (can_retry=%s): %s",
                        migration_id,
                        item.module_id,
                        failure.can_retry,
                        failure.error,
                        extra={"tenant_id": tenant_id, "module_id": item.module_id},
                    )
                    if not self._config.continue_on_error:
                        stopped = True

                self._progress[tenant_id] = round((index + 1) / total * 100, 2)
        finally:
            self._progress.pop(tenant_id, None)

        await self._clear_cache(tenant_id)

        result = MigrationResult(
            success=not failures,
            migration_id=migration_id,
            tenant_id=tenant_id,
            timestamp=started_at,
            statistics=MigrationStatistics(
                total=total,
                migrated=len(migrated),
                failed=len(failures),
                skipped=len(skipped),
            ),
            migrated_modules=migrated,
            failed_modules=failures,
            skipped_modules=skipped,
            duration_ms=(time.monotonic() - start) * 1000,
            rollback_available=backup is not None,
            backup_id=backup.backup_id if backup else None,
            warnings=[str(w) for w in plan.warnings],
        )
        self._history[migration_id] = result

        logger.info(
            "Migration %s for tenant %s finished: migrated=%d skipped=%d failed=%d in %.1fms",
            migration_id,
            tenant_id,
            len(migrated),
            len(skipped),
            len(failures),
            result.duration_ms,
        )
        return result

    async def _migrate_item(
        self,
        tenant_id: str,
        item: ModuleMigrationItem,
        already_unified: set[str],
    ) -> bool:
        """Apply one item. Returns False when the item is skipped."""
        if item.current_source == ModuleSource.UNIFIED or item.module_id in already_unified:
            logger.debug("Skipping %s: already unified", item.module_id)
            return False

        entry = item.registry_entry
        if entry is None:
            logger.debug("Skipping %s: no registry entry to migrate into", item.module_id)
            return False

        with self._tracer.span(
            "tenantsync.migration.migrate_item",
            {
                ATTR_TENANT_ID: tenant_id,
                ATTR_MODULE_ID: item.module_id,
                ATTR_MIGRATION_STRATEGY: item.migration_strategy.value,
            },
        ):
            match item.migration_strategy:
                case MigrationStrategy.MERGE:
                    await self._config_store.set_module_config(
                        tenant_id, item.module_id, merged_config(item.legacy_config, entry)
                    )
                case MigrationStrategy.REPLACE:
                    await self._config_store.set_module_config(
                        tenant_id, item.module_id, replacement_config(entry)
                    )
                case MigrationStrategy.PRESERVE:
                    pass

            await self._unifier.migrate_to_unified(tenant_id, item.module_id)
            return True

    async def _unified_module_ids(self, tenant_id: str) -> set[str]:
        await self._unifier.clear_cache(tenant_id)
        modules = await self._unifier.unify_module_systems(tenant_id)
        return {m.module_id for m in modules if m.source == ModuleSource.UNIFIED}

    async def _clear_cache(self, tenant_id: str) -> None:
        try:
            await self._unifier.clear_cache(tenant_id)
        except Exception as e:
            logger.warning("Could not clear unified view cache for tenant %s: %s", tenant_id, e)

    def _aborted(
        self,
        migration_id: str,
        tenant_id: str,
        started_at: datetime,
        start: float,
        error: str,
        warnings: list[str] | None = None,
    ) -> MigrationResult:
        result = MigrationResult(
            success=False,
            migration_id=migration_id,
            tenant_id=tenant_id,
            timestamp=started_at,
            statistics=MigrationStatistics(),
            duration_ms=(time.monotonic() - start) * 1000,
            errors=[error],
            warnings=warnings or [],
        )
        self._history[migration_id] = result
        return result

    # -------------------------------------------------------------------------
    # Backup and rollback
    # -------------------------------------------------------------------------

    async def _create_backup(self, tenant_id: str, plan: MigrationPlan) -> MigrationBackup:
        """
        Snapshot the legacy row and referenced registry entries.

        Raises:
            BackupError: If any read fails. Nothing has been written yet.
        """
        with self._tracer.span(
            "tenantsync.migration.backup",
            {ATTR_TENANT_ID: tenant_id, ATTR_PLAN_ITEM_COUNT: plan.item_count},
        ):
            try:
                legacy = await self._store.get_row(self._config.legacy_config_table, tenant_id)
                entries: dict[str, RegistryEntry] = {}
                for item in plan.items:
                    entry = await self._registry.get_module(tenant_id, item.module_id)
                    if entry is not None:
                        entries[item.module_id] = entry
            except Exception as e:
                raise BackupError(tenant_id, str(e)) from e

            backup_id = f"backup-{tenant_id}-{int(time.time() * 1000)}"
            if backup_id in self._backups:
                suffix = 1
                while f"{backup_id}-{suffix}" in self._backups:
                    suffix += 1
                backup_id = f"{backup_id}-{suffix}"

            backup = MigrationBackup(
                backup_id=backup_id,
                tenant_id=tenant_id,
                timestamp=datetime.now(UTC),
                legacy_config=legacy,
                registry_entries=entries,
            )
            self._backups[backup_id] = backup
            logger.info(
                "Stored backup %s for tenant %s (%d registry entries)",
                backup_id,
                tenant_id,
                len(entries),
            )
            return backup

    async def rollback_migration(self, backup_id: str) -> bool:
        """
        Restore a tenant from a migration backup.

        The legacy aggregate row is written back verbatim and every backed-up
        registry entry that was active is demoted to inactive. Nothing is
        reactivated. The backup is consumed on success.

        Args:
            backup_id: Backup id from a MigrationResult.

        Returns:
            True on success; False for an unknown backup, a tenant with a
            running migration, or a failed restore.
        """
        with self._tracer.span(
            "tenantsync.migration.rollback",
            {ATTR_BACKUP_ID: backup_id},
        ):
            try:
                backup = self.require_backup(backup_id)
            except BackupNotFoundError as e:
                logger.warning("Rollback failed: %s", e)
                return False

            tenant_id = backup.tenant_id
            lock_key = migration_lock_key(tenant_id)
            if await self._locks.try_acquire(lock_key, timeout=self._config.lock_timeout) is None:
                logger.warning(
                    "Rollback of %s refused: migration in progress for tenant %s",
                    backup_id,
                    tenant_id,
                )
                return False

            try:
                if backup.legacy_config is not None:
                    await self._store.write_row(
                        self._config.legacy_config_table, tenant_id, backup.legacy_config
                    )
                else:
                    logger.warning(
                        "Backup %s holds no legacy row for tenant %s; nothing to restore",
                        backup_id,
                        tenant_id,
                    )

                for module_id, entry in backup.registry_entries.items():
                    if entry.status == ModuleStatus.ACTIVE:
                        await self._registry.update_module_status(
                            tenant_id,
                            module_id,
                            ModuleStatus.INACTIVE,
                            reason=ROLLBACK_REASON,
                        )
            except Exception as e:
                logger.error("Rollback of %s failed: %s", backup_id, e, exc_info=True)
                return False
            finally:
                await self._locks.release(lock_key)

            await self._clear_cache(tenant_id)
            del self._backups[backup_id]
            logger.info("Rolled back tenant %s from backup %s", tenant_id, backup_id)
            return True

    # -------------------------------------------------------------------------
    # Validation and introspection
    # -------------------------------------------------------------------------

    async def validate_migration(self, tenant_id: str) -> MigrationValidationReport:
        """
        Check a tenant's modules after migration.

        Unified modules must have both a legacy and a registry configuration.
        Legacy-sourced modules that also have a registry entry are reported
        as incompletely migrated.
        """
        with self._tracer.span(
            "tenantsync.migration.validate",
            {ATTR_TENANT_ID: tenant_id},
        ):
            modules = await self._unifier.unify_module_systems(tenant_id)
            errors: list[str] = []
            warnings: list[str] = []

            for module in modules:
                match module.source:
                    case ModuleSource.UNIFIED:
                        if module.legacy_config is None or module.registry_entry is None:
                            errors.append(f"{module.module_id}: missing required configuration")
                    case ModuleSource.LEGACY:
                        if module.registry_entry is not None:
                            warnings.append(
                                f"{module.module_id}: incomplete migration, "
                                "still legacy-sourced with a registry entry"
                            )
                    case ModuleSource.REGISTRY:
                        pass

            return MigrationValidationReport(
                valid=not errors,
                errors=errors,
                warnings=warnings,
                checked_modules=len(modules),
            )

    def get_migration_progress(self, tenant_id: str) -> float | None:
        """Progress 0-100 of the tenant's running migration, None if idle."""
        return self._progress.get(tenant_id)

    def get_migration_result(self, migration_id: str) -> MigrationResult | None:
        """Result of a finished migration attempt."""
        return self._history.get(migration_id)

    def get_migration_history(self, tenant_id: str) -> list[MigrationResult]:
        """Results for a tenant, newest first."""
        results = [r for r in self._history.values() if r.tenant_id == tenant_id]
        return sorted(results, key=lambda r: r.timestamp, reverse=True)

    def get_backup(self, backup_id: str) -> MigrationBackup | None:
        """A stored backup, or None."""
        return self._backups.get(backup_id)

    def require_backup(self, backup_id: str) -> MigrationBackup:
        """
        A stored backup.

        Raises:
            BackupNotFoundError: If the id is unknown or already rolled back.
        """
        backup = self._backups.get(backup_id)
        if backup is None:
            raise BackupNotFoundError(backup_id)
        return backup

    def list_backups(self, tenant_id: str) -> list[MigrationBackup]:
        """Stored backups for a tenant, oldest first."""
        return [b for b in self._backups.values() if b.tenant_id == tenant_id]


__all__ = [
    "MigrationExecutor",
    "ROLLBACK_REASON",
    "merged_config",
    "replacement_config",
]
