"""
Unit tests for MigrationExecutor.

Tests cover:
- Merge, replace and preserve writes
- Idempotence (second run and stale plans skip unified modules)
- Backup-before-mutate (backup failure aborts with zero writes)
- Rollback fidelity, demotion of active entries, consumed backups
- Per-tenant lock contention
- Partial-failure isolation and retry classification
- Progress reporting
- validate_migration()
- History and backup introspection
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tenantsync.config import MigrationConfig
from tenantsync.exceptions import BackupNotFoundError, PartialFailureError
from tenantsync.locks import InMemoryLockManager, migration_lock_key
from tenantsync.migration import (
    ROLLBACK_REASON,
    InMemoryModuleSystems,
    MigrationExecutor,
    MigrationPlan,
    MigrationPlanner,
    MigrationStrategy,
    ModuleMigrationItem,
    ModuleSource,
    ModuleStatus,
)
from tenantsync.observability import MockTracer
from tenantsync.stores import InMemoryDataStore
from tests.fixtures import registry_entry


def build_executor(
    systems: InMemoryModuleSystems,
    *,
    store=None,
    config_store=None,
    unifier=None,
    config: MigrationConfig | None = None,
    lock_manager: InMemoryLockManager | None = None,
    tracer=None,
) -> MigrationExecutor:
    unifier = unifier or systems
    return MigrationExecutor(
        MigrationPlanner(unifier, enable_tracing=False),
        unifier,
        systems,
        config_store or systems,
        store or systems.store,
        lock_manager=lock_manager,
        config=config,
        tracer=tracer,
        enable_tracing=False,
    )


async def seed_two_modules(systems: InMemoryModuleSystems) -> None:
    await systems.set_legacy_config(
        "t1", ["billing", "crm"], {"billing": {"currency": "USD", "legacy_only": True}}
    )
    await systems.register_module(
        registry_entry(
            "billing",
            config={"currency": "EUR"},
            capabilities=["invoicing"],
            dependencies=["crm"],
            version="2.1.0",
        )
    )
    await systems.register_module(registry_entry("crm", status=ModuleStatus.ACTIVE))


class TestExecuteMigration:
    """Tests for execute_migration()."""

    @pytest.mark.asyncio
    async def test_merges_with_registry_priority(
        self, executor: MigrationExecutor, module_systems: InMemoryModuleSystems
    ) -> None:
        """Merge writes legacy fields overlaid by registry fields."""
        await seed_two_modules(module_systems)

        result = await executor.execute_migration("t1")

        assert result.success is True
        assert result.migrated_modules == ["billing", "crm"]
        assert result.statistics.migrated == 2
        assert await module_systems.get_module_config("t1", "billing") == {
            "currency": "EUR",
            "legacy_only": True,
            "capabilities": ["invoicing"],
            "dependencies": ["crm"],
        }
        modules = await module_systems.unify_module_systems("t1")
        assert {m.source for m in modules} == {ModuleSource.UNIFIED}

    @pytest.mark.asyncio
    async def test_second_run_is_noop(
        self, executor: MigrationExecutor, module_systems: InMemoryModuleSystems
    ) -> None:
        """Re-running migrates nothing new; everything is skipped."""
        await seed_two_modules(module_systems)

        first = await executor.execute_migration("t1")
        second = await executor.execute_migration("t1")

        assert first.statistics.migrated == 2
        assert second.statistics.migrated == 0
        assert second.skipped_modules == ["billing", "crm"]
        assert second.success is True

    @pytest.mark.asyncio
    async def test_stale_plan_is_skipped(
        self,
        executor: MigrationExecutor,
        planner: MigrationPlanner,
        module_systems: InMemoryModuleSystems,
    ) -> None:
        """Replaying the same plan after it was applied writes nothing."""
        await seed_two_modules(module_systems)
        plan = await planner.create_migration_plan("t1")

        await executor.execute_migration("t1", plan)
        again = await executor.execute_migration("t1", plan)

        assert again.statistics.migrated == 0
        assert again.statistics.skipped == 2

    @pytest.mark.asyncio
    async def test_item_without_registry_entry_is_skipped(
        self, executor: MigrationExecutor, module_systems: InMemoryModuleSystems
    ) -> None:
        await module_systems.set_legacy_config("t1", ["billing"])

        result = await executor.execute_migration("t1")

        assert result.success is True
        assert result.statistics.migrated == 0
        assert result.statistics.skipped == 1
        assert result.warnings and "billing" in result.warnings[0]
        assert await module_systems.get_module_config("t1", "billing") is None

    @pytest.mark.asyncio
    async def test_replace_and_preserve_strategies(
        self, executor: MigrationExecutor, module_systems: InMemoryModuleSystems
    ) -> None:
        """Replace writes registry fields only; preserve writes nothing but still marks."""
        await seed_two_modules(module_systems)
        billing = await module_systems.get_module("t1", "billing")
        crm = await module_systems.get_module("t1", "crm")
        plan = MigrationPlan(
            tenant_id="t1",
            items=[
                ModuleMigrationItem(
                    "billing",
                    ModuleSource.LEGACY,
                    MigrationStrategy.REPLACE,
                    legacy_config={"currency": "USD", "legacy_only": True},
                    registry_entry=billing,
                ),
                ModuleMigrationItem(
                    "crm", ModuleSource.LEGACY, MigrationStrategy.PRESERVE, registry_entry=crm
                ),
            ],
            estimated_duration_ms=1000,
            requires_backup=True,
        )

        result = await executor.execute_migration("t1", plan)

        assert result.migrated_modules == ["billing", "crm"]
        assert await module_systems.get_module_config("t1", "billing") == {
            "currency": "EUR",
            "capabilities": ["invoicing"],
            "dependencies": ["crm"],
            "version": "2.1.0",
        }
        assert await module_systems.get_module_config("t1", "crm") is None
        crm_view = next(
            m for m in await module_systems.unify_module_systems("t1") if m.module_id == "crm"
        )
        assert crm_view.source == ModuleSource.UNIFIED

    @pytest.mark.asyncio
    async def test_plan_for_other_tenant_fails(
        self,
        executor: MigrationExecutor,
        planner: MigrationPlanner,
        module_systems: InMemoryModuleSystems,
    ) -> None:
        await module_systems.set_legacy_config("t2", ["x"])
        plan = await planner.create_migration_plan("t2")

        result = await executor.execute_migration("t1", plan)

        assert result.success is False
        assert "cannot be applied" in result.errors[0]

    @pytest.mark.asyncio
    async def test_empty_plan_has_no_backup(self, executor: MigrationExecutor) -> None:
        result = await executor.execute_migration("empty")

        assert result.success is True
        assert result.statistics.total == 0
        assert result.rollback_available is False
        assert result.backup_id is None

    @pytest.mark.asyncio
    async def test_spans(self, module_systems: InMemoryModuleSystems) -> None:
        await seed_two_modules(module_systems)
        tracer = MockTracer()
        executor = build_executor(module_systems, tracer=tracer)

        await executor.execute_migration("t1")

        assert tracer.span_names[0] == "tenantsync.migration.execute"
        assert "tenantsync.migration.backup" in tracer.span_names
        assert tracer.span_names.count("tenantsync.migration.migrate_item") == 2


class TestBackupBeforeMutate:
    """A failed backup aborts before any write."""

    @pytest.mark.asyncio
    async def test_backup_read_failure_aborts_with_zero_writes(
        self, module_systems: InMemoryModuleSystems
    ) -> None:
        await seed_two_modules(module_systems)
        failing_store = MagicMock()
        failing_store.get_row = AsyncMock(side_effect=RuntimeError("database unavailable"))
        config_store = MagicMock()
        config_store.set_module_config = AsyncMock()
        executor = build_executor(module_systems, store=failing_store, config_store=config_store)

        result = await executor.execute_migration("t1")

        assert result.success is False
        assert result.migrated_modules == []
        assert result.backup_id is None
        assert "database unavailable" in result.errors[0]
        assert config_store.set_module_config.call_count == 0
        failing_store.write_row.assert_not_called()
        modules = await module_systems.unify_module_systems("t1")
        assert all(m.source != ModuleSource.UNIFIED for m in modules)

    @pytest.mark.asyncio
    async def test_backup_is_taken_before_first_write(
        self, module_systems: InMemoryModuleSystems
    ) -> None:
        """The backup snapshot holds the pre-migration legacy row."""
        await seed_two_modules(module_systems)
        original = await module_systems.store.get_row("tenant_app_config", "t1")
        executor = build_executor(module_systems)

        result = await executor.execute_migration("t1")
        backup = executor.get_backup(result.backup_id)

        assert backup is not None
        assert backup.legacy_config == original
        assert set(backup.registry_entries) == {"billing", "crm"}


class TestRollback:
    """Tests for rollback_migration()."""

    @pytest.mark.asyncio
    async def test_rollback_restores_legacy_verbatim(
        self,
        executor: MigrationExecutor,
        module_systems: InMemoryModuleSystems,
        data_store: InMemoryDataStore,
    ) -> None:
        await data_store.write_row("tenant_app_config", "t1", {"modules_enabled": ["a", "b"]})
        await module_systems.register_module(registry_entry("a", status=ModuleStatus.ACTIVE))
        await module_systems.register_module(registry_entry("b"))
        original = await data_store.get_row("tenant_app_config", "t1")

        result = await executor.execute_migration("t1")
        assert result.statistics.migrated == 2
        assert await data_store.get_row("tenant_app_config", "t1") != original

        assert await executor.rollback_migration(result.backup_id) is True

        assert await data_store.get_row("tenant_app_config", "t1") == original

    @pytest.mark.asyncio
    async def test_rollback_demotes_only_active_entries(
        self,
        executor: MigrationExecutor,
        module_systems: InMemoryModuleSystems,
        data_store: InMemoryDataStore,
    ) -> None:
        await seed_two_modules(module_systems)
        result = await executor.execute_migration("t1")

        await executor.rollback_migration(result.backup_id)

        crm_row = await data_store.get_row("module_registry", "t1:crm")
        billing_row = await data_store.get_row("module_registry", "t1:billing")
        assert crm_row["status"] == "inactive"
        assert crm_row["status_reason"] == ROLLBACK_REASON
        assert billing_row["status"] == "inactive"
        assert "status_reason" not in billing_row

    @pytest.mark.asyncio
    async def test_rollback_consumes_backup_and_clears_cache(
        self, module_systems: InMemoryModuleSystems
    ) -> None:
        await seed_two_modules(module_systems)
        unifier = MagicMock(wraps=module_systems)
        unifier.unify_module_systems = AsyncMock(side_effect=module_systems.unify_module_systems)
        unifier.migrate_to_unified = AsyncMock(side_effect=module_systems.migrate_to_unified)
        unifier.clear_cache = AsyncMock(side_effect=module_systems.clear_cache)
        executor = build_executor(module_systems, unifier=unifier)
        result = await executor.execute_migration("t1")
        unifier.clear_cache.reset_mock()

        assert await executor.rollback_migration(result.backup_id) is True

        unifier.clear_cache.assert_awaited_with("t1")
        assert executor.get_backup(result.backup_id) is None
        assert await executor.rollback_migration(result.backup_id) is False

    @pytest.mark.asyncio
    async def test_unknown_backup_returns_false(self, executor: MigrationExecutor) -> None:
        assert await executor.rollback_migration("backup-missing-0") is False

    @pytest.mark.asyncio
    async def test_rollback_refused_while_migration_runs(
        self,
        executor: MigrationExecutor,
        module_systems: InMemoryModuleSystems,
        lock_manager: InMemoryLockManager,
    ) -> None:
        await seed_two_modules(module_systems)
        result = await executor.execute_migration("t1")
        await lock_manager.try_acquire(migration_lock_key("t1"))

        assert await executor.rollback_migration(result.backup_id) is False
        assert executor.get_backup(result.backup_id) is not None

        await lock_manager.release(migration_lock_key("t1"))

    @pytest.mark.asyncio
    async def test_restore_failure_returns_false(
        self, module_systems: InMemoryModuleSystems
    ) -> None:
        await seed_two_modules(module_systems)
        store = MagicMock()
        store.get_row = AsyncMock(side_effect=module_systems.store.get_row)
        store.write_row = AsyncMock(side_effect=RuntimeError("read-only"))
        executor = build_executor(module_systems, store=store)
        result = await executor.execute_migration("t1")

        assert await executor.rollback_migration(result.backup_id) is False
        assert executor.get_backup(result.backup_id) is not None


class TestConcurrency:
    """Per-tenant mutual exclusion."""

    @pytest.mark.asyncio
    async def test_busy_tenant_returns_failed_result(
        self,
        executor: MigrationExecutor,
        module_systems: InMemoryModuleSystems,
        lock_manager: InMemoryLockManager,
    ) -> None:
        await seed_two_modules(module_systems)
        await lock_manager.try_acquire(migration_lock_key("t1"))

        result = await executor.execute_migration("t1")

        assert result.success is False
        assert "already in progress" in result.errors[0].lower()
        assert result.migrated_modules == []
        assert executor.get_migration_result(result.migration_id) is result
        await lock_manager.release(migration_lock_key("t1"))

    @pytest.mark.asyncio
    async def test_concurrent_same_tenant_runs_once(
        self, module_systems: InMemoryModuleSystems
    ) -> None:
        await seed_two_modules(module_systems)
        gate = asyncio.Event()

        async def slow_write(tenant_id, module_id, config):
            await gate.wait()

        config_store = MagicMock()
        config_store.set_module_config = AsyncMock(side_effect=slow_write)
        executor = build_executor(module_systems, config_store=config_store)

        first = asyncio.create_task(executor.execute_migration("t1"))
        await asyncio.sleep(0.01)
        second = await executor.execute_migration("t1")
        gate.set()
        first_result = await first

        assert second.success is False
        assert first_result.success is True

    @pytest.mark.asyncio
    async def test_different_tenants_are_independent(
        self, executor: MigrationExecutor, module_systems: InMemoryModuleSystems
    ) -> None:
        for tenant in ("t1", "t2"):
            await module_systems.set_legacy_config(tenant, ["crm"])
            await module_systems.register_module(registry_entry("crm", tenant))

        results = await asyncio.gather(
            executor.execute_migration("t1"), executor.execute_migration("t2")
        )

        assert [r.statistics.migrated for r in results] == [1, 1]


class TestPartialFailure:
    """Per-item failures are isolated and classified."""

    @pytest.mark.asyncio
    async def test_failed_item_does_not_stop_others(
        self, module_systems: InMemoryModuleSystems
    ) -> None:
        await module_systems.set_legacy_config("t1", ["a", "b", "c"])
        for module_id in ("a", "b", "c"):
            await module_systems.register_module(registry_entry(module_id))

        async def write(tenant_id, module_id, config):
            if module_id == "b":
                raise ValueError("Schema validation failed for b")

        config_store = MagicMock()
        config_store.set_module_config = AsyncMock(side_effect=write)
        executor = build_executor(module_systems, config_store=config_store)

        result = await executor.execute_migration("t1")

        assert result.success is False
        assert result.migrated_modules == ["a", "c"]
        assert [f.module_id for f in result.failed_modules] == ["b"]
        assert result.failed_modules[0].can_retry is False
        assert result.retryable_modules == []
        assert result.rollback_available is True
        with pytest.raises(PartialFailureError) as exc_info:
            result.raise_for_failures()
        assert exc_info.value.failures == {"b": "Schema validation failed for b"}

    @pytest.mark.asyncio
    async def test_transient_error_is_retryable(
        self, module_systems: InMemoryModuleSystems
    ) -> None:
        await module_systems.set_legacy_config("t1", ["a"])
        await module_systems.register_module(registry_entry("a"))
        config_store = MagicMock()
        config_store.set_module_config = AsyncMock(side_effect=TimeoutError("timed out"))
        executor = build_executor(module_systems, config_store=config_store)

        result = await executor.execute_migration("t1")

        assert result.retryable_modules == ["a"]

    @pytest.mark.asyncio
    async def test_stop_on_first_error(self, module_systems: InMemoryModuleSystems) -> None:
        await module_systems.set_legacy_config("t1", ["a", "b", "c"])
        for module_id in ("a", "b", "c"):
            await module_systems.register_module(registry_entry(module_id))
        config_store = MagicMock()
        config_store.set_module_config = AsyncMock(side_effect=RuntimeError("down"))
        executor = build_executor(
            module_systems,
            config_store=config_store,
            config=MigrationConfig(continue_on_error=False),
        )

        result = await executor.execute_migration("t1")

        assert [f.module_id for f in result.failed_modules] == ["a"]
        assert result.skipped_modules == ["b", "c"]
        assert config_store.set_module_config.await_count == 1


class TestProgress:
    """Tests for get_migration_progress()."""

    @pytest.mark.asyncio
    async def test_progress_is_pollable_during_migration(
        self, module_systems: InMemoryModuleSystems
    ) -> None:
        await seed_two_modules(module_systems)
        seen: list[float | None] = []
        config_store = MagicMock()
        executor = build_executor(module_systems, config_store=config_store)
        config_store.set_module_config = AsyncMock(
            side_effect=lambda *args: seen.append(executor.get_migration_progress("t1"))
        )

        await executor.execute_migration("t1")

        assert seen == [0.0, 50.0]
        assert executor.get_migration_progress("t1") is None


class TestValidateMigration:
    """Tests for validate_migration()."""

    @pytest.mark.asyncio
    async def test_valid_after_migration(
        self, executor: MigrationExecutor, module_systems: InMemoryModuleSystems
    ) -> None:
        await seed_two_modules(module_systems)
        await executor.execute_migration("t1")

        report = await executor.validate_migration("t1")

        assert report.valid is True
        assert report.errors == []
        assert report.checked_modules == 2

    @pytest.mark.asyncio
    async def test_incomplete_migration_is_a_warning(
        self, executor: MigrationExecutor, module_systems: InMemoryModuleSystems
    ) -> None:
        await seed_two_modules(module_systems)

        report = await executor.validate_migration("t1")

        assert report.valid is True
        assert len(report.warnings) == 2
        assert "incomplete migration" in report.warnings[0]

    @pytest.mark.asyncio
    async def test_unified_without_registry_entry_is_an_error(
        self, executor: MigrationExecutor, module_systems: InMemoryModuleSystems
    ) -> None:
        await module_systems.set_legacy_config("t1", ["orphan"])
        await module_systems.migrate_to_unified("t1", "orphan")

        report = await executor.validate_migration("t1")

        assert report.valid is False
        assert report.errors == ["orphan: missing required configuration"]


class TestIntrospection:
    """History and backup queries."""

    @pytest.mark.asyncio
    async def test_history_newest_first(
        self, executor: MigrationExecutor, module_systems: InMemoryModuleSystems
    ) -> None:
        await seed_two_modules(module_systems)

        first = await executor.execute_migration("t1")
        await asyncio.sleep(0.001)
        second = await executor.execute_migration("t1")

        history = executor.get_migration_history("t1")
        assert [r.migration_id for r in history] == [second.migration_id, first.migration_id]
        assert executor.get_migration_history("t2") == []
        assert executor.get_migration_result(first.migration_id) is first

    @pytest.mark.asyncio
    async def test_backup_ids_are_unique(
        self, executor: MigrationExecutor, module_systems: InMemoryModuleSystems
    ) -> None:
        await seed_two_modules(module_systems)

        first = await executor.execute_migration("t1")
        second = await executor.execute_migration("t1")

        assert first.backup_id != second.backup_id
        assert first.backup_id.startswith("backup-t1-")
        assert {b.backup_id for b in executor.list_backups("t1")} == {
            first.backup_id,
            second.backup_id,
        }

    def test_require_backup_raises_for_unknown_id(self, executor: MigrationExecutor) -> None:
        with pytest.raises(BackupNotFoundError) as exc_info:
            executor.require_backup("backup-x-1")
        assert exc_info.value.backup_id == "backup-x-1"

    @pytest.mark.asyncio
    async def test_result_to_dict(
        self, executor: MigrationExecutor, module_systems: InMemoryModuleSystems
    ) -> None:
        await seed_two_modules(module_systems)

        data = (await executor.execute_migration("t1")).to_dict()

        assert data["tenant_id"] == "t1"
        assert data["statistics"] == {"total": 2, "migrated": 2, "failed": 0, "skipped": 0}
        assert data["rollback_available"] is True
