"""
Basic Usage Example

This example walks one tenant through the three tenantsync components:
- Checking cross-subsystem consistency with a rule engine
- Planning and executing a legacy module configuration migration
- Forwarding row changes between subsystems
- Rolling the migration back from its backup

Run with: python examples/basic_usage.py
"""

import asyncio
import logging

from tenantsync import (
    ChangePropagator,
    ConsistencyRuleEngine,
    InMemoryChangeFeed,
    InMemoryDataStore,
    InMemoryModuleSystems,
    InMemorySyncSink,
    MigrationExecutor,
    MigrationPlanner,
    ModuleStatus,
    RegistryEntry,
    default_rules,
)

# =============================================================================
# Step 1: Seed the subsystems
# =============================================================================
# The legacy aggregate enables modules for a tenant in one row; the module
# registry holds one entry per module.


async def seed(systems: InMemoryModuleSystems) -> None:
    await systems.set_legacy_config(
        "acme",
        ["billing", "crm", "reports"],
        {"billing": {"currency": "USD", "invoice_day": 1}},
    )
    await systems.register_module(
        RegistryEntry(
            "billing",
            "acme",
            config={"currency": "EUR"},
            capabilities=["invoicing"],
            dependencies=["crm"],
            version="2.0.0",
        )
    )
    await systems.register_module(RegistryEntry("crm", "acme", status=ModuleStatus.ACTIVE))


# =============================================================================
# Step 2: Wire the components
# =============================================================================


async def main():
    """Run consistency checks, a migration, propagation and a rollback."""
    print("=" * 60)
    print("tenantsync Basic Usage Example")
    print("=" * 60)

    store = InMemoryDataStore()
    systems = InMemoryModuleSystems(store)
    await seed(systems)

    engine = ConsistencyRuleEngine(store)
    engine.register_rules(default_rules())

    planner = MigrationPlanner(systems)
    executor = MigrationExecutor(planner, systems, systems, systems, store)

    feed = InMemoryChangeFeed()
    sink = InMemorySyncSink()
    propagator = ChangePropagator(feed, sink, store=store)
    await propagator.initialize()

    print("\n1. Consistency check")
    for violation in await engine.check_consistency():
        print(f"   [{violation.severity.value}] {violation.description}")
    report = engine.get_report()
    print(f"   Healthy: {report.is_healthy}")

    print("\n2. Migration plan")
    plan = await planner.create_migration_plan("acme")
    for item in plan.items:
        print(f"   {item.module_id}: {item.migration_strategy.value}")
    for conflict in plan.conflicts:
        print(f"   Conflict: {conflict.description}")
    for warning in plan.warnings:
        print(f"   Warning: {warning}")

    print("\n3. Executing migration")
    result = await executor.execute_migration("acme")
    print(f"   Success: {result.success}")
    print(f"   Migrated: {', '.join(result.migrated_modules) or '-'}")
    print(f"   Skipped: {', '.join(result.skipped_modules) or '-'}")
    print(f"   Billing config: {await systems.get_module_config('acme', 'billing')}")

    print("\n4. Propagating the new configuration")
    await propagator.sync_specific_table("module_configurations", "acme:billing")
    for channel, payload in sink.calls:
        print(f"   -> {channel}: {payload['action']} ({payload.get('module_id')})")

    print("\n5. Rolling back")
    if result.backup_id is not None:
        restored = await executor.rollback_migration(result.backup_id)
        print(f"   Restored: {restored}")
    for module in await systems.unify_module_systems("acme"):
        print(f"   {module.module_id}: {module.source.value}")

    await propagator.shutdown()
    print(f"\n   Propagation stats: {propagator.get_stats()}")

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    asyncio.run(main())
