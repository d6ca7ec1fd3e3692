"""
Legacy-to-registry module configuration migration.

Plans are built read-only by MigrationPlanner and applied by
MigrationExecutor, which backs up the tenant first and can roll back.

Example:
    >>> from tenantsync.migration import (
    ...     InMemoryModuleSystems,
    ...     MigrationExecutor,
    ...     MigrationPlanner,
    ... )
    >>>
    >>> systems = InMemoryModuleSystems()
    >>> planner = MigrationPlanner(systems)
    >>> executor = MigrationExecutor(planner, systems, systems, systems, systems.store)
    >>> result = await executor.execute_migration("t1")
"""

from tenantsync.migration.executor import (
    ROLLBACK_REASON,
    MigrationExecutor,
    merged_config,
    replacement_config,
)
from tenantsync.migration.in_memory import InMemoryModuleSystems, module_row_id
from tenantsync.migration.interface import ModuleConfigStore, ModuleRegistry, ModuleUnifier
from tenantsync.migration.models import (
    MigrationBackup,
    MigrationConflict,
    MigrationFailure,
    MigrationPlan,
    MigrationResult,
    MigrationStatistics,
    MigrationStrategy,
    MigrationValidationReport,
    MigrationWarning,
    ModuleMigrationItem,
    ModuleSource,
    ModuleStatus,
    RegistryEntry,
    UnifiedModule,
)
from tenantsync.migration.planner import MigrationPlanner, conflicting_keys

__all__ = [
    # Components
    "MigrationExecutor",
    "MigrationPlanner",
    "InMemoryModuleSystems",
    # Collaborator protocols
    "ModuleConfigStore",
    "ModuleRegistry",
    "ModuleUnifier",
    # Models
    "MigrationBackup",
    "MigrationConflict",
    "MigrationFailure",
    "MigrationPlan",
    "MigrationResult",
    "MigrationStatistics",
    "MigrationStrategy",
    "MigrationValidationReport",
    "MigrationWarning",
    "ModuleMigrationItem",
    "ModuleSource",
    "ModuleStatus",
    "RegistryEntry",
    "UnifiedModule",
    # Helpers
    "ROLLBACK_REASON",
    "conflicting_keys",
    "merged_config",
    "module_row_id",
    "replacement_config",
]
