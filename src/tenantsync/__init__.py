"""
tenantsync - Cross-subsystem data consistency and module migration for multi-tenant platforms.

This library provides:
- Consistency rule engine with violation ledger, repair and periodic checks
- Migration planner and executor for legacy module configuration, with backup and rollback
- Change propagator forwarding relevant row changes between subsystems
- In-memory and PostgreSQL data store backends
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tenantsync")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

# Configuration
from tenantsync.config import ConsistencyConfig, MigrationConfig

# Consistency
from tenantsync.consistency import (
    ConsistencyReport,
    ConsistencyRule,
    ConsistencyRuleEngine,
    ConsistencySeverity,
    ConsistencyViolation,
    DatasetSnapshot,
    TransactionValidation,
    count_parity_rule,
    default_rules,
    id_coverage_rule,
)

# Exceptions
from tenantsync.exceptions import (
    BackupError,
    BackupNotFoundError,
    MigrationInProgressError,
    NotFoundError,
    PartialFailureError,
    RepairError,
    StoreError,
    TenantSyncError,
    ValidationError,
)

# Locks
from tenantsync.locks import InMemoryLockManager, migration_lock_key

# Migration
from tenantsync.migration import (
    InMemoryModuleSystems,
    MigrationBackup,
    MigrationExecutor,
    MigrationPlan,
    MigrationPlanner,
    MigrationResult,
    MigrationStrategy,
    MigrationValidationReport,
    ModuleSource,
    ModuleStatus,
    RegistryEntry,
    UnifiedModule,
)

# Propagation
from tenantsync.propagation import (
    ChangeEvent,
    ChangeEventType,
    ChangePropagator,
    InMemoryChangeFeed,
    InMemorySyncSink,
)

# Stores
from tenantsync.stores import DataStore, InMemoryDataStore, PostgreSQLDataStore, resolve_table
from tenantsync.types import Subsystem

__all__ = [
    "__version__",
    # Types
    "Subsystem",
    # Configuration
    "ConsistencyConfig",
    "MigrationConfig",
    # Exceptions
    "BackupError",
    "BackupNotFoundError",
    "MigrationInProgressError",
    "NotFoundError",
    "PartialFailureError",
    "RepairError",
    "StoreError",
    "TenantSyncError",
    "ValidationError",
    # Stores
    "DataStore",
    "InMemoryDataStore",
    "PostgreSQLDataStore",
    "resolve_table",
    # Locks
    "InMemoryLockManager",
    "migration_lock_key",
    # Consistency
    "ConsistencyReport",
    "ConsistencyRule",
    "ConsistencyRuleEngine",
    "ConsistencySeverity",
    "ConsistencyViolation",
    "DatasetSnapshot",
    "TransactionValidation",
    "count_parity_rule",
    "default_rules",
    "id_coverage_rule",
    # Migration
    "InMemoryModuleSystems",
    "MigrationBackup",
    "MigrationExecutor",
    "MigrationPlan",
    "MigrationPlanner",
    "MigrationResult",
    "MigrationStrategy",
    "MigrationValidationReport",
    "ModuleSource",
    "ModuleStatus",
    "RegistryEntry",
    "UnifiedModule",
    # Propagation
    "ChangeEvent",
    "ChangeEventType",
    "ChangePropagator",
    "InMemoryChangeFeed",
    "InMemorySyncSink",
]
