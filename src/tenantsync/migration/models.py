"""
Data models for legacy-to-registry module configuration migration.

Models in this module:

Enums:
    - ModuleSource: Where a module's configuration currently lives
    - MigrationStrategy: How a plan item is written to the unified store
    - ModuleStatus: Registry entry status

Collaborator Views:
    - RegistryEntry: A per-module record in the registry
    - UnifiedModule: Merged legacy/registry view of one module

Plan:
    - ModuleMigrationItem: One module to migrate
    - MigrationConflict: Legacy and registry disagree for a module
    - MigrationWarning: Non-blocking remark attached to a plan
    - MigrationPlan: Ordered items plus estimate, backup flag, conflicts, warnings

Execution:
    - MigrationFailure: One item that failed
    - MigrationStatistics: Counts of the outcome
    - MigrationResult: Final result of an execution
    - MigrationBackup: Pre-mutation snapshot used for rollback
    - MigrationValidationReport: Post-migration validation outcome
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from tenantsync.exceptions import PartialFailureError
from tenantsync.types import Record


class ModuleSource(Enum):
    """
    Provenance of a module's configuration in the unified view.

    Attributes:
        LEGACY: Only (or still primarily) in the legacy aggregate row.
        REGISTRY: Only in the per-module registry.
        UNIFIED: Already migrated; legacy and registry are reconciled.
    """

    LEGACY = "legacy"
    REGISTRY = "registry"
    UNIFIED = "unified"

    @property
    def needs_migration(self) -> bool:
        """
        Check if modules from this source get a plan item.

        Pure-registry modules have nothing to migrate.
        """
        match self:
            case ModuleSource.LEGACY | ModuleSource.UNIFIED:
                return True
            case ModuleSource.REGISTRY:
                return False


class MigrationStrategy(Enum):
    """
    How a plan item is applied.

    Attributes:
        MERGE: Legacy fields plus registry-derived fields, registry wins.
        REPLACE: Registry-derived fields only.
        PRESERVE: No configuration write.
    """

    MERGE = "merge"
    REPLACE = "replace"
    PRESERVE = "preserve"


class ModuleStatus(Enum):
    """Status of a registry entry."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


@dataclass(frozen=True)
class RegistryEntry:
    """
    A per-module record in the module registry.

    Attributes:
        module_id: Module identifier.
        tenant_id: Owning tenant.
        status: Activation status.
        capabilities: Capability ids provided by the module.
        dependencies: Module ids this module depends on.
        config: Registry-side configuration values.
        version: Module version string.
    """

    module_id: str
    tenant_id: str
    status: ModuleStatus = ModuleStatus.INACTIVE
    capabilities: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    config: Record = field(default_factory=dict)
    version: str = "1.0.0"

    @property
    def is_active(self) -> bool:
        """True if the entry is active."""
        return self.status == ModuleStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON storage."""
        return {
            "module_id": self.module_id,
            "tenant_id": self.tenant_id,
            "status": self.status.value,
            "capabilities": list(self.capabilities),
            "dependencies": list(self.dependencies),
            "config": dict(self.config),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RegistryEntry:
        """Create from a registry row."""
        return cls(
            module_id=data["module_id"],
            tenant_id=data["tenant_id"],
            status=ModuleStatus(data.get("status", ModuleStatus.INACTIVE.value)),
            capabilities=list(data.get("capabilities") or []),
            dependencies=list(data.get("dependencies") or []),
            config=dict(data.get("config") or {}),
            version=data.get("version", "1.0.0"),
        )


@dataclass(frozen=True)
class UnifiedModule:
    """
    One module in the unified view, tagged with provenance.

    Attributes:
        module_id: Module identifier.
        source: Where the configuration currently lives.
        legacy_config: Settings from the legacy aggregate (None if absent).
        registry_entry: Registry record (None if absent).
    """

    module_id: str
    source: ModuleSource
    legacy_config: Record | None = None
    registry_entry: RegistryEntry | None = None


@dataclass(frozen=True)
class ModuleMigrationItem:
    """
    One module scheduled for migration.

    Attributes:
        module_id: Module identifier.
        current_source: Provenance when the plan was built.
        target_source: Always UNIFIED.
        legacy_config: Legacy settings captured by the planner.
        registry_entry: Registry record captured by the planner.
        migration_strategy: How the item is applied.
    """

    module_id: str
    current_source: ModuleSource
    migration_strategy: MigrationStrategy
    legacy_config: Record | None = None
    registry_entry: RegistryEntry | None = None
    target_source: ModuleSource = ModuleSource.UNIFIED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "module_id": self.module_id,
            "current_source": self.current_source.value,
            "target_source": self.target_source.value,
            "migration_strategy": self.migration_strategy.value,
            "legacy_config": self.legacy_config,
            "registry_entry": self.registry_entry.to_dict() if self.registry_entry else None,
        }


@dataclass(frozen=True)
class MigrationConflict:
    """
    Legacy and registry configuration disagree for a module.

    Attributes:
        module_id: Module with the conflict.
        conflict_type: Kind of conflict ("configuration").
        description: What differs.
        resolution: "automatic" or "manual".
        strategy: Resolution applied when automatic.
    """

    module_id: str
    conflict_type: str
    description: str
    resolution: str = "automatic"
    strategy: str = "merge_with_registry_priority"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "module_id": self.module_id,
            "type": self.conflict_type,
            "description": self.description,
            "resolution": self.resolution,
            "strategy": self.strategy,
        }


@dataclass(frozen=True)
class MigrationWarning:
    """
    Non-blocking remark attached to a plan or result.

    Attributes:
        module_id: Module concerned (None for plan-wide warnings).
        message: What the operator should know.
    """

    module_id: str | None
    message: str

    def __str__(self) -> str:
        if self.module_id:
            return f"{self.module_id}: {self.message}"
        return self.message


@dataclass(frozen=True)
class MigrationPlan:
    """
    Inspectable, read-only migration plan for one tenant.

    Built fresh for every attempt and never persisted.

    Attributes:
        tenant_id: Tenant the plan applies to.
        items: Modules to migrate, in order.
        estimated_duration_ms: Item count times a fixed per-item cost.
        requires_backup: True when there is at least one item.
        conflicts: Legacy/registry disagreements found.
        warnings: Non-blocking remarks.
        created_at: When the plan was built.
    """

    tenant_id: str
    items: list[ModuleMigrationItem]
    estimated_duration_ms: int
    requires_backup: bool
    conflicts: list[MigrationConflict] = field(default_factory=list)
    warnings: list[MigrationWarning] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def item_count(self) -> int:
        """Number of plan items."""
        return len(self.items)

    @property
    def has_conflicts(self) -> bool:
        """True if any conflict was detected."""
        return bool(self.conflicts)

    @property
    def module_ids(self) -> list[str]:
        """Module ids in plan order."""
        return [item.module_id for item in self.items]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "tenant_id": self.tenant_id,
            "items": [item.to_dict() for item in self.items],
            "estimated_duration_ms": self.estimated_duration_ms,
            "requires_backup": self.requires_backup,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "warnings": [str(w) for w in self.warnings],
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class MigrationFailure:
    """
    One plan item that failed.

    Attributes:
        module_id: Module that failed.
        error: Error message.
        can_retry: False when the error needs manual resolution.
    """

    module_id: str
    error: str
    can_retry: bool

    @classmethod
    def from_exception(cls, module_id: str, exc: BaseException) -> MigrationFailure:
        """
        Classify an exception raised while migrating a module.

        Validation and conflict errors need an operator; anything else is
        assumed transient.
        """
        message = str(exc) or type(exc).__name__
        lowered = message.lower()
        can_retry = "validation" not in lowered and "conflict" not in lowered
        return cls(module_id=module_id, error=message, can_retry=can_retry)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"module_id": self.module_id, "error": self.error, "can_retry": self.can_retry}


@dataclass(frozen=True)
class MigrationStatistics:
    """Counts describing a migration outcome."""

    total: int = 0
    migrated: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total": self.total,
            "migrated": self.migrated,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass(frozen=True)
class MigrationResult:
    """
    Final result of a migration attempt.

    Kept in the executor's history keyed by migration_id.

    Attributes:
        success: True when no item failed and no abort happened.
        migration_id: Identifier of this attempt.
        tenant_id: Tenant migrated.
        timestamp: When the attempt started.
        statistics: Outcome counts.
        migrated_modules: Modules written and marked unified.
        failed_modules: Items that raised.
        skipped_modules: Items already unified or without a registry entry.
        duration_ms: Wall-clock duration.
        rollback_available: True when a backup was stored. An empty plan
            takes no backup, so it reports False with no backup_id rather
            than a rollback point that does not exist.
        backup_id: Backup to pass to rollback_migration().
        errors: Attempt-level errors (abort reasons).
        warnings: Warnings carried over from the plan.
    """

    success: bool
    migration_id: str
    tenant_id: str
    timestamp: datetime
    statistics: MigrationStatistics
    migrated_modules: list[str] = field(default_factory=list)
    failed_modules: list[MigrationFailure] = field(default_factory=list)
    skipped_modules: list[str] = field(default_factory=list)
    duration_ms: float = 0.0
    rollback_available: bool = False
    backup_id: str | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def retryable_modules(self) -> list[str]:
        """Failed modules that can be retried without manual action."""
        return [f.module_id for f in self.failed_modules if f.can_retry]

    def raise_for_failures(self) -> None:
        """
        Raise PartialFailureError if any item failed.

        Raises:
            PartialFailureError: With each failed module's error message.
        """
        if self.failed_modules:
            raise PartialFailureError(
                f"Migration {self.migration_id} for tenant {self.tenant_id} had failures",
                {f.module_id: f.error for f in self.failed_modules},
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "migration_id": self.migration_id,
            "tenant_id": self.tenant_id,
            "timestamp": self.timestamp.isoformat(),
            "statistics": self.statistics.to_dict(),
            "migrated_modules": list(self.migrated_modules),
            "failed_modules": [f.to_dict() for f in self.failed_modules],
            "skipped_modules": list(self.skipped_modules),
            "duration_ms": self.duration_ms,
            "rollback_available": self.rollback_available,
            "backup_id": self.backup_id,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class MigrationBackup:
    """
    Snapshot taken before any migration write.

    Attributes:
        backup_id: "backup-{tenant_id}-{epoch_ms}".
        tenant_id: Tenant backed up.
        timestamp: When the snapshot was taken.
        legacy_config: The legacy aggregate row verbatim (None if absent).
        registry_entries: Registry entries referenced by the plan, by module id.
    """

    backup_id: str
    tenant_id: str
    timestamp: datetime
    legacy_config: Record | None
    registry_entries: dict[str, RegistryEntry] = field(default_factory=dict)


@dataclass(frozen=True)
class MigrationValidationReport:
    """
    Outcome of validating a tenant after migration.

    Attributes:
        valid: True when there are no errors.
        errors: Unified modules missing a required configuration.
        warnings: Modules still legacy-sourced although a registry entry exists.
        checked_modules: Number of modules inspected.
    """

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    checked_modules: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "checked_modules": self.checked_modules,
        }


__all__ = [
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
]
