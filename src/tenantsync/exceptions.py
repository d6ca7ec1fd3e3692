"""
Library exceptions for the tenantsync package.

Exception Hierarchy:
    TenantSyncError (base)
    +-- ValidationError
    +-- NotFoundError
    |   +-- BackupNotFoundError
    +-- PartialFailureError
    +-- RepairError
    +-- BackupError
    +-- MigrationInProgressError
    +-- StoreError
    +-- LockAcquisitionError, LockNotHeldError (tenantsync.locks)

Operations that return structured results (MigrationResult, rollback
booleans) catch these and report them; internal helpers raise them.
"""

from typing import Any


class TenantSyncError(Exception):
    """Base exception for tenantsync library."""

    pass


class ValidationError(TenantSyncError):
    """Raised for malformed input before any mutation happens."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class NotFoundError(TenantSyncError):
    """Raised when a tenant, module, record or backup cannot be found."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class BackupNotFoundError(NotFoundError):
    """Raised when a migration backup id is unknown."""

    def __init__(self, backup_id: str) -> None:
        self.backup_id = backup_id
        super().__init__("Backup", backup_id)


class PartialFailureError(TenantSyncError):
    """
    Raised when some items of a batch failed while others succeeded.

    Attributes:
        failures: Mapping of item identifier to error message.
    """

    def __init__(self, message: str, failures: dict[str, str]) -> None:
        self.failures = failures
        super().__init__(f"{message} ({len(failures)} failed)")


class RepairError(TenantSyncError):
    """Raised when a consistency rule's repair function fails."""

    def __init__(self, rule_id: str, message: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"Repair for rule {rule_id} failed: {message}")


class BackupError(TenantSyncError):
    """Raised when the pre-migration backup cannot be taken."""

    def __init__(self, tenant_id: str, message: str) -> None:
        self.tenant_id = tenant_id
        super().__init__(f"Backup for tenant {tenant_id} failed: {message}")


class MigrationInProgressError(TenantSyncError):
    """Raised when a tenant already has a migration running."""

    def __init__(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id
        super().__init__(f"Migration already in progress for tenant {tenant_id}")


class StoreError(TenantSyncError):
    """Raised when a data store operation fails."""

    def __init__(self, table: str, operation: str, details: Any = None) -> None:
        self.table = table
        self.operation = operation
        self.details = details
        message = f"Store {operation} failed on table {table}"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)


__all__ = [
    "TenantSyncError",
    "ValidationError",
    "NotFoundError",
    "BackupNotFoundError",
    "PartialFailureError",
    "RepairError",
    "BackupError",
    "MigrationInProgressError",
    "StoreError",
]
