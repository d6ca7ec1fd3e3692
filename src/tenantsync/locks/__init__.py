"""
Lock utilities for tenantsync.

Locks are used for:
- Preventing concurrent migrations for the same tenant
- Serializing rollback against a running migration of the same tenant

Example:
    >>> from tenantsync.locks import InMemoryLockManager, migration_lock_key
    >>>
    >>> locks = InMemoryLockManager()
    >>> try:
    ...     async with locks.acquire(migration_lock_key("t1"), timeout=5.0):
    ...         await run_migration()
    ... except LockAcquisitionError:
    ...     print("Another migration is running for this tenant")
"""

from tenantsync.locks.memory import (
    InMemoryLockManager,
    LockAcquisitionError,
    LockInfo,
    LockNotHeldError,
    migration_lock_key,
)

__all__ = [
    "InMemoryLockManager",
    "LockAcquisitionError",
    "LockInfo",
    "LockNotHeldError",
    "migration_lock_key",
]
