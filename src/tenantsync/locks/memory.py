"""
In-process keyed locks for per-tenant mutual exclusion.

One asyncio.Lock per key. Locks are only meaningful inside a single event
loop; they do not coordinate separate processes.

Usage:
    >>> locks = InMemoryLockManager()
    >>> async with locks.acquire(migration_lock_key("tenant-abc")):
    ...     await run_migration()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from tenantsync.exceptions import TenantSyncError
from tenantsync.observability import ATTR_LOCK_KEY, ATTR_LOCK_TIMEOUT, Tracer, create_tracer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockInfo:
    """
    Information about an acquired lock.

    Attributes:
        key: The string key used to identify the lock
        acquired_at: When the lock was acquired
        holder_id: Optional identifier for the lock holder (for debugging)
    """

    key: str
    acquired_at: datetime
    holder_id: str | None = None


class LockAcquisitionError(TenantSyncError):
    """
    Raised when a lock cannot be acquired.

    Attributes:
        key: The lock key that could not be acquired
        reason: Description of why acquisition failed
        timeout: The timeout value if timeout was the cause
    """

    def __init__(
        self,
        key: str,
        reason: str,
        timeout: float | None = None,
    ):
        self.key = key
        self.reason = reason
        self.timeout = timeout
        super().__init__(f"Failed to acquire lock '{key}': {reason}")


class LockNotHeldError(TenantSyncError):
    """Raised when releasing a lock that is not held."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Lock '{key}' is not held")


class InMemoryLockManager:
    """
    Keyed mutual exclusion for coroutines in one process.

    Used by MigrationExecutor so two migrations of the same tenant never run
    at once, while migrations of different tenants proceed independently.

    Example:
        >>> locks = InMemoryLockManager()
        >>> info = await locks.try_acquire("migration:t1")
        >>> if info:
        ...     try:
        ...         await run_migration()
        ...     finally:
        ...         await locks.release("migration:t1")
    """

    def __init__(
        self,
        *,
        holder_id: str | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._holder_id = holder_id
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}
        self._held: dict[str, LockInfo] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def _wait_for(self, key: str, lock: asyncio.Lock, timeout: float | None) -> None:
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]

    def _discard_if_idle(self, key: str) -> None:
        # Drop the per-key lock once nobody holds or waits for it
        lock = self._locks.get(key)
        if lock is not None and not lock.locked() and key not in self._waiters:
            del self._locks[key]

    def _record(self, key: str) -> LockInfo:
        info = LockInfo(key=key, acquired_at=datetime.now(UTC), holder_id=self._holder_id)
        self._held[key] = info
        return info

    @asynccontextmanager
    async def acquire(
        self,
        key: str,
        *,
        timeout: float | None = None,
    ) -> AsyncIterator[LockInfo]:
        """
        Acquire a lock as a context manager.

        Args:
            key: String key identifying the lock (e.g., "migration:tenant-abc")
            timeout: Maximum seconds to wait (None = wait forever)

        Yields:
            LockInfo with lock details

        Raises:
            LockAcquisitionError: If the lock is not acquired within timeout
        """
        lock = self._lock_for(key)

        with self._tracer.span(
            "tenantsync.lock.acquire",
            {
                ATTR_LOCK_KEY: key,
                ATTR_LOCK_TIMEOUT: timeout if timeout is not None else -1,
            },
        ):
            try:
                await self._wait_for(key, lock, timeout)
            except TimeoutError as e:
                self._discard_if_idle(key)
                raise LockAcquisitionError(key, f"timeout after {timeout}s", timeout) from e

        info = self._record(key)
        logger.debug("Acquired lock: key=%s", key)
        try:
            yield info
        finally:
            self._held.pop(key, None)
            lock.release()
            self._discard_if_idle(key)
            logger.debug("Released lock: key=%s", key)

    async def try_acquire(self, key: str, *, timeout: float | None = None) -> LockInfo | None:
        """
        Try to acquire a lock without blocking indefinitely.

        Args:
            key: String key identifying the lock
            timeout: Seconds to wait for a busy lock (None = do not wait)

        Returns:
            LockInfo if acquired, None if another holder kept it

        Note:
            Caller is responsible for calling release() when done.
        """
        lock = self._lock_for(key)
        if timeout is None:
            if lock.locked() or key in self._waiters:
                return None
            await lock.acquire()
        else:
            try:
                await self._wait_for(key, lock, timeout)
            except TimeoutError:
                self._discard_if_idle(key)
                return None
        logger.debug("Acquired lock (try): key=%s", key)
        return self._record(key)

    async def release(self, key: str) -> None:
        """
        Release a lock taken with try_acquire().

        Raises:
            LockNotHeldError: If the lock is not held
        """
        if key not in self._held:
            raise LockNotHeldError(key)
        del self._held[key]
        self._locks[key].release()
        self._discard_if_idle(key)
        logger.debug("Released lock: key=%s", key)

    async def is_held(self, key: str) -> bool:
        """Check if a lock is currently held."""
        return key in self._held

    async def release_all(self) -> int:
        """
        Release every held lock.

        Returns:
            Number of locks released
        """
        released = 0
        for key in list(self._held):
            try:
                await self.release(key)
                released += 1
            except LockNotHeldError:
                pass
        return released

    @property
    def held_lock_count(self) -> int:
        """Number of locks currently held."""
        return len(self._held)


def migration_lock_key(tenant_id: str, operation: str = "migration") -> str:
    """
    Create a lock key for tenant operations.

    Returns:
        Lock key string in format "{operation}:{tenant_id}"

    Example:
        >>> migration_lock_key("t1")
        'migration:t1'
    """
    return f"{operation}:{tenant_id}"


__all__ = [
    "InMemoryLockManager",
    "LockAcquisitionError",
    "LockInfo",
    "LockNotHeldError",
    "migration_lock_key",
]
