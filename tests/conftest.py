"""
Shared pytest fixtures for the tenantsync tests.

This module provides:
- Store fixtures (data_store)
- Module system fixtures (module_systems, planner, executor)
- Consistency fixtures (engine)
- Propagation fixtures (feed, sink, propagator)
- Tracing fixtures (mock_tracer)

Everything runs on in-memory backends with tracing disabled unless a test
injects a MockTracer.
"""

from __future__ import annotations

import pytest

from tenantsync.config import ConsistencyConfig, MigrationConfig
from tenantsync.consistency import ConsistencyRuleEngine
from tenantsync.locks import InMemoryLockManager
from tenantsync.migration import InMemoryModuleSystems, MigrationExecutor, MigrationPlanner
from tenantsync.observability import MockTracer
from tenantsync.propagation import ChangePropagator, InMemoryChangeFeed, InMemorySyncSink
from tenantsync.stores import InMemoryDataStore

# ============================================================================
# Tracing
# ============================================================================


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Tracer recording span names and attributes."""
    return MockTracer()


# ============================================================================
# Stores
# ============================================================================


@pytest.fixture
def data_store() -> InMemoryDataStore:
    """Empty in-memory data store."""
    return InMemoryDataStore(enable_tracing=False)


# ============================================================================
# Consistency
# ============================================================================


@pytest.fixture
def engine(data_store: InMemoryDataStore) -> ConsistencyRuleEngine:
    """Rule engine over the shared data store with no rules registered."""
    return ConsistencyRuleEngine(
        data_store,
        config=ConsistencyConfig(snapshot_limit=100, check_interval_seconds=0.01),
        enable_tracing=False,
    )


# ============================================================================
# Migration
# ============================================================================


@pytest.fixture
def module_systems(data_store: InMemoryDataStore) -> InMemoryModuleSystems:
    """Legacy aggregate, registry and config store over the shared data store."""
    return InMemoryModuleSystems(data_store)


@pytest.fixture
def planner(module_systems: InMemoryModuleSystems) -> MigrationPlanner:
    """Planner reading the in-memory module systems."""
    return MigrationPlanner(module_systems, enable_tracing=False)


@pytest.fixture
def lock_manager() -> InMemoryLockManager:
    """Lock manager shared with the executor."""
    return InMemoryLockManager(enable_tracing=False)


@pytest.fixture
def executor(
    planner: MigrationPlanner,
    module_systems: InMemoryModuleSystems,
    data_store: InMemoryDataStore,
    lock_manager: InMemoryLockManager,
) -> MigrationExecutor:
    """Executor wired entirely to the in-memory module systems."""
    return MigrationExecutor(
        planner,
        module_systems,
        module_systems,
        module_systems,
        data_store,
        lock_manager=lock_manager,
        config=MigrationConfig(),
        enable_tracing=False,
    )


# ============================================================================
# Propagation
# ============================================================================


@pytest.fixture
def feed() -> InMemoryChangeFeed:
    """In-memory change feed."""
    return InMemoryChangeFeed()


@pytest.fixture
def sink() -> InMemorySyncSink:
    """Sync sink recording every call."""
    return InMemorySyncSink()


@pytest.fixture
def propagator(
    feed: InMemoryChangeFeed,
    sink: InMemorySyncSink,
    data_store: InMemoryDataStore,
) -> ChangePropagator:
    """Propagator over the in-memory feed and sink (not yet initialized)."""
    return ChangePropagator(feed, sink, store=data_store, enable_tracing=False)
