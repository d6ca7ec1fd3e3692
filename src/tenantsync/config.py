"""
Configuration classes for tenantsync components.

This module provides:
- ConsistencyConfig: Configuration for the consistency rule engine
- MigrationConfig: Configuration for migration planning and execution
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ConsistencyConfig:
    """
    Configuration for the ConsistencyRuleEngine.

    Attributes:
        snapshot_limit: Maximum rows fetched per system when building a
            dataset snapshot for a rule.
        check_interval_seconds: Default interval for periodic checks.

    Example:
        >>> config = ConsistencyConfig(snapshot_limit=500, check_interval_seconds=60.0)
    """

    snapshot_limit: int = 100
    check_interval_seconds: float = 300.0

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.snapshot_limit < 1:
            raise ValueError(
                f"snapshot_limit must be positive, got {self.snapshot_limit}. "
                "Use a value like 100 (default) rows per system."
            )

        if self.check_interval_seconds <= 0:
            raise ValueError(
                f"check_interval_seconds must be positive, got {self.check_interval_seconds}. "
                "Use a value like 300.0 (default) seconds."
            )


@dataclass(frozen=True)
class MigrationConfig:
    """
    Configuration for MigrationPlanner and MigrationExecutor.

    Attributes:
        per_item_estimate_ms: Fixed cost per plan item used for the coarse
            duration estimate. Not a measurement.
        continue_on_error: Keep processing plan items after one fails.
        legacy_config_table: Table holding the per-tenant legacy aggregate row.
        lock_timeout: Seconds to wait for the per-tenant migration lock.
            None means fail immediately when another migration holds it.
    """

    per_item_estimate_ms: int = 500
    continue_on_error: bool = True
    legacy_config_table: str = "tenant_app_config"
    lock_timeout: float | None = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.per_item_estimate_ms < 0:
            raise ValueError(
                f"per_item_estimate_ms must be >= 0, got {self.per_item_estimate_ms}."
            )

        if not self.legacy_config_table:
            raise ValueError("legacy_config_table must not be empty.")

        if self.lock_timeout is not None and self.lock_timeout <= 0:
            raise ValueError(
                f"lock_timeout must be positive or None, got {self.lock_timeout}. "
                "Use None to fail fast when a migration is already running."
            )


__all__ = [
    "ConsistencyConfig",
    "MigrationConfig",
]
