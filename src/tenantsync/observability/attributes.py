"""
Standard span attributes for tenantsync.

Attribute constants used across all tenantsync components so spans from the
consistency engine, the migration flow and the change propagator can be
queried with the same keys.

Example:
    >>> from tenantsync.observability.attributes import ATTR_TENANT_ID
    >>>
    >>> with tracer.span("tenantsync.migration.execute", {ATTR_TENANT_ID: tenant_id}):
    ...     pass
"""

# =============================================================================
# Tenant Attributes
# =============================================================================

ATTR_TENANT_ID = "tenantsync.tenant.id"
"""Tenant identifier (string)."""

ATTR_MODULE_ID = "tenantsync.module.id"
"""Module identifier (string)."""

# =============================================================================
# Consistency Attributes
# =============================================================================

ATTR_RULE_ID = "tenantsync.rule.id"
"""Consistency rule identifier (string)."""

ATTR_RULE_COUNT = "tenantsync.rule.count"
"""Number of rules evaluated in a pass (integer)."""

ATTR_DATA_TYPE = "tenantsync.data_type"
"""Data type compared by a rule (string)."""

ATTR_SYSTEMS = "tenantsync.systems"
"""Comma-separated subsystem names (string)."""

ATTR_VIOLATION_COUNT = "tenantsync.violation.count"
"""Number of violations found (integer)."""

# =============================================================================
# Migration Attributes
# =============================================================================

ATTR_MIGRATION_ID = "tenantsync.migration.id"
"""Migration identifier (string)."""

ATTR_BACKUP_ID = "tenantsync.backup.id"
"""Migration backup identifier (string)."""

ATTR_PLAN_ITEM_COUNT = "tenantsync.plan.item_count"
"""Number of items in a migration plan (integer)."""

ATTR_MIGRATION_STRATEGY = "tenantsync.migration.strategy"
"""Strategy applied to a plan item (string)."""

# =============================================================================
# Propagation Attributes
# =============================================================================

ATTR_CHANNEL = "tenantsync.channel"
"""Change channel name (string)."""

ATTR_TABLE = "tenantsync.table"
"""Physical table name (string)."""

ATTR_CHANGE_TYPE = "tenantsync.change.type"
"""Change event type: insert, update or delete (string)."""

ATTR_SYNC_TARGET = "tenantsync.sync.target"
"""Subsystem a change was forwarded to (string)."""

ATTR_FORWARDED = "tenantsync.forwarded"
"""Whether a change event was forwarded (boolean)."""

# =============================================================================
# Lock Attributes
# =============================================================================

ATTR_LOCK_KEY = "tenantsync.lock.key"
"""Lock key string."""

ATTR_LOCK_TIMEOUT = "tenantsync.lock.timeout"
"""Lock acquisition timeout in seconds (float, -1 for none)."""
