"""
Cross-subsystem consistency checking.

Example:
    >>> from tenantsync.consistency import ConsistencyRuleEngine, default_rules
    >>>
    >>> engine = ConsistencyRuleEngine(store)
    >>> engine.register_rules(default_rules())
    >>> violations = await engine.check_consistency()
"""

from tenantsync.consistency.engine import ConsistencyRuleEngine
from tenantsync.consistency.models import (
    CheckFunc,
    ConsistencyReport,
    ConsistencyRule,
    ConsistencySeverity,
    ConsistencyViolation,
    DatasetSnapshot,
    RepairFunc,
    TransactionValidation,
)
from tenantsync.consistency.rules import count_parity_rule, default_rules, id_coverage_rule

__all__ = [
    "CheckFunc",
    "ConsistencyReport",
    "ConsistencyRule",
    "ConsistencyRuleEngine",
    "ConsistencySeverity",
    "ConsistencyViolation",
    "DatasetSnapshot",
    "RepairFunc",
    "TransactionValidation",
    "count_parity_rule",
    "default_rules",
    "id_coverage_rule",
]
