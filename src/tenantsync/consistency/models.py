"""
Data models for cross-subsystem consistency checking.

Models in this module:

Enums:
    - ConsistencySeverity: How serious a rule breach is

Core Models:
    - DatasetSnapshot: Bounded rows fetched from one subsystem for a rule
    - ConsistencyRule: A check (and optional repair) over snapshots
    - ConsistencyViolation: A detected breach of a rule
    - TransactionValidation: Result of a pre-commit rule evaluation
    - ConsistencyReport: Summary of the engine's rules and ledger
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from tenantsync.types import Record, Subsystem


class ConsistencySeverity(Enum):
    """
    Severity of a consistency rule.

    Attributes:
        CRITICAL: Data disagreement that breaks a subsystem contract.
        WARNING: Divergence that should be repaired but is tolerated.
        INFO: Informational drift, no action expected.
    """

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class DatasetSnapshot:
    """
    Rows fetched from one subsystem for one rule evaluation.

    Attributes:
        system: Subsystem the rows came from.
        data_type: Data type the rows represent.
        data: The rows, at most the engine's snapshot limit.
        fetched_at: When the rows were read.
    """

    system: Subsystem
    data_type: str
    data: list[Record]
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def ids(self) -> set[Any]:
        """Ids of the rows that carry an "id" field."""
        return {row["id"] for row in self.data if "id" in row}


CheckFunc = Callable[[Sequence[DatasetSnapshot]], bool]
RepairFunc = Callable[[Sequence[DatasetSnapshot]], Awaitable[bool | None]]


@dataclass
class ConsistencyRule:
    """
    A consistency rule comparing datasets across subsystems.

    `check` receives one snapshot per entry of `systems`, in the same order,
    and must be a pure function of them. `repair` is awaited with the same
    snapshots when `check` returns False; returning False (rather than None
    or True) reports that the repair did not succeed.

    Attributes:
        id: Unique rule identifier.
        systems: Subsystems compared by the rule, in snapshot order.
        data_type: Data type fetched from each subsystem.
        check: Pure predicate over the snapshots; True means consistent.
        repair: Optional async corrective action.
        severity: Severity assigned to violations of this rule.
        description: Human-readable summary used in violation messages.

    Example:
        >>> rule = ConsistencyRule(
        ...     id="activation-parity",
        ...     systems=(Subsystem.MODULES, Subsystem.MARKETPLACE),
        ...     data_type="modules",
        ...     check=lambda data: len(data[0].data) == len(data[1].data),
        ...     severity=ConsistencySeverity.WARNING,
        ... )
    """

    id: str
    systems: tuple[Subsystem, ...]
    data_type: str
    check: CheckFunc
    repair: RepairFunc | None = None
    severity: ConsistencySeverity = ConsistencySeverity.WARNING
    description: str | None = None

    def __post_init__(self) -> None:
        """Validate rule definition."""
        if not self.id:
            raise ValueError("Rule id must not be empty.")
        self.systems = tuple(self.systems)
        if not self.systems:
            raise ValueError(f"Rule {self.id} must compare at least one system.")
        if len(set(self.systems)) != len(self.systems):
            raise ValueError(f"Rule {self.id} lists a system more than once: {self.systems}")
        if not self.data_type:
            raise ValueError(f"Rule {self.id} must name a data type.")

    def matches(self, systems: Sequence[Subsystem], data_type: str) -> bool:
        """True if the rule checks `data_type` on any of `systems`."""
        return self.data_type == data_type and bool(set(self.systems) & set(systems))


@dataclass
class ConsistencyViolation:
    """
    A detected breach of a consistency rule.

    Attributes:
        rule_id: Rule that was breached.
        systems: Subsystems compared by the rule.
        data_type: Data type compared.
        description: What was found.
        severity: Severity copied from the rule.
        id: Unique violation identifier.
        detected_at: When the breach was detected.
        resolved: Whether a repair succeeded.
        resolved_at: When the repair succeeded.
    """

    rule_id: str
    systems: tuple[Subsystem, ...]
    data_type: str
    description: str
    severity: ConsistencySeverity
    id: str = field(default_factory=lambda: f"violation-{uuid4()}")
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    resolved: bool = False
    resolved_at: datetime | None = None

    def mark_resolved(self) -> None:
        """Mark the violation as repaired."""
        self.resolved = True
        self.resolved_at = datetime.now(UTC)

    @property
    def is_critical(self) -> bool:
        """True for unresolved critical violations."""
        return not self.resolved and self.severity == ConsistencySeverity.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "systems": [s.value for s in self.systems],
            "data_type": self.data_type,
            "description": self.description,
            "severity": self.severity.value,
            "detected_at": self.detected_at.isoformat(),
            "resolved": self.resolved,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


@dataclass(frozen=True)
class TransactionValidation:
    """
    Result of validating a candidate record against matching rules.

    Attributes:
        valid: True if no matching rule was breached.
        violated_rule_ids: Rules whose check returned False or raised.
    """

    valid: bool
    violated_rule_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ConsistencyReport:
    """
    Summary of the engine's registered rules and violation ledger.

    Attributes:
        rule_count: Number of registered rules.
        total_violations: Violations in the ledger.
        unresolved_violations: Violations not yet repaired.
        critical_violations: Unresolved critical violations.
        by_severity: Ledger size per severity value.
        last_check_at: When the last full pass finished (None if never).
    """

    rule_count: int
    total_violations: int
    unresolved_violations: int
    critical_violations: int
    by_severity: dict[str, int]
    last_check_at: datetime | None

    @property
    def is_healthy(self) -> bool:
        """True when no critical violation is outstanding."""
        return self.critical_violations == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "rule_count": self.rule_count,
            "total_violations": self.total_violations,
            "unresolved_violations": self.unresolved_violations,
            "critical_violations": self.critical_violations,
            "by_severity": dict(self.by_severity),
            "last_check_at": self.last_check_at.isoformat() if self.last_check_at else None,
            "is_healthy": self.is_healthy,
        }


__all__ = [
    "CheckFunc",
    "ConsistencyReport",
    "ConsistencyRule",
    "ConsistencySeverity",
    "ConsistencyViolation",
    "DatasetSnapshot",
    "RepairFunc",
    "TransactionValidation",
]
