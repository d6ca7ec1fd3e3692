"""
Built-in consistency rule factories.

These cover the common shapes of cross-subsystem checks: row-count parity
and id coverage. default_rules() returns the stock rules wired for the four
subsystems.
"""

from __future__ import annotations

from collections.abc import Sequence

from tenantsync.consistency.models import (
    ConsistencyRule,
    ConsistencySeverity,
    DatasetSnapshot,
    RepairFunc,
)
from tenantsync.types import Subsystem


def count_parity_rule(
    rule_id: str,
    systems: Sequence[Subsystem],
    data_type: str,
    *,
    severity: ConsistencySeverity = ConsistencySeverity.WARNING,
    repair: RepairFunc | None = None,
    description: str | None = None,
) -> ConsistencyRule:
    """
    Rule that holds when every system returns the same number of rows.

    Example:
        >>> rule = count_parity_rule(
        ...     "module-parity",
        ...     (Subsystem.MODULES, Subsystem.MARKETPLACE),
        ...     "modules",
        ... )
    """

    def check(snapshots: Sequence[DatasetSnapshot]) -> bool:
        return len({len(s.data) for s in snapshots}) <= 1

    return ConsistencyRule(
        id=rule_id,
        systems=tuple(systems),
        data_type=data_type,
        check=check,
        repair=repair,
        severity=severity,
        description=description or f"Row counts differ for {data_type}",
    )


def id_coverage_rule(
    rule_id: str,
    systems: Sequence[Subsystem],
    data_type: str,
    reference_field: str,
    *,
    severity: ConsistencySeverity = ConsistencySeverity.WARNING,
    repair: RepairFunc | None = None,
    description: str | None = None,
) -> ConsistencyRule:
    """
    Rule that holds when every row of the later systems references an id
    present in the first system's rows through `reference_field`.

    Rows without the reference field are ignored.
    """

    def check(snapshots: Sequence[DatasetSnapshot]) -> bool:
        known = snapshots[0].ids
        for snapshot in snapshots[1:]:
            for row in snapshot.data:
                ref = row.get(reference_field)
                if ref is not None and ref not in known:
                    return False
        return True

    return ConsistencyRule(
        id=rule_id,
        systems=tuple(systems),
        data_type=data_type,
        check=check,
        repair=repair,
        severity=severity,
        description=description
        or f"Dangling {reference_field} references for {data_type}",
    )


def default_rules() -> list[ConsistencyRule]:
    """Stock rules for the orchestration, modules, marketplace and handover subsystems."""
    return [
        count_parity_rule(
            "modules-marketplace-parity",
            (Subsystem.MODULES, Subsystem.MARKETPLACE),
            "modules",
            severity=ConsistencySeverity.WARNING,
            description="Registered modules and marketplace installations disagree",
        ),
        id_coverage_rule(
            "handover-executions-coverage",
            (Subsystem.ORCHESTRATION, Subsystem.HANDOVER),
            "executions",
            "execution_id",
            severity=ConsistencySeverity.INFO,
            description="Handover packages reference unknown workflow executions",
        ),
    ]


__all__ = [
    "count_parity_rule",
    "default_rules",
    "id_coverage_rule",
]
