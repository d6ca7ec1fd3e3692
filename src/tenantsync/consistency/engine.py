"""
ConsistencyRuleEngine - Detects and repairs divergence between subsystems.

The engine holds a registry of rules, each comparing bounded dataset
snapshots of one data type across several subsystems. A check pass
evaluates the rules one after another, records violations in an in-memory
ledger and runs a rule's repair function when it has one.

Responsibilities:
    - Register rules once at startup and keep them for the process lifetime
    - Evaluate rules sequentially, isolating failures per rule
    - Invoke repair functions and mark repaired violations resolved
    - Guard candidate writes with a side-effect free pre-commit check
    - Run passes periodically on a single background task

Usage:
    >>> engine = ConsistencyRuleEngine(store)
    >>> engine.register_rule(rule)
    >>> violations = await engine.check_consistency()
    >>> engine.start_periodic_checks(60.0)
    >>> ...
    >>> await engine.stop_periodic_checks()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from tenantsync.config import ConsistencyConfig
from tenantsync.consistency.models import (
    ConsistencyReport,
    ConsistencyRule,
    ConsistencySeverity,
    ConsistencyViolation,
    DatasetSnapshot,
    TransactionValidation,
)
from tenantsync.exceptions import RepairError
from tenantsync.observability import (
    ATTR_DATA_TYPE,
    ATTR_RULE_COUNT,
    ATTR_RULE_ID,
    ATTR_SYSTEMS,
    ATTR_VIOLATION_COUNT,
    Tracer,
    create_tracer,
)
from tenantsync.stores.interface import DataStore
from tenantsync.stores.tables import resolve_table
from tenantsync.types import Record, Subsystem

logger = logging.getLogger(__name__)


class ConsistencyRuleEngine:
    """
    Registers consistency rules and evaluates them against subsystem stores.

    Rules are evaluated strictly sequentially within a pass, awaiting each
    fetch and repair, so the violation ledger is only ever touched by one
    coroutine at a time. An error while fetching, checking or repairing one
    rule is logged and the pass continues with the next rule.

    Example:
        >>> engine = ConsistencyRuleEngine(store, config=ConsistencyConfig(snapshot_limit=50))
        >>> engine.register_rule(
        ...     ConsistencyRule(
        ...         id="activation-parity",
        ...         systems=(Subsystem.MODULES, Subsystem.MARKETPLACE),
        ...         data_type="modules",
        ...         check=lambda data: len(data[0].data) == len(data[1].data),
        ...     )
        ... )
        >>> for violation in await engine.check_consistency():
        ...     print(violation.description)
    """

    def __init__(
        self,
        store: DataStore,
        *,
        config: ConsistencyConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the rule engine.

        Args:
            store: Data store the snapshots are fetched from.
            config: Engine configuration (snapshot limit, default interval).
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing.
                Ignored if tracer is explicitly provided.
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._store = store
        self._config = config or ConsistencyConfig()
        self._rules: dict[str, ConsistencyRule] = {}
        self._violations: list[ConsistencyViolation] = []
        self._periodic_task: asyncio.Task[None] | None = None
        self._last_check_at: datetime | None = None

    # -------------------------------------------------------------------------
    # Rule registry
    # -------------------------------------------------------------------------

    def register_rule(self, rule: ConsistencyRule) -> None:
        """
        Register a rule, replacing any rule with the same id.

        A replaced rule keeps its position in evaluation order.
        """
        replaced = rule.id in self._rules
        self._rules[rule.id] = rule
        logger.info(
            "%s consistency rule %s (%s on %s)",
            "Replaced" if replaced else "Registered",
            rule.id,
            rule.data_type,
            ", ".join(s.value for s in rule.systems),
        )

    def register_rules(self, rules: Iterable[ConsistencyRule]) -> None:
        """Register several rules in order."""
        for rule in rules:
            self.register_rule(rule)

    def unregister_rule(self, rule_id: str) -> bool:
        """
        Remove a rule.

        Returns:
            True if the rule was registered.
        """
        return self._rules.pop(rule_id, None) is not None

    def get_rules(self) -> list[ConsistencyRule]:
        """Registered rules in evaluation order."""
        return list(self._rules.values())

    # -------------------------------------------------------------------------
    # Checking
    # -------------------------------------------------------------------------

    async def check_consistency(self) -> list[ConsistencyViolation]:
        """
        Evaluate every registered rule once.

        Returns:
            Violations detected in this pass (already appended to the ledger).
        """
        rules = self.get_rules()
        with self._tracer.span(
            "tenantsync.consistency.check",
            {ATTR_RULE_COUNT: len(rules)},
        ):
            violations = await self._evaluate_rules(rules)
            self._last_check_at = datetime.now(UTC)

            if violations:
                logger.warning(
                    "Consistency check found %d violation(s) across %d rule(s)",
                    len(violations),
                    len(rules),
                )
            else:
                logger.debug("Consistency check passed for %d rule(s)", len(rules))
            return violations

    async def enforce_consistency(
        self,
        systems: Sequence[Subsystem],
        data_type: str,
    ) -> list[ConsistencyViolation]:
        """
        Re-check and repair the rules matching a filter on demand.

        Args:
            systems: Subsystems of interest; a rule matches if it compares any of them.
            data_type: Data type the rule must check.

        Returns:
            Violations detected by the matching rules.
        """
        rules = [r for r in self._rules.values() if r.matches(systems, data_type)]
        with self._tracer.span(
            "tenantsync.consistency.enforce",
            {
                ATTR_SYSTEMS: ",".join(s.value for s in systems),
                ATTR_DATA_TYPE: data_type,
                ATTR_RULE_COUNT: len(rules),
            },
        ):
            if not rules:
                logger.debug(
                    "No consistency rules match %s on %s",
                    data_type,
                    ", ".join(s.value for s in systems),
                )
            return await self._evaluate_rules(rules)

    def validate_transaction(
        self,
        systems: Sequence[Subsystem],
        data_type: str,
        candidate: Record,
    ) -> TransactionValidation:
        """
        Check a candidate record against matching rules before it is written.

        Each matching rule sees one snapshot per system holding only the
        candidate. Nothing is written to the ledger and no repair runs. A
        check that raises counts as a violation.

        Args:
            systems: Subsystems the candidate will be written to.
            data_type: Data type of the candidate.
            candidate: The record about to be committed.

        Returns:
            TransactionValidation listing the violated rule ids.
        """
        violated: list[str] = []
        for rule in self._rules.values():
            if not rule.matches(systems, data_type):
                continue

            snapshots = [
                DatasetSnapshot(system=system, data_type=data_type, data=[dict(candidate)])
                for system in rule.systems
            ]
            try:
                ok = bool(rule.check(snapshots))
            except Exception as e:
                logger.warning(
                    "Rule %s raised during transaction validation, treating as violated: %s",
                    rule.id,
                    e,
                )
                ok = False

            if not ok:
                violated.append(rule.id)

        return TransactionValidation(valid=not violated, violated_rule_ids=violated)

    async def _evaluate_rules(self, rules: Sequence[ConsistencyRule]) -> list[ConsistencyViolation]:
        violations: list[ConsistencyViolation] = []
        for rule in rules:
            try:
                violation = await self._evaluate_rule(rule)
            except Exception as e:
                logger.error(
                    "Consistency rule %s failed to evaluate: %s",
                    rule.id,
                    e,
                    exc_info=True,
                    extra={"rule_id": rule.id, "data_type": rule.data_type},
                )
                continue

            if violation is not None:
                violations.append(violation)
        return violations

    async def _evaluate_rule(self, rule: ConsistencyRule) -> ConsistencyViolation | None:
        with self._tracer.span(
            "tenantsync.consistency.evaluate_rule",
            {
                ATTR_RULE_ID: rule.id,
                ATTR_DATA_TYPE: rule.data_type,
                ATTR_SYSTEMS: ",".join(s.value for s in rule.systems),
            },
        ) as span:
            snapshots = [await self._fetch_snapshot(system, rule.data_type) for system in rule.systems]

            if rule.check(snapshots):
                return None

            violation = ConsistencyViolation(
                rule_id=rule.id,
                systems=rule.systems,
                data_type=rule.data_type,
                description=self._describe(rule, snapshots),
                severity=rule.severity,
            )

            if rule.repair is not None:
                try:
                    await self._repair(rule, snapshots)
                    violation.mark_resolved()
                    logger.info("Repaired violation of rule %s", rule.id)
                except RepairError as e:
                    logger.error("%s", e, extra={"rule_id": rule.id})

            self._violations.append(violation)
            if span:
                span.set_attribute(ATTR_VIOLATION_COUNT, 1)

            logger.log(
                _LOG_LEVELS[rule.severity],
                "Consistency violation: %s",
                violation.description,
                extra={"rule_id": rule.id, "violation_id": violation.id},
            )
            return violation

    async def _fetch_snapshot(self, system: Subsystem, data_type: str) -> DatasetSnapshot:
        table = resolve_table(system, data_type)
        rows = await self._store.select_rows(table, limit=self._config.snapshot_limit)
        return DatasetSnapshot(system=system, data_type=data_type, data=rows)

    async def _repair(self, rule: ConsistencyRule, snapshots: Sequence[DatasetSnapshot]) -> None:
        assert rule.repair is not None
        try:
            outcome = await rule.repair(snapshots)
        except Exception as e:
            raise RepairError(rule.id, str(e)) from e
        if outcome is False:
            raise RepairError(rule.id, "repair reported failure")

    @staticmethod
    def _describe(rule: ConsistencyRule, snapshots: Sequence[DatasetSnapshot]) -> str:
        counts = ", ".join(f"{s.system.value}={len(s.data)}" for s in snapshots)
        summary = rule.description or f"Rule {rule.id} failed"
        return f"{summary} ({rule.data_type}: {counts})"

    # -------------------------------------------------------------------------
    # Periodic checks
    # -------------------------------------------------------------------------

    def start_periodic_checks(self, interval_seconds: float | None = None) -> None:
        """
        Run check_consistency() every interval on a background task.

        At most one periodic task exists; starting again replaces it.
        Must be called from a running event loop.
        """
        interval = (
            self._config.check_interval_seconds if interval_seconds is None else interval_seconds
        )
        if interval <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval}")

        if self._periodic_task is not None and not self._periodic_task.done():
            self._periodic_task.cancel()

        self._periodic_task = asyncio.create_task(
            self._run_periodic(interval), name="tenantsync-consistency-checks"
        )
        logger.info("Started periodic consistency checks every %.1fs", interval)

    async def stop_periodic_checks(self) -> None:
        """Stop the periodic task, if any, and wait for it to finish."""
        task, self._periodic_task = self._periodic_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Stopped periodic consistency checks")

    @property
    def is_running(self) -> bool:
        """True while a periodic task is active."""
        return self._periodic_task is not None and not self._periodic_task.done()

    async def _run_periodic(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.check_consistency()
            except Exception:
                logger.exception("Periodic consistency check failed")

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def get_violations(
        self,
        *,
        rule_id: str | None = None,
        severity: ConsistencySeverity | None = None,
        resolved: bool | None = None,
        system: Subsystem | None = None,
        data_type: str | None = None,
    ) -> list[ConsistencyViolation]:
        """Violations in the ledger matching every given filter."""
        return [
            v
            for v in self._violations
            if (rule_id is None or v.rule_id == rule_id)
            and (severity is None or v.severity == severity)
            and (resolved is None or v.resolved == resolved)
            and (system is None or system in v.systems)
            and (data_type is None or v.data_type == data_type)
        ]

    def get_critical_violations(self) -> list[ConsistencyViolation]:
        """Unresolved critical violations."""
        return [v for v in self._violations if v.is_critical]

    def clear_resolved_violations(self) -> int:
        """
        Prune resolved violations from the ledger.

        Returns:
            Number of violations removed.
        """
        before = len(self._violations)
        self._violations = [v for v in self._violations if not v.resolved]
        return before - len(self._violations)

    def get_report(self) -> ConsistencyReport:
        """Summarize rules and ledger state."""
        by_severity = {s.value: 0 for s in ConsistencySeverity}
        for v in self._violations:
            by_severity[v.severity.value] += 1
        return ConsistencyReport(
            rule_count=len(self._rules),
            total_violations=len(self._violations),
            unresolved_violations=sum(1 for v in self._violations if not v.resolved),
            critical_violations=len(self.get_critical_violations()),
            by_severity=by_severity,
            last_check_at=self._last_check_at,
        )


_LOG_LEVELS = {
    ConsistencySeverity.CRITICAL: logging.ERROR,
    ConsistencySeverity.WARNING: logging.WARNING,
    ConsistencySeverity.INFO: logging.INFO,
}


__all__ = ["ConsistencyRuleEngine"]
