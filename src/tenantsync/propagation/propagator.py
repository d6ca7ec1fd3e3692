"""
ChangePropagator - Forwards relevant row changes between subsystems.

One dispatcher walks an explicit list of ChannelSpec records. Each spec names
the table it listens on, the subsystem it forwards to, a predicate deciding
whether an event is semantically relevant, and a payload builder. Subscribe,
unsubscribe and backfill all go through the same list.

Default channels:

    channel                    forwards to    when
    workflow_definitions       modules        insert/update flagged triggers_module_activation
    workflow_executions        handover       update reaching completed or failed
    module_activations         handover       update reaching active
    module_configurations      orchestration  insert/update
    marketplace_installations  modules        insert only
    marketplace_templates      modules        insert/update flagged requires_module_activation
    handover_packages          marketplace    update reaching delivered

Handlers never raise. Malformed payloads and sink failures are logged and
counted; the channel stays subscribed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import pydantic

from tenantsync.exceptions import NotFoundError, ValidationError
from tenantsync.observability import (
    ATTR_CHANGE_TYPE,
    ATTR_CHANNEL,
    ATTR_FORWARDED,
    ATTR_SYNC_TARGET,
    ATTR_TABLE,
    SpanKindEnum,
    Tracer,
    create_tracer,
)
from tenantsync.propagation.events import ChangeEvent, ChangeEventType
from tenantsync.propagation.interface import ChangeFeed, SubscriptionHandle, SyncSink
from tenantsync.stores.interface import DataStore
from tenantsync.types import Record, Subsystem

logger = logging.getLogger(__name__)

EventPredicate = Callable[[ChangeEvent], bool]
PayloadBuilder = Callable[[ChangeEvent], Record]

_WRITES = frozenset({ChangeEventType.INSERT, ChangeEventType.UPDATE})
_TERMINAL_EXECUTION_STATUSES = frozenset({"completed", "failed"})


@dataclass(frozen=True)
class ChannelSpec:
    """
    One subscribed table and how its changes are forwarded.

    Attributes:
        name: Channel name (also the subscription name)
        table: Table subscribed on the change feed
        target: Subsystem the sync sink is called for
        accepts: Predicate selecting the events worth forwarding
        build_payload: Builds the sync payload from an accepted event
    """

    name: str
    table: str
    target: Subsystem
    accepts: EventPredicate
    build_payload: PayloadBuilder


def _base_payload(action: str, event: ChangeEvent) -> Record:
    record = event.record
    payload: Record = {
        "action": action,
        "event_type": event.event_type.value.lower(),
        "timestamp": datetime.now(UTC).isoformat(),
    }
    if record.get("tenant_id") is not None:
        payload["tenant_id"] = record["tenant_id"]
    return payload


def _workflow_payload(event: ChangeEvent) -> Record:
    record = event.record
    return {
        **_base_payload("activate_module_for_workflow", event),
        "workflow_id": record.get("id"),
        "module_id": record.get("module_id"),
    }


def _execution_payload(event: ChangeEvent) -> Record:
    record = event.record
    return {
        **_base_payload("execution_finished", event),
        "execution_id": record.get("id"),
        "workflow_id": record.get("workflow_id"),
        "status": record.get("status"),
    }


def _activation_payload(event: ChangeEvent) -> Record:
    record = event.record
    return {
        **_base_payload("module_activated", event),
        "activation_id": record.get("id"),
        "module_id": record.get("module_id"),
        "status": record.get("status"),
    }


def _configuration_payload(event: ChangeEvent) -> Record:
    record = event.record
    return {
        **_base_payload("module_configuration_changed", event),
        "configuration_id": record.get("id"),
        "module_id": record.get("module_id"),
        "config": record.get("config"),
    }


def _installation_payload(event: ChangeEvent) -> Record:
    record = event.record
    return {
        **_base_payload("install_module", event),
        "installation_id": record.get("id"),
        "module_id": record.get("module_id"),
        "template_id": record.get("template_id"),
    }


def _template_payload(event: ChangeEvent) -> Record:
    record = event.record
    return {
        **_base_payload("activate_template_modules", event),
        "template_id": record.get("id"),
        "required_modules": list(record.get("required_modules") or []),
    }


def _package_payload(event: ChangeEvent) -> Record:
    record = event.record
    return {
        **_base_payload("package_delivered", event),
        "package_id": record.get("id"),
        "execution_id": record.get("execution_id"),
        "status": record.get("status"),
    }


def default_channels() -> list[ChannelSpec]:
    """The seven standard channels."""
    return [
        ChannelSpec(
            name="workflow_definitions",
            table="workflow_definitions",
            target=Subsystem.MODULES,
            accepts=lambda e: (
                e.event_type in _WRITES and e.new.get("triggers_module_activation") is True
            ),
            build_payload=_workflow_payload,
        ),
        ChannelSpec(
            name="workflow_executions",
            table="workflow_executions",
            target=Subsystem.HANDOVER,
            accepts=lambda e: (
                e.event_type == ChangeEventType.UPDATE
                and e.new.get("status") in _TERMINAL_EXECUTION_STATUSES
            ),
            build_payload=_execution_payload,
        ),
        ChannelSpec(
            name="module_activations",
            table="module_activations",
            target=Subsystem.HANDOVER,
            accepts=lambda e: (
                e.event_type == ChangeEventType.UPDATE and e.new.get("status") == "active"
            ),
            build_payload=_activation_payload,
        ),
        ChannelSpec(
            name="module_configurations",
            table="module_configurations",
            target=Subsystem.ORCHESTRATION,
            accepts=lambda e: e.event_type in _WRITES,
            build_payload=_configuration_payload,
        ),
        ChannelSpec(
            name="marketplace_installations",
            table="marketplace_installations",
            target=Subsystem.MODULES,
            accepts=lambda e: e.event_type == ChangeEventType.INSERT,
            build_payload=_installation_payload,
        ),
        ChannelSpec(
            name="marketplace_templates",
            table="marketplace_templates",
            target=Subsystem.MODULES,
            accepts=lambda e: (
                e.event_type in _WRITES and e.new.get("requires_module_activation") is True
            ),
            build_payload=_template_payload,
        ),
        ChannelSpec(
            name="handover_packages",
            table="handover_packages",
            target=Subsystem.MARKETPLACE,
            accepts=lambda e: (
                e.event_type == ChangeEventType.UPDATE and e.new.get("status") == "delivered"
            ),
            build_payload=_package_payload,
        ),
    ]


class ChangePropagator:
    """
    Subscribes to the change feed and forwards relevant changes.

    Features:
    - Idempotent initialize(); shutdown() allows re-initialization
    - Per-event validation into ChangeEvent; malformed payloads dropped
    - Error isolation (sink failures don't unsubscribe the channel)
    - Backfill of a single record through the live handler path
    - Optional OpenTelemetry tracing

    Example:
        >>> propagator = ChangePropagator(feed, sink, store=store)
        >>> await propagator.initialize()
        >>> propagator.is_subscribed("workflow_definitions")
        True
        >>> await propagator.sync_specific_table("workflow_definitions", "wf-1")
        True
        >>> await propagator.shutdown()
    """

    def __init__(
        self,
        feed: ChangeFeed,
        sink: SyncSink,
        *,
        store: DataStore | None = None,
        channels: list[ChannelSpec] | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the propagator.

        Args:
            feed: Change feed to subscribe on.
            sink: Receiver of forwarded payloads.
            store: Data store used by sync_specific_table().
            channels: Channel list (default_channels() if omitted).
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing.
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._feed = feed
        self._sink = sink
        self._store = store
        self._channels = list(channels) if channels is not None else default_channels()
        self._handles: dict[str, SubscriptionHandle] = {}
        self._stats = {
            "received": 0,
            "forwarded": 0,
            "filtered": 0,
            "dropped": 0,
            "sink_errors": 0,
        }

    @property
    def channels(self) -> list[ChannelSpec]:
        """Configured channels, in subscription order."""
        return list(self._channels)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Subscribe every channel not yet subscribed."""
        for spec in self._channels:
            if spec.name in self._handles:
                continue
            self._handles[spec.name] = await self._feed.subscribe(
                spec.table, self._callback_for(spec)
            )
        logger.info(
            "Change propagation active on %d channel(s)",
            len(self._handles),
            extra={"channels": list(self._handles)},
        )

    async def shutdown(self) -> None:
        """Unsubscribe every channel."""
        for name, handle in list(self._handles.items()):
            try:
                await self._feed.unsubscribe(handle)
            except Exception as e:
                logger.warning("Failed to unsubscribe channel %s: %s", name, e)
            del self._handles[name]
        logger.info("Change propagation stopped")

    def get_active_subscriptions(self) -> list[str]:
        """Names of subscribed channels."""
        return list(self._handles)

    def is_subscribed(self, name: str) -> bool:
        """True if the channel is subscribed."""
        return name in self._handles

    def get_stats(self) -> dict[str, int]:
        """
        Get propagation counters.

        Returns:
            Dictionary with counts:
            - received: Events delivered to a handler
            - forwarded: Events handed to the sync sink
            - filtered: Events not semantically relevant
            - dropped: Malformed or unprocessable events
            - sink_errors: Sync calls that raised
        """
        return dict(self._stats)

    # -------------------------------------------------------------------------
    # Event handling
    # -------------------------------------------------------------------------

    def _callback_for(self, spec: ChannelSpec):
        async def on_change(payload: Any) -> None:
            await self._on_change(spec, payload)

        return on_change

    async def _on_change(self, spec: ChannelSpec, payload: Any) -> None:
        self._stats["received"] += 1
        if not isinstance(payload, Mapping):
            self._drop_malformed(spec, f"expected a mapping, got {type(payload).__name__}")
            return
        try:
            event = ChangeEvent.model_validate({"table": spec.table, **payload})
        except pydantic.ValidationError as e:
            self._drop_malformed(spec, e)
            return
        await self._dispatch(spec, event)

    def _drop_malformed(self, spec: ChannelSpec, reason: object) -> None:
        self._stats["dropped"] += 1
        logger.warning(
            "Dropped malformed change on %s: %s",
            spec.name,
            reason,
            extra={"channel": spec.name},
        )

    async def _dispatch(self, spec: ChannelSpec, event: ChangeEvent) -> bool:
        """Filter, build and forward one event. Returns True when forwarded."""
        with self._tracer.span_with_kind(
            "tenantsync.propagation.handle",
            SpanKindEnum.CONSUMER,
            {
                ATTR_CHANNEL: spec.name,
                ATTR_TABLE: event.table,
                ATTR_CHANGE_TYPE: event.event_type.value,
            },
        ) as span:
            try:
                if not spec.accepts(event):
                    self._stats["filtered"] += 1
                    logger.debug(
                        "Ignored %s on %s", event.event_type.value, spec.name
                    )
                    if span:
                        span.set_attribute(ATTR_FORWARDED, False)
                    return False
                payload = spec.build_payload(event)
            except Exception as e:
                self._stats["dropped"] += 1
                logger.error(
                    "Could not process change on %s: %s", spec.name, e, exc_info=True
                )
                return False

            try:
                with self._tracer.span_with_kind(
                    "tenantsync.propagation.sync",
                    SpanKindEnum.PRODUCER,
                    {ATTR_CHANNEL: spec.name, ATTR_SYNC_TARGET: spec.target.value},
                ):
                    await self._sink.sync_data(spec.target.value, payload)
            except Exception as e:
                self._stats["sink_errors"] += 1
                if span:
                    span.record_exception(e)
                logger.error(
                    "Sync to %s failed for change on %s: %s",
                    spec.target.value,
                    spec.name,
                    e,
                    exc_info=True,
                    extra={"channel": spec.name, "target": spec.target.value},
                )
                return False

            self._stats["forwarded"] += 1
            if span:
                span.set_attribute(ATTR_FORWARDED, True)
            logger.debug("Forwarded change on %s to %s", spec.name, spec.target.value)
            return True

    # -------------------------------------------------------------------------
    # Backfill
    # -------------------------------------------------------------------------

    async def sync_specific_table(
        self,
        table: str,
        record_id: str,
        event_type: ChangeEventType = ChangeEventType.UPDATE,
    ) -> bool:
        """
        Re-read one record and run it through its channel's handler.

        Args:
            table: Table (or channel name) of the record.
            record_id: Row id.
            event_type: Change type to present the record as.

        Returns:
            True if the record was forwarded to the sync sink.

        Raises:
            ValidationError: If the table has no channel or no store is configured.
            NotFoundError: If the record does not exist.
        """
        spec = next((c for c in self._channels if table in (c.table, c.name)), None)
        if spec is None:
            raise ValidationError(f"No change channel for table {table}", field="table")
        if self._store is None:
            raise ValidationError("sync_specific_table requires a data store", field="store")

        row = await self._store.get_row(spec.table, record_id)
        if row is None:
            raise NotFoundError("Record", f"{spec.table}/{record_id}")

        self._stats["received"] += 1
        event = ChangeEvent(event_type=event_type, new=row, table=spec.table)
        return await self._dispatch(spec, event)


__all__ = [
    "ChangePropagator",
    "ChannelSpec",
    "EventPredicate",
    "PayloadBuilder",
    "default_channels",
]
