"""
Protocols for the change feed and the cross-system sync sink.

Both are provided by external services; tenantsync only subscribes to one
and forwards to the other.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from tenantsync.types import Record

ChangeCallback = Callable[[dict[str, Any]], Awaitable[None]]
"""Receives one raw change payload: ``{eventType, new, old, table, schema}``."""


@dataclass(frozen=True)
class SubscriptionHandle:
    """
    Opaque handle returned by ChangeFeed.subscribe().

    Attributes:
        subscription_id: Feed-assigned identifier
        table: Subscribed table
    """

    subscription_id: str
    table: str


@runtime_checkable
class ChangeFeed(Protocol):
    """Per-table change notifications."""

    async def subscribe(self, table: str, callback: ChangeCallback) -> SubscriptionHandle:
        """Deliver every change on ``table`` to ``callback``."""
        ...

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Stop a subscription. Unknown handles are ignored."""
        ...


@runtime_checkable
class SyncSink(Protocol):
    """Receiver of cross-system sync calls."""

    async def sync_data(self, channel: str, payload: Record) -> None:
        """
        Hand a payload to the subsystem named by ``channel``.

        Raises:
            Exception: Implementation-specific delivery failures.
        """
        ...


__all__ = [
    "ChangeCallback",
    "ChangeFeed",
    "SubscriptionHandle",
    "SyncSink",
]
