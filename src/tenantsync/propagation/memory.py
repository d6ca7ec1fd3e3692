"""In-memory change feed and sync sink.

Suitable for development and testing. ``InMemoryChangeFeed.emit`` delivers a
raw payload to every callback subscribed to the table, in subscription
order, and awaits each one.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any
from uuid import uuid4

from tenantsync.propagation.interface import ChangeCallback, SubscriptionHandle
from tenantsync.types import Record

logger = logging.getLogger(__name__)


class InMemoryChangeFeed:
    """
    In-process ChangeFeed.

    Example:
        >>> feed = InMemoryChangeFeed()
        >>> handle = await feed.subscribe("workflow_definitions", on_change)
        >>> await feed.emit("workflow_definitions", {"eventType": "INSERT", "new": {...}})
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, dict[str, ChangeCallback]] = defaultdict(dict)

    async def subscribe(self, table: str, callback: ChangeCallback) -> SubscriptionHandle:
        handle = SubscriptionHandle(subscription_id=str(uuid4()), table=table)
        self._subscribers[table][handle.subscription_id] = callback
        logger.debug("Subscribed %s to %s", handle.subscription_id, table)
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        self._subscribers.get(handle.table, {}).pop(handle.subscription_id, None)

    async def emit(self, table: str, payload: dict[str, Any]) -> int:
        """
        Deliver a raw payload to the table's subscribers.

        A ``table`` key is added when the payload lacks one.

        Returns:
            Number of callbacks invoked
        """
        message = {"table": table, **payload}
        callbacks = list(self._subscribers.get(table, {}).values())
        for callback in callbacks:
            await callback(message)
        return len(callbacks)

    def subscriber_count(self, table: str | None = None) -> int:
        """Subscriptions on one table, or on all tables."""
        if table is not None:
            return len(self._subscribers.get(table, {}))
        return sum(len(subs) for subs in self._subscribers.values())


class InMemorySyncSink:
    """
    SyncSink that records every call.

    Attributes:
        calls: (channel, payload) pairs in delivery order
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Record]] = []

    async def sync_data(self, channel: str, payload: Record) -> None:
        self.calls.append((channel, dict(payload)))

    def payloads_for(self, channel: str) -> list[Record]:
        """Payloads delivered to one channel."""
        return [payload for name, payload in self.calls if name == channel]

    def clear(self) -> None:
        """Forget recorded calls."""
        self.calls.clear()


__all__ = ["InMemoryChangeFeed", "InMemorySyncSink"]
