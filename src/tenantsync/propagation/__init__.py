"""
Change propagation between subsystems.

Example:
    >>> from tenantsync.propagation import (
    ...     ChangePropagator,
    ...     InMemoryChangeFeed,
    ...     InMemorySyncSink,
    ... )
    >>>
    >>> feed, sink = InMemoryChangeFeed(), InMemorySyncSink()
    >>> propagator = ChangePropagator(feed, sink)
    >>> await propagator.initialize()
"""

from tenantsync.propagation.events import ChangeEvent, ChangeEventType
from tenantsync.propagation.interface import (
    ChangeCallback,
    ChangeFeed,
    SubscriptionHandle,
    SyncSink,
)
from tenantsync.propagation.memory import InMemoryChangeFeed, InMemorySyncSink
from tenantsync.propagation.propagator import (
    ChangePropagator,
    ChannelSpec,
    EventPredicate,
    PayloadBuilder,
    default_channels,
)

__all__ = [
    "ChangeCallback",
    "ChangeEvent",
    "ChangeEventType",
    "ChangeFeed",
    "ChangePropagator",
    "ChannelSpec",
    "EventPredicate",
    "InMemoryChangeFeed",
    "InMemorySyncSink",
    "PayloadBuilder",
    "SubscriptionHandle",
    "SyncSink",
    "default_channels",
]
