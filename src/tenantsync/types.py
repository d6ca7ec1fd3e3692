"""Common type definitions for the tenantsync library."""

from enum import Enum
from typing import Any


class Subsystem(Enum):
    """
    The independently-evolving subsystems kept consistent by tenantsync.

    Each subsystem owns its own storage. The value doubles as the sync
    channel name when changes are forwarded to a subsystem.
    """

    ORCHESTRATION = "orchestration"
    MODULES = "modules"
    MARKETPLACE = "marketplace"
    HANDOVER = "handover"


# A single row as read from a subsystem store
Record = dict[str, Any]

TenantId = str
ModuleId = str
