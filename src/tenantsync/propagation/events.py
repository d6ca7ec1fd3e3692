"""
Change events delivered by a change feed.

Raw subscription payloads are untrusted. They are validated into the
immutable ChangeEvent model before any handler looks at them; payloads that
do not validate raise pydantic.ValidationError.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tenantsync.types import Record


class ChangeEventType(Enum):
    """Kind of row change."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """
    One row change on a subscribed table.

    Attributes:
        event_type: INSERT, UPDATE or DELETE (case-insensitive on input)
        new: Row after the change (empty for DELETE)
        old: Row before the change (empty for INSERT)
        table: Table the change happened on
        schema_name: Database schema; populated from the ``schema`` key
        received_at: When the event was accepted (UTC)

    Example:
        >>> event = ChangeEvent.model_validate(
        ...     {"eventType": "update", "new": {"id": "w1"}, "table": "workflow_definitions"}
        ... )
        >>> event.event_type
        <ChangeEventType.UPDATE: 'UPDATE'>
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event_type: ChangeEventType = Field(alias="eventType")
    new: Record = Field(default_factory=dict)
    old: Record = Field(default_factory=dict)
    table: str
    schema_name: str = Field(default="public", alias="schema")
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("event_type", mode="before")
    @classmethod
    def _normalize_event_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("new", "old", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def record(self) -> Record:
        """The row the event is about: ``new``, or ``old`` for deletes."""
        return self.new or self.old


__all__ = ["ChangeEvent", "ChangeEventType"]
