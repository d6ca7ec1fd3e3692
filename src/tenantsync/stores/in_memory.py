"""
In-memory data store implementation.

Rows are deep-copied on the way in and out so callers never share mutable
state with the store. Suitable for tests and development.
"""

from __future__ import annotations

import asyncio
import copy
import logging

from tenantsync.observability import ATTR_TABLE, Tracer, create_tracer
from tenantsync.types import Record

logger = logging.getLogger(__name__)


class InMemoryDataStore:
    """
    In-memory implementation of the DataStore protocol.

    Example:
        >>> store = InMemoryDataStore()
        >>> await store.write_row("tenant_app_config", "t1", {"modules_enabled": ["a"]})
        >>> await store.get_row("tenant_app_config", "t1")
        {'modules_enabled': ['a'], 'id': 't1'}
    """

    def __init__(
        self,
        *,
        id_column: str = "id",
        tenant_column: str = "tenant_id",
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._id_column = id_column
        self._tenant_column = tenant_column
        self._tables: dict[str, dict[str, Record]] = {}
        self._lock = asyncio.Lock()

    async def select_rows(
        self,
        table: str,
        *,
        limit: int,
        tenant_id: str | None = None,
    ) -> list[Record]:
        with self._tracer.span("tenantsync.store.select_rows", {ATTR_TABLE: table}):
            async with self._lock:
                rows = list(self._tables.get(table, {}).values())

            if tenant_id is not None:
                rows = [r for r in rows if r.get(self._tenant_column) == tenant_id]
            return copy.deepcopy(rows[:limit])

    async def get_row(self, table: str, row_id: str) -> Record | None:
        with self._tracer.span("tenantsync.store.get_row", {ATTR_TABLE: table}):
            async with self._lock:
                row = self._tables.get(table, {}).get(row_id)
            return copy.deepcopy(row) if row is not None else None

    async def write_row(self, table: str, row_id: str, data: Record) -> None:
        with self._tracer.span("tenantsync.store.write_row", {ATTR_TABLE: table}):
            row = copy.deepcopy(data)
            row[self._id_column] = row_id
            async with self._lock:
                self._tables.setdefault(table, {})[row_id] = row
            logger.debug("Wrote row %s to %s", row_id, table)

    async def delete_row(self, table: str, row_id: str) -> bool:
        """Delete one row. Returns True if it existed."""
        async with self._lock:
            return self._tables.get(table, {}).pop(row_id, None) is not None

    async def seed(self, table: str, rows: list[Record]) -> None:
        """Insert rows keyed by their id column."""
        for row in rows:
            await self.write_row(table, str(row[self._id_column]), row)

    async def clear(self) -> None:
        """Drop all tables."""
        async with self._lock:
            self._tables.clear()

    @property
    def table_names(self) -> list[str]:
        """Names of tables that hold at least one row."""
        return [name for name, rows in self._tables.items() if rows]


__all__ = ["InMemoryDataStore"]
