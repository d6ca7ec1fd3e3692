"""
Data store protocol for subsystem storage access.

Every subsystem keeps its own tables. tenantsync only needs three
capabilities from them: a bounded select for snapshots, and single-row
read/write by table and id. Table names are resolved from
(subsystem, data type) pairs by tenantsync.stores.tables before they reach
a store.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tenantsync.types import Record


@runtime_checkable
class DataStore(Protocol):
    """
    Protocol for row-level access to subsystem tables.

    Implementations:
    - InMemoryDataStore: dictionaries, for tests and development
    - PostgreSQLDataStore: SQLAlchemy async connection or engine
    """

    async def select_rows(
        self,
        table: str,
        *,
        limit: int,
        tenant_id: str | None = None,
    ) -> list[Record]:
        """
        Select up to `limit` rows from a table.

        Args:
            table: Physical table name
            limit: Maximum number of rows returned
            tenant_id: Restrict rows to one tenant (optional)

        Returns:
            List of row dictionaries
        """
        ...

    async def get_row(self, table: str, row_id: str) -> Record | None:
        """
        Read one row by id.

        Returns:
            The row, or None if it does not exist
        """
        ...

    async def write_row(self, table: str, row_id: str, data: Record) -> None:
        """
        Insert or replace one row by id.

        The stored row is `data` with its id column set to `row_id`.
        """
        ...


__all__ = ["DataStore"]
