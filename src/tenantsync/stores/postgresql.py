"""
PostgreSQL data store backed by SQLAlchemy async core.

Table and column names cannot be bound as query parameters, so they are
checked against a strict identifier pattern before being interpolated.
Values are always bound. Dict and list values are stored as JSON text;
columns named in ``json_columns`` are decoded back when read.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from tenantsync.exceptions import StoreError, ValidationError
from tenantsync.observability import ATTR_TABLE, Tracer, create_tracer
from tenantsync.types import Record

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValidationError(f"Invalid SQL identifier: {name!r}", field="identifier")
    return name


def _encode(value: Any) -> Any:
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


class PostgreSQLDataStore:
    """
    PostgreSQL implementation of the DataStore protocol.

    Accepts either an AsyncEngine (a connection or transaction is opened per
    call) or an AsyncConnection (used as is; the caller owns the transaction).

    Example:
        >>> engine = create_async_engine("postgresql+asyncpg://localhost/app")
        >>> store = PostgreSQLDataStore(engine)
        >>> rows = await store.select_rows("module_activations", limit=100)
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        *,
        id_column: str = "id",
        tenant_column: str = "tenant_id",
        json_columns: frozenset[str] = frozenset(),
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn
        self._id_column = _check_identifier(id_column)
        self._tenant_column = _check_identifier(tenant_column)
        self._json_columns = json_columns

    @asynccontextmanager
    async def _connect(self, transactional: bool) -> AsyncIterator[AsyncConnection]:
        if isinstance(self.conn, AsyncEngine):
            if transactional:
                async with self.conn.begin() as connection:
                    yield connection
            else:
                async with self.conn.connect() as connection:
                    yield connection
        else:
            yield self.conn

    def _decode(self, mapping: Any) -> Record:
        row = dict(mapping)
        for column in self._json_columns:
            value = row.get(column)
            if isinstance(value, str):
                row[column] = json.loads(value)
        return row

    async def select_rows(
        self,
        table: str,
        *,
        limit: int,
        tenant_id: str | None = None,
    ) -> list[Record]:
        table = _check_identifier(table)
        with self._tracer.span("tenantsync.store.select_rows", {ATTR_TABLE: table}):
            params: dict[str, Any] = {"limit": limit}
            where = ""
            if tenant_id is not None:
                where = f" WHERE {self._tenant_column} = :tenant_id"
                params["tenant_id"] = tenant_id
            query = text(f"SELECT * FROM {table}{where} LIMIT :limit")  # nosec B608

            try:
                async with self._connect(transactional=False) as conn:
                    result = await conn.execute(query, params)
                    return [self._decode(row._mapping) for row in result.fetchall()]
            except SQLAlchemyError as e:
                raise StoreError(table, "select", str(e)) from e

    async def get_row(self, table: str, row_id: str) -> Record | None:
        table = _check_identifier(table)
        with self._tracer.span("tenantsync.store.get_row", {ATTR_TABLE: table}):
            query = text(
                f"SELECT * FROM {table} WHERE {self._id_column} = :row_id"  # nosec B608
            )
            try:
                async with self._connect(transactional=False) as conn:
                    result = await conn.execute(query, {"row_id": row_id})
                    row = result.fetchone()
                    return self._decode(row._mapping) if row is not None else None
            except SQLAlchemyError as e:
                raise StoreError(table, "read", str(e)) from e

    async def write_row(self, table: str, row_id: str, data: Record) -> None:
        table = _check_identifier(table)
        with self._tracer.span("tenantsync.store.write_row", {ATTR_TABLE: table}):
            values = {k: v for k, v in data.items() if k != self._id_column}
            columns = [_check_identifier(c) for c in values]

            params: dict[str, Any] = {"row_id": row_id}
            for i, column in enumerate(columns):
                params[f"v{i}"] = _encode(values[column])

            column_sql = ", ".join([self._id_column, *columns])
            value_sql = ", ".join([":row_id", *(f":v{i}" for i in range(len(columns)))])
            if columns:
                update_sql = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns)
                conflict_sql = f"ON CONFLICT ({self._id_column}) DO UPDATE SET {update_sql}"
            else:
                conflict_sql = f"ON CONFLICT ({self._id_column}) DO NOTHING"

            query = text(
                f"INSERT INTO {table} ({column_sql}) VALUES ({value_sql}) {conflict_sql}"  # nosec B608
            )
            try:
                async with self._connect(transactional=True) as conn:
                    await conn.execute(query, params)
            except SQLAlchemyError as e:
                raise StoreError(table, "write", str(e)) from e

            logger.debug("Upserted row %s into %s", row_id, table)


__all__ = ["PostgreSQLDataStore"]
