"""
Subsystem storage access.

Provides the DataStore protocol, the (subsystem, data type) to table
resolution, and the in-memory and PostgreSQL implementations.
"""

from tenantsync.stores.in_memory import InMemoryDataStore
from tenantsync.stores.interface import DataStore
from tenantsync.stores.postgresql import PostgreSQLDataStore
from tenantsync.stores.tables import TABLE_MAP, resolve_table

__all__ = [
    "DataStore",
    "InMemoryDataStore",
    "PostgreSQLDataStore",
    "TABLE_MAP",
    "resolve_table",
]
