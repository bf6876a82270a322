"""Uniform connection and schema layer over MySQL, PostgreSQL and SQLite."""

from __future__ import annotations

__version__ = "0.1.0"

from .connections import (
    ConnectionFailedError,
    ConnectionTimeoutError,
    DatabaseConnection,
    DatabaseDriver,
    DatabaseError,
    NotConnectedError,
    PoolExhaustedError,
    PoolLease,
    PoolOptions,
    UnsupportedDatabaseError,
)
from .factory import DatabaseProxyFactory
from .models import (
    ColumnSchema,
    ConnectionStatus,
    DatabaseConfig,
    DatabaseType,
    ForeignKeySchema,
    IndexSchema,
    QueryResult,
    ReferentialAction,
    TableEntry,
    TableSchema,
)
from .proxy import DatabaseProxy, ProxyQueryResult

__all__ = [
    "ColumnSchema",
    "ConnectionFailedError",
    "ConnectionStatus",
    "ConnectionTimeoutError",
    "DatabaseConfig",
    "DatabaseConnection",
    "DatabaseDriver",
    "DatabaseError",
    "DatabaseProxy",
    "DatabaseProxyFactory",
    "DatabaseType",
    "ForeignKeySchema",
    "IndexSchema",
    "NotConnectedError",
    "PoolExhaustedError",
    "PoolLease",
    "PoolOptions",
    "ProxyQueryResult",
    "QueryResult",
    "ReferentialAction",
    "TableEntry",
    "TableSchema",
    "UnsupportedDatabaseError",
    "__version__",
]
