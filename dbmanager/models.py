"""Value types shared by every driver, the proxy and the connection service."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

Row = Mapping[str, Any]


class DatabaseType(str, Enum):
    """Engines the drivers know how to talk to."""

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"


class ReferentialAction(str, Enum):
    """ON UPDATE / ON DELETE behaviour of a foreign key."""

    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection parameters handed to a driver; drivers keep their own copy."""

    id: str
    name: str
    type: DatabaseType
    database: str
    host: str = ""
    port: int = 0
    username: str = ""
    password: str = field(default="", repr=False)
    ssl: bool | Mapping[str, Any] | None = None

    def copy(self) -> DatabaseConfig:
        return replace(self)


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    connected: bool
    last_connected: datetime | None = None


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Outcome of a single statement.

    ``row_count`` is ``len(rows)`` for reads and the affected-row count for
    writes (``rows`` is then empty). Failures are reported through ``error``
    with no rows and a zero count.
    """

    rows: tuple[Row, ...] = ()
    row_count: int = 0
    execution_time: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str, execution_time: int = 0) -> QueryResult:
        return cls(rows=(), row_count=0, execution_time=execution_time, error=message)


@dataclass(frozen=True, slots=True)
class ColumnSchema:
    name: str
    type: str
    nullable: bool
    default_value: str | None = None
    is_primary_key: bool = False
    is_foreign_key: bool = False
    is_unique: bool = False
    auto_increment: bool = False


@dataclass(frozen=True, slots=True)
class IndexSchema:
    name: str
    columns: tuple[str, ...]
    unique: bool
    type: str = "BTREE"


@dataclass(frozen=True, slots=True)
class ForeignKeySchema:
    column_name: str
    referenced_table: str
    referenced_column: str
    on_update: ReferentialAction = ReferentialAction.NO_ACTION
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION


@dataclass(frozen=True, slots=True)
class TableSchema:
    """Normalized description of one table, built fresh per introspection."""

    name: str
    columns: tuple[ColumnSchema, ...]
    foreign_keys: tuple[ForeignKeySchema, ...] = ()
    indexes: tuple[IndexSchema, ...] = ()

    @property
    def primary_keys(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns if column.is_primary_key)


@dataclass(frozen=True, slots=True)
class TableEntry:
    """A row of a table/view listing."""

    name: str
    type: str = "table"


__all__ = [
    "ColumnSchema",
    "ConnectionStatus",
    "DatabaseConfig",
    "DatabaseType",
    "ForeignKeySchema",
    "IndexSchema",
    "QueryResult",
    "ReferentialAction",
    "Row",
    "TableEntry",
    "TableSchema",
]
