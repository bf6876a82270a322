"""PostgreSQL driver backed by asyncpg."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import asyncpg

from ..connections import DatabaseConnection
from ..models import ColumnSchema, IndexSchema, Row, TableEntry, TableSchema

_DATABASES_QUERY = "SELECT datname FROM pg_database WHERE datistemplate = false"

_SCHEMAS_QUERY = """
    SELECT schema_name
    FROM information_schema.schemata
    WHERE schema_name NOT IN ('information_schema', 'pg_catalog', 'pg_toast')
"""

_TABLES_QUERY = """
    SELECT tablename AS name, 'table' AS type
    FROM pg_tables
    WHERE schemaname = 'public'
"""

_VIEWS_QUERY = """
    SELECT viewname AS name, 'view' AS type
    FROM pg_views
    WHERE schemaname = 'public'
"""

_COLUMNS_QUERY = """
    SELECT
        column_name,
        data_type,
        is_nullable,
        column_default,
        character_maximum_length,
        numeric_precision,
        numeric_scale
    FROM information_schema.columns
    WHERE table_name = $1 AND table_schema = 'public'
    ORDER BY ordinal_position
"""

_PRIMARY_KEY_QUERY = """
    SELECT a.attname
    FROM pg_index i
    JOIN pg_attribute a ON a.attrelid = i.indrelid AND a.attnum = ANY(i.indkey)
    WHERE i.indrelid = $1::regclass AND i.indisprimary
"""

_INDEXES_QUERY = """
    SELECT
        i.relname AS index_name,
        array_agg(a.attname ORDER BY c.ordinality) AS column_names,
        ix.indisunique AS is_unique,
        am.amname AS method
    FROM pg_class t
    JOIN pg_index ix ON t.oid = ix.indrelid
    JOIN pg_class i ON i.oid = ix.indexrelid
    JOIN pg_am am ON am.oid = i.relam
    JOIN unnest(ix.indkey) WITH ORDINALITY AS c(attnum, ordinality) ON true
    JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = c.attnum
    WHERE t.relname = $1 AND t.relkind = 'r'
    GROUP BY i.relname, ix.indisunique, am.amname
    ORDER BY i.relname
"""


@dataclass(frozen=True, slots=True)
class StatementOutcome:
    """Native outcome of one asyncpg statement."""

    records: list
    status: str
    returns_rows: bool


class PostgreSQLDriver(DatabaseConnection):
    """Talks to PostgreSQL through a single asyncpg connection."""

    engine_label = "PostgreSQL"

    async def _open(self) -> asyncpg.Connection:
        kwargs: dict[str, Any] = {
            "host": self._config.host or "localhost",
            "port": self._config.port or 5432,
            "user": self._config.username or None,
            "password": self._config.password or None,
            "database": self._config.database,
        }
        if self._config.ssl:
            kwargs["ssl"] = self._config.ssl
        return await asyncpg.connect(**kwargs)

    async def _close(self, handle: asyncpg.Connection) -> None:
        await handle.close()

    async def _execute(self, handle: asyncpg.Connection, sql: str, params: Sequence[Any] | None) -> StatementOutcome:
        statement = await handle.prepare(sql)
        records = await statement.fetch(*(params or ()))
        return StatementOutcome(
            records=list(records),
            status=statement.get_statusmsg() or "",
            returns_rows=bool(statement.get_attributes()),
        )

    def _translate(self, native: StatementOutcome) -> tuple[list[Row], int]:
        rows = [dict(record) for record in native.records]
        if native.returns_rows:
            return rows, len(rows)
        return rows, affected_rows(native.status)

    async def get_databases(self) -> list[str]:
        return [str(row["datname"]) for row in await self._catalog(_DATABASES_QUERY)]

    async def get_schemas(self) -> list[str]:
        return [str(row["schema_name"]) for row in await self._catalog(_SCHEMAS_QUERY)]

    async def get_tables(self) -> list[TableEntry]:
        return [TableEntry(name=str(row["name"]), type=str(row["type"])) for row in await self._catalog(_TABLES_QUERY)]

    async def get_views(self) -> list[TableEntry]:
        return [TableEntry(name=str(row["name"]), type=str(row["type"])) for row in await self._catalog(_VIEWS_QUERY)]

    async def get_table_schema(self, table_name: str) -> TableSchema:
        column_rows = await self._catalog(_COLUMNS_QUERY, (table_name,))
        pk_rows = await self._catalog(_PRIMARY_KEY_QUERY, (table_name,))
        primary_keys = {str(row["attname"]) for row in pk_rows}
        columns = tuple(_column_from_row(row, primary_keys) for row in column_rows)
        indexes = await self.get_table_indexes(table_name)
        return TableSchema(name=table_name, columns=columns, foreign_keys=(), indexes=tuple(indexes))

    async def get_table_indexes(self, table_name: str) -> list[IndexSchema]:
        rows = await self._catalog(_INDEXES_QUERY, (table_name,))
        return [
            IndexSchema(
                name=str(row["index_name"]),
                columns=tuple(str(column) for column in row["column_names"]),
                unique=bool(row["is_unique"]),
                type=_index_type(row.get("method")),
            )
            for row in rows
        ]


def format_column_type(row: Row) -> str:
    """Rebuild the length/precision suffix information_schema reports separately."""

    data_type = str(row["data_type"])
    length = row.get("character_maximum_length")
    precision = row.get("numeric_precision")
    scale = row.get("numeric_scale")
    if length:
        return f"{data_type}({length})"
    if precision and scale:
        return f"{data_type}({precision},{scale})"
    if precision:
        return f"{data_type}({precision})"
    return data_type


def affected_rows(status: str) -> int:
    """Pull the row count out of a command tag such as ``UPDATE 3``."""

    parts = status.split()
    if parts and parts[-1].isdigit():
        return int(parts[-1])
    return 0


def _index_type(method: Any) -> str:
    if method and str(method).lower() == "hash":
        return "HASH"
    return "BTREE"


def _column_from_row(row: Row, primary_keys: set[str]) -> ColumnSchema:
    name = str(row["column_name"])
    default = row.get("column_default")
    return ColumnSchema(
        name=name,
        type=format_column_type(row),
        nullable=row.get("is_nullable") == "YES",
        default_value=None if default is None else str(default),
        is_primary_key=name in primary_keys,
        is_foreign_key=False,
        is_unique=False,
        auto_increment=default is not None and "nextval" in str(default),
    )


__all__ = ["PostgreSQLDriver", "StatementOutcome", "affected_rows", "format_column_type"]
