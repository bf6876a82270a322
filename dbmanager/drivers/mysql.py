"""MySQL driver backed by aiomysql."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence, Union

import aiomysql

from ..connections import DatabaseConnection, fold_indexes
from ..models import ColumnSchema, Row, TableEntry, TableSchema

_COLUMNS_QUERY = (
    "SELECT * FROM INFORMATION_SCHEMA.COLUMNS "
    "WHERE TABLE_NAME = %s AND TABLE_SCHEMA = %s "
    "ORDER BY ORDINAL_POSITION"
)


@dataclass(frozen=True, slots=True)
class ResultSetHeader:
    """Native outcome of a statement that produced no result set."""

    affected_rows: int
    insert_id: int | None = None


MySQLResult = Union[ResultSetHeader, list]


class MySQLDriver(DatabaseConnection):
    """Talks to MySQL through a single aiomysql connection."""

    engine_label = "MySQL"

    async def _open(self) -> aiomysql.Connection:
        kwargs: dict[str, Any] = {
            "host": self._config.host or "localhost",
            "port": self._config.port or 3306,
            "user": self._config.username,
            "password": self._config.password,
            "db": self._config.database,
            "autocommit": True,
        }
        if self._config.ssl:
            kwargs["ssl"] = self._config.ssl
        return await aiomysql.connect(**kwargs)

    async def _close(self, handle: aiomysql.Connection) -> None:
        await handle.ensure_closed()

    async def _execute(self, handle: aiomysql.Connection, sql: str, params: Sequence[Any] | None) -> MySQLResult:
        async with handle.cursor(aiomysql.DictCursor) as cursor:
            await cursor.execute(sql, tuple(params) if params else None)
            if cursor.description is None:
                return ResultSetHeader(affected_rows=cursor.rowcount, insert_id=cursor.lastrowid)
            return list(await cursor.fetchall())

    def _translate(self, native: MySQLResult) -> tuple[list[Row], int]:
        if isinstance(native, ResultSetHeader):
            return [], native.affected_rows
        return native, len(native)

    async def get_databases(self) -> list[str]:
        rows = await self._catalog("SHOW DATABASES")
        return [str(_first_value(row, "Database")) for row in rows]

    async def get_tables(self) -> list[TableEntry]:
        rows = await self._catalog("SHOW TABLES")
        key = f"Tables_in_{self._config.database}"
        return [TableEntry(name=str(_first_value(row, key)), type="table") for row in rows]

    async def get_table_schema(self, table_name: str) -> TableSchema:
        rows = await self._catalog(_COLUMNS_QUERY, (table_name, self._config.database))
        columns = tuple(_column_from_row(row) for row in rows)
        index_rows = await self._catalog(f"SHOW INDEX FROM {quote_identifier(table_name)}")
        indexes = fold_indexes(
            index_rows,
            name_key="Key_name",
            column_key="Column_name",
            unique=lambda row: int(row["Non_unique"]) == 0,
        )
        # TODO: read foreign keys from INFORMATION_SCHEMA.KEY_COLUMN_USAGE joined with REFERENTIAL_CONSTRAINTS.
        return TableSchema(name=table_name, columns=columns, foreign_keys=(), indexes=tuple(indexes))


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def _column_from_row(row: Row) -> ColumnSchema:
    key = row.get("COLUMN_KEY") or ""
    default = row.get("COLUMN_DEFAULT")
    return ColumnSchema(
        name=str(row["COLUMN_NAME"]),
        type=str(row["COLUMN_TYPE"]),
        nullable=row.get("IS_NULLABLE") == "YES",
        default_value=None if default is None else str(default),
        is_primary_key=key == "PRI",
        is_foreign_key=key == "MUL",
        is_unique=key == "UNI",
        auto_increment="auto_increment" in str(row.get("EXTRA") or ""),
    )


def _first_value(row: Row, key: str) -> Any:
    if key in row:
        return row[key]
    return next(iter(row.values()))


__all__ = ["MySQLDriver", "ResultSetHeader", "quote_identifier"]
