"""SQLite drivers backed by aiosqlite."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Sequence, Union

import aiosqlite

from ..connections import NOT_CONNECTED_MESSAGE, DatabaseConnection, DatabaseError, NotConnectedError
from ..models import ColumnSchema, IndexSchema, Row, TableEntry, TableSchema

ROW_LEADERS = ("select", "with", "pragma", "values", "explain")

_ROW_LEADER_RE = re.compile(r"\s*(?:" + "|".join(ROW_LEADERS) + r")\b", re.IGNORECASE)

_TABLES_QUERY = """
    SELECT name, type
    FROM sqlite_master
    WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%'
    ORDER BY name
"""

_VIEWS_QUERY = """
    SELECT name, type
    FROM sqlite_master
    WHERE type = 'view'
    ORDER BY name
"""


@dataclass(frozen=True, slots=True)
class RunInfo:
    """Native outcome of a statement run for its side effects."""

    changes: int
    last_insert_rowid: int | None = None


SQLiteResult = Union[RunInfo, list]


class SQLiteDriver(DatabaseConnection):
    """Opens (or creates) a SQLite database file."""

    engine_label = "SQLite"

    def _path(self) -> str:
        return self._config.database

    async def _open(self) -> aiosqlite.Connection:
        handle = await aiosqlite.connect(self._path())
        handle.row_factory = aiosqlite.Row
        return handle

    async def _close(self, handle: aiosqlite.Connection) -> None:
        await handle.close()

    async def _execute(self, handle: aiosqlite.Connection, sql: str, params: Sequence[Any] | None) -> SQLiteResult:
        cursor = await handle.execute(sql, tuple(params or ()))
        try:
            if returns_rows(sql):
                return [dict(row) for row in await cursor.fetchall()]
            await handle.commit()
            return RunInfo(changes=max(cursor.rowcount, 0), last_insert_rowid=cursor.lastrowid)
        finally:
            await cursor.close()

    def _translate(self, native: SQLiteResult) -> tuple[list[Row], int]:
        if isinstance(native, RunInfo):
            return [], native.changes
        return native, len(native)

    async def get_tables(self) -> list[TableEntry]:
        return [TableEntry(name=str(row["name"]), type=str(row["type"])) for row in await self._catalog(_TABLES_QUERY)]

    async def get_views(self) -> list[TableEntry]:
        return [TableEntry(name=str(row["name"]), type=str(row["type"])) for row in await self._catalog(_VIEWS_QUERY)]

    async def get_table_schema(self, table_name: str) -> TableSchema:
        rows = await self._catalog(f"PRAGMA table_info({quote_identifier(table_name)})")
        columns = tuple(_column_from_row(row) for row in rows)
        indexes = await self.get_table_indexes(table_name)
        return TableSchema(name=table_name, columns=columns, foreign_keys=(), indexes=tuple(indexes))

    async def get_table_indexes(self, table_name: str) -> list[IndexSchema]:
        indexes: list[IndexSchema] = []
        for info in await self._catalog(f"PRAGMA index_list({quote_identifier(table_name)})"):
            name = str(info["name"])
            detail = await self._catalog(f"PRAGMA index_info({quote_identifier(name)})")
            indexes.append(
                IndexSchema(
                    name=name,
                    columns=tuple(str(row["name"]) for row in detail),
                    unique=info["unique"] == 1,
                )
            )
        return indexes


class SQLiteMemoryDriver(SQLiteDriver):
    """In-process SQLite database that lives only as long as the connection."""

    def _path(self) -> str:
        return ":memory:"

    async def seed_test_database(self) -> None:
        """Create sample ``users``/``products`` tables (development aid)."""

        if not self.is_connected():
            raise NotConnectedError(NOT_CONNECTED_MESSAGE)
        for statement in _SEED_STATEMENTS:
            result = await self.query(statement)
            if result.error:
                raise DatabaseError(f"Seeding failed: {result.error}")


_SEED_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT UNIQUE,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    INSERT OR IGNORE INTO users (id, name, email) VALUES
        (1, 'Alice', 'alice@example.com'),
        (2, 'Bob', 'bob@example.com'),
        (3, 'Charlie', 'charlie@example.com')
    """,
    """
    CREATE TABLE IF NOT EXISTS products (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        price REAL,
        category TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    INSERT OR IGNORE INTO products (id, name, price, category) VALUES
        (1, 'Laptop', 999.99, 'Electronics'),
        (2, 'Book', 19.99, 'Education'),
        (3, 'Coffee', 4.50, 'Food')
    """,
)


def returns_rows(statement: str) -> bool:
    return _ROW_LEADER_RE.match(statement) is not None


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _column_from_row(row: Row) -> ColumnSchema:
    declared = str(row["type"] or "")
    is_primary_key = int(row["pk"]) > 0
    default = row["dflt_value"]
    return ColumnSchema(
        name=str(row["name"]),
        type=declared,
        nullable=int(row["notnull"]) == 0,
        default_value=None if default is None else str(default),
        is_primary_key=is_primary_key,
        is_foreign_key=False,
        is_unique=False,
        auto_increment=is_primary_key and "integer" in declared.lower(),
    )


__all__ = ["RunInfo", "SQLiteDriver", "SQLiteMemoryDriver", "quote_identifier", "returns_rows"]
