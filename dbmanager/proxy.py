"""Engine-agnostic facade that owns one driver instance."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from .connections import (
    DEFAULT_CONNECT_TIMEOUT_MS,
    NOT_CONNECTED_MESSAGE,
    ConnectionFailedError,
    DatabaseDriver,
    NotConnectedError,
)
from .drivers.factory import DriverFactory, normalize_type
from .models import ConnectionStatus, DatabaseConfig, DatabaseType, Row, TableEntry, TableSchema

LOG = logging.getLogger(__name__)

SMOKE_TEST_QUERY = "SELECT 1 AS test"

_LISTING_QUERIES: dict[str, str] = {
    DatabaseType.MYSQL.value: "SHOW FULL TABLES",
    DatabaseType.POSTGRESQL.value: """
        SELECT tablename AS name, 'table' AS type FROM pg_tables WHERE schemaname = 'public'
        UNION ALL
        SELECT viewname AS name, 'view' AS type FROM pg_views WHERE schemaname = 'public'
        ORDER BY name
    """,
}

_NAME_KEYS = ("name", "table_name", "TABLE_NAME", "tablename")
_TYPE_KEYS = ("type", "Table_type", "table_type", "TABLE_TYPE")

_ENGINE_LABELS = {
    DatabaseType.MYSQL.value: "MySQL",
    DatabaseType.POSTGRESQL.value: "PostgreSQL",
    DatabaseType.SQLITE.value: "SQLite",
}


@dataclass(frozen=True, slots=True)
class ProxyQueryResult:
    """Query outcome as seen by UI callers."""

    success: bool
    rows: tuple[Row, ...] = ()
    row_count: int = 0
    execution_time: int = 0
    error: str | None = None


class DatabaseProxy:
    """Selects a driver from ``config.type`` and exposes one surface over it.

    ``connect`` is two-phase: the driver opens its native handle, then a
    round-trip ``SELECT 1`` must succeed before the proxy reports itself
    connected.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        *,
        connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS,
        driver_factory: Callable[[DatabaseConfig], DatabaseDriver] | None = None,
    ) -> None:
        self._config = config.copy()
        self._engine = normalize_type(config.type)
        self._connect_timeout_ms = connect_timeout_ms
        self._driver_factory = driver_factory or DriverFactory.create
        self._driver: DatabaseDriver | None = None
        self._connected = False

    @property
    def engine(self) -> str:
        """Normalized registry key of the configured database type."""

        return self._engine

    @property
    def driver(self) -> DatabaseDriver | None:
        """Driver currently owned by the proxy, if connected."""

        return self._driver

    async def connect(self) -> bool:
        await self.disconnect()
        driver = self._driver_factory(self._config)
        try:
            await driver.connect(self._connect_timeout_ms)
        except Exception:
            self._driver = None
            self._connected = False
            raise
        self._driver = driver
        self._connected = True

        try:
            smoke = await driver.query(SMOKE_TEST_QUERY)
            error = smoke.error
        except Exception as exc:
            error = str(exc)
        if error is not None:
            self._connected = False
            await self.disconnect()
            raise ConnectionFailedError(f"{self._label()} connection check failed: {error}")
        LOG.info("Proxy connected", extra={"connection_id": self._config.id, "engine": self._engine})
        return True

    async def query(self, sql: str, params: Sequence[Any] | None = None) -> ProxyQueryResult:
        try:
            driver = self._require_driver()
            result = await driver.query(sql, params)
        except Exception as exc:
            return ProxyQueryResult(success=False, error=str(exc))
        if result.error is not None:
            return ProxyQueryResult(success=False, execution_time=result.execution_time, error=result.error)
        return ProxyQueryResult(
            success=True,
            rows=result.rows,
            row_count=result.row_count,
            execution_time=result.execution_time,
        )

    async def get_tables(self) -> list[TableEntry]:
        driver = self._require_driver()
        listing = _LISTING_QUERIES.get(self._engine)
        if listing is None:
            return await driver.get_tables()
        result = await self.query(listing)
        if not result.success:
            LOG.warning("Table listing failed", extra={"connection_id": self._config.id, "error": result.error})
            return []
        return [table_entry(row) for row in result.rows]

    async def get_views(self) -> list[TableEntry]:
        return await self._require_driver().get_views()

    async def get_table_schema(self, table_name: str) -> TableSchema:
        return await self._require_driver().get_table_schema(table_name)

    async def disconnect(self) -> None:
        driver = self._driver
        try:
            if driver is not None:
                await driver.disconnect()
        except Exception:
            LOG.exception("Disconnect failed", extra={"connection_id": self._config.id})
        finally:
            self._driver = None
            self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def get_connection_status(self) -> ConnectionStatus:
        if self._driver is None:
            return ConnectionStatus(connected=False)
        status = self._driver.get_connection_status()
        return ConnectionStatus(connected=self._connected, last_connected=status.last_connected)

    def get_connection_info(self) -> DatabaseConfig:
        return self._config.copy()

    def _require_driver(self) -> DatabaseDriver:
        if self._driver is None or not self._connected:
            raise NotConnectedError(NOT_CONNECTED_MESSAGE)
        return self._driver

    def _label(self) -> str:
        return _ENGINE_LABELS.get(self._engine, self._engine)


def table_entry(row: Row) -> TableEntry:
    """Map a listing row onto ``TableEntry`` whatever its column names are."""

    name = _pick(row, _NAME_KEYS)
    if name is None:
        name = next((value for key, value in row.items() if key.startswith("Tables_in_")), None)
    if name is None:
        name = next(iter(row.values()), "")
    raw_type = str(_pick(row, _TYPE_KEYS) or "table")
    return TableEntry(name=str(name), type="view" if "view" in raw_type.lower() else "table")


def _pick(row: Row, keys: Sequence[str]) -> Any:
    for key in keys:
        if key in row:
            return row[key]
    return None


__all__ = ["DatabaseProxy", "ProxyQueryResult", "SMOKE_TEST_QUERY", "table_entry"]
