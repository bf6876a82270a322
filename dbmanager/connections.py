"""Connection contract shared by every engine driver.

Drivers subclass :class:`DatabaseConnection` and only provide the
engine-specific pieces: opening/closing the native handle, executing one
statement, translating the native result and reading the catalog. Lifecycle
bookkeeping, the connect timeout and the advisory pool counters live here.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, ClassVar, Iterable, Protocol, Sequence, TypeVar, runtime_checkable

from .models import (
    ConnectionStatus,
    DatabaseConfig,
    DatabaseType,
    IndexSchema,
    QueryResult,
    Row,
    TableEntry,
    TableSchema,
)

LOG = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_MS = 10_000
NOT_CONNECTED_MESSAGE = "Not connected to database"

T = TypeVar("T")


class DatabaseError(RuntimeError):
    """Base class for errors raised by the connection layer."""


class ConnectionFailedError(DatabaseError):
    """Raised when a driver cannot establish (or verify) its connection."""


class ConnectionTimeoutError(DatabaseError):
    """Raised when the connect attempt loses the race against its timer."""


class PoolExhaustedError(DatabaseError):
    """Raised when the advisory pool has no capacity left."""


class NotConnectedError(DatabaseError):
    """Raised when catalog access is attempted without a live connection."""


class UnsupportedDatabaseError(DatabaseError, ValueError):
    """Raised when no driver is registered for a database type."""


@dataclass(frozen=True, slots=True)
class PoolOptions:
    min_size: int = 0
    max_size: int = 0


@dataclass(frozen=True, slots=True)
class PoolLease:
    """Receipt for a slot counted against the advisory pool."""

    id: str


@runtime_checkable
class DatabaseDriver(Protocol):
    """Capability set every engine driver provides."""

    async def connect(self, timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS) -> None: ...

    async def disconnect(self) -> None: ...

    async def query(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult: ...

    def is_connected(self) -> bool: ...

    def get_connection_status(self) -> ConnectionStatus: ...

    def get_connection_info(self) -> DatabaseConfig: ...

    async def get_tables(self) -> list[TableEntry]: ...

    async def get_views(self) -> list[TableEntry]: ...

    async def get_table_schema(self, table_name: str) -> TableSchema: ...


async def run_with_timeout(
    operation: Awaitable[T],
    timeout_ms: int,
    *,
    on_late_result: Callable[[T], Awaitable[None]] | None = None,
) -> T:
    """Race ``operation`` against a timer; the first to settle wins.

    The timer is cancelled as soon as the operation settles. When the timer
    wins, the operation is cancelled and, should it still produce a value,
    ``on_late_result`` receives it so the caller can release it.
    """

    task = asyncio.ensure_future(operation)
    try:
        done, _ = await asyncio.wait({task}, timeout=max(timeout_ms, 0) / 1000)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if task in done:
        return task.result()
    task.cancel()
    task.add_done_callback(lambda finished: _discard_late(finished, on_late_result))
    raise ConnectionTimeoutError("Connection timeout")


_late_cleanups: set[asyncio.Future[Any]] = set()


def _discard_late(task: asyncio.Future[Any], cleanup: Callable[[Any], Awaitable[None]] | None) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOG.debug("Abandoned operation failed after timeout", extra={"error": str(exc)})
        return
    if cleanup is None:
        return
    pending = asyncio.ensure_future(cleanup(task.result()))
    _late_cleanups.add(pending)
    pending.add_done_callback(_late_cleanups.discard)


def elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class DatabaseConnection(ABC):
    """Abstract driver base implementing the shared lifecycle bookkeeping.

    The pool methods are capacity accounting only: ``get_pool_connection``
    counts a slot and hands back a receipt, never a reusable native
    connection. Each instance owns one native handle and expects a single
    logical caller at a time.
    """

    engine_label: ClassVar[str] = "Database"

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config.copy()
        self._handle: Any | None = None
        self._connected = False
        self._last_connected: datetime | None = None
        self._pool_size = 0
        self._max_pool_size = 0
        self._active_connections = 0

    # -- lifecycle -----------------------------------------------------

    async def connect(self, timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS) -> None:
        """Open the native handle, failing with an engine-prefixed error."""

        if self._handle is not None:
            await self.disconnect()
        try:
            handle = await run_with_timeout(self._open(), timeout_ms, on_late_result=self._close)
        except Exception as exc:
            self._set_connected(False)
            LOG.warning(
                "Connection failed",
                extra={"engine": self.engine_label, "connection_id": self._config.id, "error": str(exc)},
            )
            raise ConnectionFailedError(f"{self.engine_label} connection failed: {exc}") from exc
        self._handle = handle
        self._set_connected(True)
        LOG.info(
            "Connected",
            extra={"engine": self.engine_label, "connection_id": self._config.id, "database": self._config.database},
        )

    async def disconnect(self) -> None:
        """Close the native handle if any; safe to call repeatedly."""

        handle, self._handle = self._handle, None
        try:
            if handle is not None:
                await self._close(handle)
                LOG.info("Disconnected", extra={"engine": self.engine_label, "connection_id": self._config.id})
        finally:
            self._set_connected(False)

    async def query(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        """Run one statement; failures are returned, never raised."""

        if self._handle is None:
            return QueryResult.failure(NOT_CONNECTED_MESSAGE)
        started = time.perf_counter()
        try:
            native = await self._execute(self._handle, sql, params)
            rows, row_count = self._translate(native)
        except Exception as exc:
            LOG.debug("Query failed", extra={"engine": self.engine_label, "error": str(exc)})
            return QueryResult.failure(str(exc), elapsed_ms(started))
        return QueryResult(rows=tuple(rows), row_count=row_count, execution_time=elapsed_ms(started))

    # -- accessors -----------------------------------------------------

    def is_connected(self) -> bool:
        return self._connected

    def get_connection_id(self) -> str:
        return self._config.id

    def get_type(self) -> DatabaseType:
        return DatabaseType(self._config.type)

    def get_connection_info(self) -> DatabaseConfig:
        return self._config.copy()

    def get_connection_status(self) -> ConnectionStatus:
        return ConnectionStatus(connected=self._connected, last_connected=self._last_connected)

    # -- advisory pool -------------------------------------------------

    def create_pool(self, options: PoolOptions) -> None:
        self._pool_size = options.min_size
        self._max_pool_size = options.max_size

    def get_pool_connection(self) -> PoolLease:
        if self._active_connections >= self._max_pool_size:
            raise PoolExhaustedError("Pool exhausted")
        self._active_connections += 1
        return PoolLease(id=f"pool-connection-{self._active_connections}")

    def release_pool_connection(self) -> None:
        self._active_connections = max(self._active_connections - 1, 0)

    def destroy_pool(self) -> None:
        self._pool_size = 0
        self._max_pool_size = 0
        self._active_connections = 0

    def get_pool_size(self) -> int:
        return self._pool_size

    def get_max_pool_size(self) -> int:
        return self._max_pool_size

    def get_active_connections_count(self) -> int:
        return self._active_connections

    # -- catalog -------------------------------------------------------

    @abstractmethod
    async def get_tables(self) -> list[TableEntry]:
        """List tables (and views where the engine reports them)."""

    @abstractmethod
    async def get_table_schema(self, table_name: str) -> TableSchema:
        """Describe one table from the engine catalog."""

    async def get_views(self) -> list[TableEntry]:
        return [entry for entry in await self.get_tables() if entry.type == "view"]

    async def get_databases(self) -> list[str]:
        return [self._config.database]

    async def get_schemas(self) -> list[str]:
        return []

    async def _catalog(self, sql: str, params: Sequence[Any] | None = None) -> tuple[Row, ...]:
        """Run a catalog query; catalog failures degrade to no rows."""

        result = await self.query(sql, params)
        if result.error:
            LOG.warning(
                "Catalog query failed",
                extra={"engine": self.engine_label, "connection_id": self._config.id, "error": result.error},
            )
        return result.rows

    # -- engine hooks --------------------------------------------------

    @abstractmethod
    async def _open(self) -> Any:
        """Create and return the native handle."""

    @abstractmethod
    async def _close(self, handle: Any) -> None:
        """Release a native handle."""

    @abstractmethod
    async def _execute(self, handle: Any, sql: str, params: Sequence[Any] | None) -> Any:
        """Execute one statement and return the engine's native result."""

    @abstractmethod
    def _translate(self, native: Any) -> tuple[Iterable[Row], int]:
        """Turn a native result into ``(rows, row_count)``."""

    def _set_connected(self, connected: bool) -> None:
        self._connected = connected
        if connected:
            self._last_connected = datetime.now(tz=timezone.utc)


def fold_indexes(rows: Iterable[Row], *, name_key: str, column_key: str, unique: Callable[[Row], bool]) -> list[IndexSchema]:
    """Fold one-row-per-indexed-column catalog output into index records.

    Index and column order follow the order rows arrive in.
    """

    folded: dict[str, tuple[bool, list[str]]] = {}
    for row in rows:
        name = str(row[name_key])
        if name not in folded:
            folded[name] = (unique(row), [])
        folded[name][1].append(str(row[column_key]))
    return [
        IndexSchema(name=name, columns=tuple(columns), unique=is_unique)
        for name, (is_unique, columns) in folded.items()
    ]


__all__ = [
    "ConnectionFailedError",
    "ConnectionTimeoutError",
    "DEFAULT_CONNECT_TIMEOUT_MS",
    "DatabaseConnection",
    "DatabaseDriver",
    "DatabaseError",
    "NOT_CONNECTED_MESSAGE",
    "NotConnectedError",
    "PoolExhaustedError",
    "PoolLease",
    "PoolOptions",
    "UnsupportedDatabaseError",
    "elapsed_ms",
    "fold_indexes",
    "run_with_timeout",
]
