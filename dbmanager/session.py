"""Connection service wiring profiles, the active proxy and listeners."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from .config import AppConfig, ConnectionProfileConfig
from .connections import NOT_CONNECTED_MESSAGE, DatabaseError, NotConnectedError
from .drivers.factory import MEMORY_DATABASE
from .factory import DatabaseProxyFactory
from .models import DatabaseType, TableEntry, TableSchema
from .proxy import DatabaseProxy, ProxyQueryResult

LOG = logging.getLogger(__name__)

ServiceListener = Callable[["ServiceState"], None]
ProxyBuilder = Callable[[ConnectionProfileConfig, str], DatabaseProxy]


@dataclass(frozen=True, slots=True)
class ServiceState:
    """Current connection snapshot published to listeners."""

    profile: ConnectionProfileConfig | None
    connected: bool
    label: str | None = None
    connected_at: datetime | None = None
    using_fallback: bool = False
    last_error: str | None = None


class ConnectionService:
    """Keeps at most one proxy open and falls back to in-memory SQLite on failure."""

    def __init__(self, *, config: AppConfig, proxy_builder: ProxyBuilder | None = None) -> None:
        self._config = config
        self._proxy_builder = proxy_builder or self._default_builder
        self._proxy: DatabaseProxy | None = None
        self._listeners: set[ServiceListener] = set()
        self._state = ServiceState(profile=None, connected=False)

    @property
    def profiles(self) -> tuple[ConnectionProfileConfig, ...]:
        """Profiles available in the current config."""

        return tuple(self._config.profiles)

    @property
    def state(self) -> ServiceState:
        """Current service state."""

        return self._state

    @property
    def proxy(self) -> DatabaseProxy | None:
        return self._proxy

    async def connect(self, name: str, password: str = "") -> ServiceState:
        """Activate the requested profile, replacing any open connection."""

        profile = self._config.profile(name)
        await self._close_proxy()
        try:
            await self._open(profile, password)
        except DatabaseError as exc:
            if profile.type is DatabaseType.SQLITE or not self._config.fallback_to_sqlite:
                self._update_state(ServiceState(profile=profile, connected=False, last_error=str(exc)))
                raise
            LOG.warning(
                "Connection failed, falling back to SQLite",
                extra={"profile": profile.name, "engine": profile.type.value, "error": str(exc)},
            )
            return await self._fallback(profile, str(exc))
        self._update_state(
            ServiceState(
                profile=profile,
                connected=True,
                label=connection_label(profile),
                connected_at=datetime.now(tz=timezone.utc),
            )
        )
        return self._state

    async def execute(self, sql: str, params: Sequence[Any] | None = None) -> ProxyQueryResult:
        if self._proxy is None or not self._proxy.is_connected():
            return ProxyQueryResult(success=False, error=NOT_CONNECTED_MESSAGE)
        result = await self._proxy.query(sql, params)
        if not result.success:
            LOG.debug("Query failed", extra={"profile": self._profile_name(), "error": result.error})
        return result

    async def get_tables(self) -> list[TableEntry]:
        if self._proxy is None or not self._proxy.is_connected():
            return []
        return await self._proxy.get_tables()

    async def get_table_schema(self, table_name: str) -> TableSchema:
        if self._proxy is None or not self._proxy.is_connected():
            raise NotConnectedError(NOT_CONNECTED_MESSAGE)
        return await self._proxy.get_table_schema(table_name)

    async def disconnect(self) -> None:
        await self._close_proxy()
        self._update_state(ServiceState(profile=None, connected=False))

    async def cleanup(self) -> None:
        await self.disconnect()
        self._listeners.clear()

    def subscribe(self, listener: ServiceListener) -> Callable[[], None]:
        """Subscribe to state updates; returns an unsubscribe handle."""

        self._listeners.add(listener)
        listener(self._state)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    async def _open(self, profile: ConnectionProfileConfig, password: str) -> None:
        proxy = self._proxy_builder(profile, password)
        await proxy.connect()
        self._proxy = proxy

    async def _fallback(self, failed: ConnectionProfileConfig, error: str) -> ServiceState:
        fallback = ConnectionProfileConfig(
            name=f"{failed.name} (SQLite fallback)",
            type=DatabaseType.SQLITE,
            database=MEMORY_DATABASE,
        )
        try:
            await self._open(fallback, "")
        except DatabaseError as exc:
            LOG.error("SQLite fallback also failed", extra={"profile": failed.name, "error": str(exc)})
            self._update_state(ServiceState(profile=failed, connected=False, last_error=error))
            raise
        self._update_state(
            ServiceState(
                profile=fallback,
                connected=True,
                label=connection_label(fallback),
                connected_at=datetime.now(tz=timezone.utc),
                using_fallback=True,
                last_error=error,
            )
        )
        return self._state

    async def _close_proxy(self) -> None:
        proxy, self._proxy = self._proxy, None
        if proxy is not None:
            await proxy.disconnect()

    def _default_builder(self, profile: ConnectionProfileConfig, password: str) -> DatabaseProxy:
        return DatabaseProxyFactory.create_from_profile(
            profile,
            password=password,
            connect_timeout_ms=self._config.connect_timeout_ms,
        )

    def _profile_name(self) -> str | None:
        return self._state.profile.name if self._state.profile else None

    def _update_state(self, state: ServiceState) -> None:
        self._state = state
        for listener in tuple(self._listeners):
            listener(state)


def connection_label(profile: ConnectionProfileConfig) -> str:
    if profile.type is DatabaseType.MYSQL:
        return f"MySQL ({profile.host}:{profile.port})"
    if profile.type is DatabaseType.POSTGRESQL:
        return f"PostgreSQL ({profile.host}:{profile.port})"
    return f"SQLite ({profile.database or MEMORY_DATABASE})"


__all__ = ["ConnectionService", "ServiceState", "connection_label"]
