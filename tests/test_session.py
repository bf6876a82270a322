"""Tests for the connection service wiring."""

from __future__ import annotations

import pytest

from dbmanager.config import AppConfig, ConnectionProfileConfig
from dbmanager.connections import ConnectionFailedError, NotConnectedError
from dbmanager.factory import DatabaseProxyFactory
from dbmanager.models import DatabaseType, TableEntry
from dbmanager.proxy import DatabaseProxy
from dbmanager.session import ConnectionService, ServiceState, connection_label


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _UnreachableProxy(DatabaseProxy):
    async def connect(self) -> bool:
        raise ConnectionFailedError("MySQL connection failed: connect ECONNREFUSED 127.0.0.1:3307")


def _builder(profile: ConnectionProfileConfig, password: str) -> DatabaseProxy:
    if profile.type is DatabaseType.SQLITE:
        return DatabaseProxyFactory.create_from_profile(profile, password=password)
    return _UnreachableProxy(profile.to_database_config(password))


def _profiles() -> list[ConnectionProfileConfig]:
    return [
        ConnectionProfileConfig(name="Local MySQL", type=DatabaseType.MYSQL, host="localhost", port=3307),
        ConnectionProfileConfig(name="Scratch", type=DatabaseType.SQLITE, database=":memory:"),
    ]


@pytest.mark.anyio
async def test_connects_sqlite_profile_and_notifies_listeners() -> None:
    service = ConnectionService(config=AppConfig(profiles=_profiles()), proxy_builder=_builder)
    seen: list[ServiceState] = []

    unsubscribe = service.subscribe(seen.append)
    state = await service.connect("Scratch")

    assert seen[0].connected is False
    assert seen[-1] is state
    assert state.connected is True
    assert state.label == "SQLite (:memory:)"
    assert state.connected_at is not None
    assert state.using_fallback is False

    created = await service.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY)")
    assert created.success is True
    assert await service.get_tables() == [TableEntry(name="notes", type="table")]
    assert (await service.get_table_schema("notes")).primary_keys == ("id",)

    unsubscribe()
    await service.disconnect()
    assert seen[-1].connected is True
    assert service.state.connected is False


@pytest.mark.anyio
async def test_falls_back_to_sqlite_when_server_is_unreachable() -> None:
    service = ConnectionService(config=AppConfig(profiles=_profiles()), proxy_builder=_builder)

    state = await service.connect("Local MySQL", password="dev_password")

    assert state.connected is True
    assert state.using_fallback is True
    assert state.profile is not None and state.profile.name == "Local MySQL (SQLite fallback)"
    assert state.last_error and "ECONNREFUSED" in state.last_error
    result = await service.execute("SELECT 1 AS one")
    assert result.success is True
    assert result.rows == ({"one": 1},)
    await service.cleanup()


@pytest.mark.anyio
async def test_fallback_can_be_disabled() -> None:
    config = AppConfig(profiles=_profiles(), fallback_to_sqlite=False)
    service = ConnectionService(config=config, proxy_builder=_builder)

    with pytest.raises(ConnectionFailedError):
        await service.connect("Local MySQL")

    assert service.state.connected is False
    assert service.state.last_error and "ECONNREFUSED" in service.state.last_error
    assert service.proxy is None


@pytest.mark.anyio
async def test_connect_errors_on_missing_profile() -> None:
    service = ConnectionService(config=AppConfig(profiles=_profiles()), proxy_builder=_builder)

    with pytest.raises(ValueError, match="Profile 'unknown' not found"):
        await service.connect("unknown")


@pytest.mark.anyio
async def test_disconnected_service_degrades_gracefully() -> None:
    service = ConnectionService(config=AppConfig(profiles=_profiles()), proxy_builder=_builder)

    result = await service.execute("SELECT 1")

    assert result.success is False
    assert result.error == "Not connected to database"
    assert await service.get_tables() == []
    with pytest.raises(NotConnectedError):
        await service.get_table_schema("users")


@pytest.mark.anyio
async def test_switching_profiles_closes_previous_proxy() -> None:
    service = ConnectionService(config=AppConfig(profiles=_profiles()), proxy_builder=_builder)

    await service.connect("Scratch")
    first = service.proxy
    await service.connect("Scratch")

    assert first is not None and first.is_connected() is False
    assert service.proxy is not first
    await service.cleanup()
    assert service.proxy is None


def test_connection_label_per_engine() -> None:
    mysql, sqlite = _profiles()

    assert connection_label(mysql) == "MySQL (localhost:3307)"
    assert connection_label(sqlite) == "SQLite (:memory:)"
    assert connection_label(ConnectionProfileConfig(name="Empty")) == "SQLite (:memory:)"
