"""Convenience constructors for configured proxies."""

from __future__ import annotations

import uuid

from .config import ConnectionProfileConfig
from .connections import DEFAULT_CONNECT_TIMEOUT_MS
from .drivers.factory import MEMORY_DATABASE
from .models import DatabaseConfig, DatabaseType
from .proxy import DatabaseProxy

DEV_DATABASE = "test_db"
DEV_USER = "dev_user"
DEV_PASSWORD = "dev_password"


class DatabaseProxyFactory:
    """Builds :class:`DatabaseProxy` instances without exposing driver classes."""

    @staticmethod
    def create(config: DatabaseConfig, *, connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS) -> DatabaseProxy:
        return DatabaseProxy(config, connect_timeout_ms=connect_timeout_ms)

    @staticmethod
    def create_from_profile(
        profile: ConnectionProfileConfig,
        *,
        password: str = "",
        connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS,
    ) -> DatabaseProxy:
        return DatabaseProxy(profile.to_database_config(password), connect_timeout_ms=connect_timeout_ms)

    @staticmethod
    def create_mysql(host: str = "localhost", port: int = 3307) -> DatabaseProxy:
        return DatabaseProxyFactory.create(
            _dev_config(DatabaseType.MYSQL, f"MySQL ({host}:{port})", host=host, port=port)
        )

    @staticmethod
    def create_postgresql(host: str = "localhost", port: int = 5433) -> DatabaseProxy:
        return DatabaseProxyFactory.create(
            _dev_config(DatabaseType.POSTGRESQL, f"PostgreSQL ({host}:{port})", host=host, port=port)
        )

    @staticmethod
    def create_sqlite(database: str = MEMORY_DATABASE) -> DatabaseProxy:
        return DatabaseProxyFactory.create(
            DatabaseConfig(
                id=_new_id(),
                name=f"SQLite ({database})",
                type=DatabaseType.SQLITE,
                database=database,
            )
        )


def _dev_config(db_type: DatabaseType, name: str, *, host: str, port: int) -> DatabaseConfig:
    return DatabaseConfig(
        id=_new_id(),
        name=name,
        type=db_type,
        host=host,
        port=port,
        database=DEV_DATABASE,
        username=DEV_USER,
        password=DEV_PASSWORD,
    )


def _new_id() -> str:
    return f"conn_{uuid.uuid4().hex[:12]}"


__all__ = ["DatabaseProxyFactory"]
