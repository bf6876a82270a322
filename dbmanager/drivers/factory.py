"""Driver registry used to pick a driver class for a configuration."""

from __future__ import annotations

from typing import Callable

from ..connections import DatabaseConnection, UnsupportedDatabaseError
from ..models import DatabaseConfig, DatabaseType
from .mysql import MySQLDriver
from .postgresql import PostgreSQLDriver
from .sqlite import SQLiteDriver, SQLiteMemoryDriver

MEMORY_DATABASE = ":memory:"

DriverBuilder = Callable[[DatabaseConfig], DatabaseConnection]


def _sqlite_builder(config: DatabaseConfig) -> DatabaseConnection:
    if not config.database or config.database == MEMORY_DATABASE:
        return SQLiteMemoryDriver(config)
    return SQLiteDriver(config)


class DriverFactory:
    """Maps database types onto driver constructors."""

    _builders: dict[str, DriverBuilder] = {
        DatabaseType.MYSQL.value: MySQLDriver,
        DatabaseType.POSTGRESQL.value: PostgreSQLDriver,
        DatabaseType.SQLITE.value: _sqlite_builder,
    }

    @classmethod
    def create(cls, config: DatabaseConfig) -> DatabaseConnection:
        key = normalize_type(config.type)
        builder = cls._builders.get(key)
        if builder is None:
            raise UnsupportedDatabaseError(
                f"Unsupported database type: {key}. Supported types: {', '.join(cls.get_supported_types())}"
            )
        return builder(config)

    @classmethod
    def register(cls, db_type: str, builder: DriverBuilder) -> None:
        cls._builders[normalize_type(db_type)] = builder

    @classmethod
    def get_supported_types(cls) -> list[str]:
        return list(cls._builders)

    @classmethod
    def is_supported(cls, db_type: str) -> bool:
        return normalize_type(db_type) in cls._builders


def normalize_type(db_type: str) -> str:
    """Registry key for a database type, folding case and the ``postgres`` alias."""

    value = db_type.value if isinstance(db_type, DatabaseType) else str(db_type)
    value = value.lower()
    return "postgresql" if value == "postgres" else value


__all__ = ["DriverBuilder", "DriverFactory", "MEMORY_DATABASE", "UnsupportedDatabaseError", "normalize_type"]
