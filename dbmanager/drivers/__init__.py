"""Engine drivers implementing the connection contract."""

from .factory import DriverFactory
from .mysql import MySQLDriver
from .postgresql import PostgreSQLDriver
from .sqlite import SQLiteDriver, SQLiteMemoryDriver

__all__ = [
    "DriverFactory",
    "MySQLDriver",
    "PostgreSQLDriver",
    "SQLiteDriver",
    "SQLiteMemoryDriver",
]
