"""App configuration loading helpers."""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Mapping

import tomllib

from pydantic import BaseModel, Field

from .connections import DEFAULT_CONNECT_TIMEOUT_MS
from .models import DatabaseConfig, DatabaseType

CONFIG_FILE = Path.home() / ".config" / "dbmanager" / "config.toml"

_PROFILE_STRING_KEYS = ("name", "host", "database", "username", "id")


class ConnectionProfileConfig(BaseModel):
    """Connection profile stored in config.toml (never holds a password)."""

    name: str
    type: DatabaseType = DatabaseType.SQLITE
    id: str | None = None
    host: str = ""
    port: int = 0
    database: str = ""
    username: str = ""
    ssl: bool = False

    def profile_id(self) -> str:
        return self.id or str(uuid.uuid5(uuid.NAMESPACE_URL, f"dbmanager:{self.name}"))

    def to_database_config(self, password: str = "") -> DatabaseConfig:
        """Build the driver-facing config, adding the password supplied at connect time."""

        return DatabaseConfig(
            id=self.profile_id(),
            name=self.name,
            type=self.type,
            host=self.host,
            port=self.port,
            username=self.username,
            password=password,
            database=self.database,
            ssl=self.ssl or None,
        )


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    profiles: list[ConnectionProfileConfig] = Field(default_factory=lambda: list(default_profiles()))
    active_profile: str | None = None
    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS
    fallback_to_sqlite: bool = True

    def profile(self, name: str) -> ConnectionProfileConfig:
        for profile in self.profiles:
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' not found.")

    def with_active_profile(self, name: str) -> AppConfig:
        """Return a copy with the active profile updated."""

        return self.model_copy(update={"active_profile": name})

    def with_profile(self, profile: ConnectionProfileConfig) -> AppConfig:
        """Return a copy with ``profile`` added, replacing any profile of the same name."""

        profiles = [existing for existing in self.profiles if existing.name != profile.name]
        profiles.append(profile)
        return self.model_copy(update={"profiles": profiles})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()

    profiles_data = data.get("profiles")
    profiles: list[ConnectionProfileConfig] | None = None
    if isinstance(profiles_data, list):
        profiles = [
            ConnectionProfileConfig(**profile)
            for profile in profiles_data  # type: ignore[list-item]
            if isinstance(profile, dict)
        ]

    return AppConfig(
        profiles=profiles if profiles is not None else list(default_profiles()),
        active_profile=data.get("active_profile"),
        connect_timeout_ms=data.get(
            "connect_timeout_ms", AppConfig.model_fields["connect_timeout_ms"].default
        ),
        fallback_to_sqlite=data.get(
            "fallback_to_sqlite", AppConfig.model_fields["fallback_to_sqlite"].default
        ),
    )


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [
        f"connect_timeout_ms = {config.connect_timeout_ms}",
        f"fallback_to_sqlite = {str(config.fallback_to_sqlite).lower()}",
    ]
    if config.active_profile:
        lines.append(f"active_profile = {_toml_string(config.active_profile)}")
    if config.profiles:
        lines.append("")
        for profile in config.profiles:
            lines.append("[[profiles]]")
            lines.append(f"name = {_toml_string(profile.name)}")
            lines.append(f'type = "{profile.type.value}"')
            if profile.id:
                lines.append(f"id = {_toml_string(profile.id)}")
            if profile.host:
                lines.append(f"host = {_toml_string(profile.host)}")
            if profile.port:
                lines.append(f"port = {profile.port}")
            if profile.database:
                lines.append(f"database = {_toml_string(profile.database)}")
            if profile.username:
                lines.append(f"username = {_toml_string(profile.username)}")
            if profile.ssl:
                lines.append("ssl = true")
            lines.append("")
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def _toml_string(value: str) -> str:
    """Render ``value`` as a TOML basic string."""

    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    escaped = escaped.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
    return f'"{escaped}"'


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if isinstance(raw, dict):
        active_profile = raw.get("active_profile")
        if isinstance(active_profile, str):
            data["active_profile"] = active_profile
        timeout = raw.get("connect_timeout_ms")
        if isinstance(timeout, int) and timeout > 0:
            data["connect_timeout_ms"] = timeout
        fallback = raw.get("fallback_to_sqlite")
        if isinstance(fallback, bool):
            data["fallback_to_sqlite"] = fallback
        profiles = raw.get("profiles")
        if isinstance(profiles, list):
            parsed_profiles: list[dict[str, object]] = []
            for profile in profiles:
                if not isinstance(profile, dict):
                    continue
                parsed: dict[str, object] = {}
                for key in _PROFILE_STRING_KEYS:
                    value = profile.get(key)
                    if isinstance(value, str):
                        parsed[key] = value
                db_type = profile.get("type")
                if isinstance(db_type, str) and db_type.lower() in {member.value for member in DatabaseType}:
                    parsed["type"] = DatabaseType(db_type.lower())
                port = profile.get("port")
                if isinstance(port, int):
                    parsed["port"] = port
                ssl = profile.get("ssl")
                if isinstance(ssl, bool):
                    parsed["ssl"] = ssl
                if parsed.get("name"):
                    parsed_profiles.append(parsed)
            if parsed_profiles:
                data["profiles"] = parsed_profiles
    return data


def default_profiles(environ: Mapping[str, str] | None = None) -> tuple[ConnectionProfileConfig, ...]:
    """Development profiles shown before config is customized.

    Environment variables override the built-in development defaults.
    """

    env = os.environ if environ is None else environ
    return (
        ConnectionProfileConfig(
            name="Local MySQL",
            type=DatabaseType.MYSQL,
            host=env.get("MYSQL_HOST", "localhost"),
            port=_int(env.get("MYSQL_PORT"), 3307),
            database=env.get("MYSQL_DATABASE", "test_db"),
            username=env.get("MYSQL_USER", "dev_user"),
        ),
        ConnectionProfileConfig(
            name="Local PostgreSQL",
            type=DatabaseType.POSTGRESQL,
            host=env.get("POSTGRES_HOST", "localhost"),
            port=_int(env.get("POSTGRES_PORT"), 5433),
            database=env.get("POSTGRES_DB", "test_db"),
            username=env.get("POSTGRES_USER", "dev_user"),
        ),
        ConnectionProfileConfig(
            name="Scratch SQLite",
            type=DatabaseType.SQLITE,
            database=env.get("SQLITE_DATABASE", ":memory:"),
        ),
    )


def _int(value: str | None, default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


__all__ = [
    "AppConfig",
    "CONFIG_FILE",
    "ConnectionProfileConfig",
    "default_profiles",
    "load_config",
    "save_config",
]
