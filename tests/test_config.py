"""Tests for AppConfig helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from dbmanager import config as config_module
from dbmanager.config import AppConfig, ConnectionProfileConfig, default_profiles, load_config, save_config
from dbmanager.models import DatabaseType


def test_load_config_returns_defaults_when_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.toml")

    result = load_config()

    assert result == AppConfig()
    assert [profile.name for profile in result.profiles] == ["Local MySQL", "Local PostgreSQL", "Scratch SQLite"]


def test_load_config_reads_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        """
active_profile = "Reporting"
connect_timeout_ms = 2500
fallback_to_sqlite = false

[[profiles]]
name = "Reporting"
type = "PostgreSQL"
host = "db.internal"
port = 5432
database = "reports"
username = "analyst"
ssl = true

[[profiles]]
name = "Broken"
type = "oracle"

[[profiles]]
type = "mysql"
"""
    )
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result.active_profile == "Reporting"
    assert result.connect_timeout_ms == 2500
    assert result.fallback_to_sqlite is False
    assert [profile.name for profile in result.profiles] == ["Reporting", "Broken"]
    reporting = result.profile("Reporting")
    assert reporting.type is DatabaseType.POSTGRESQL
    assert (reporting.host, reporting.port, reporting.database) == ("db.internal", 5432, "reports")
    assert reporting.ssl is True
    assert result.profile("Broken").type is DatabaseType.SQLITE


def test_load_config_handles_toml_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("active_profile = [unterminated")
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result == AppConfig()


def test_save_config_persists_values_without_passwords(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "nested" / "config.toml"
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    save_config(
        AppConfig(
            profiles=[
                ConnectionProfileConfig(
                    name="Local MySQL",
                    type=DatabaseType.MYSQL,
                    host="localhost",
                    port=3307,
                    database="test_db",
                    username="dev_user",
                )
            ],
            active_profile="Local MySQL",
            connect_timeout_ms=5000,
        )
    )

    content = config_path.read_text()
    assert 'active_profile = "Local MySQL"' in content
    assert "connect_timeout_ms = 5000" in content
    assert "fallback_to_sqlite = true" in content
    assert "[[profiles]]" in content
    assert 'type = "mysql"' in content
    assert "port = 3307" in content
    assert "password" not in content

    reloaded = load_config()
    assert reloaded.profile("Local MySQL").username == "dev_user"
    assert reloaded.connect_timeout_ms == 5000


def test_save_config_escapes_quotes_and_backslashes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.toml")
    name = 'Team "Core"'
    database = "C:\\data\\app.db"

    save_config(
        AppConfig(
            profiles=[ConnectionProfileConfig(name=name, type=DatabaseType.SQLITE, database=database)],
            active_profile=name,
        )
    )
    reloaded = load_config()

    assert [profile.name for profile in reloaded.profiles] == [name]
    assert reloaded.active_profile == name
    assert reloaded.profile(name).database == database


def test_profile_lookup_raises_for_unknown_name() -> None:
    with pytest.raises(ValueError, match="Profile 'missing' not found"):
        AppConfig().profile("missing")


def test_with_active_profile_updates_field() -> None:
    config = AppConfig()

    updated = config.with_active_profile("Scratch SQLite")

    assert updated.active_profile == "Scratch SQLite"
    assert config.active_profile is None


def test_with_profile_replaces_same_name() -> None:
    config = AppConfig(profiles=[ConnectionProfileConfig(name="Scratch", database=":memory:")])

    updated = config.with_profile(ConnectionProfileConfig(name="Scratch", database="/tmp/scratch.db"))

    assert len(updated.profiles) == 1
    assert updated.profile("Scratch").database == "/tmp/scratch.db"


def test_default_profiles_read_environment() -> None:
    mysql, postgres, sqlite = default_profiles(
        {"MYSQL_HOST": "mysql.local", "MYSQL_PORT": "3306", "POSTGRES_PORT": "not-a-port", "SQLITE_DATABASE": "app.db"}
    )

    assert (mysql.host, mysql.port) == ("mysql.local", 3306)
    assert postgres.port == 5433
    assert postgres.username == "dev_user"
    assert sqlite.database == "app.db"


def test_to_database_config_adds_password_and_stable_id() -> None:
    profile = ConnectionProfileConfig(name="Local MySQL", type=DatabaseType.MYSQL, host="localhost", port=3307)

    first = profile.to_database_config("dev_password")
    second = profile.to_database_config()

    assert first.password == "dev_password"
    assert second.password == ""
    assert first.id == second.id
    assert first.ssl is None
