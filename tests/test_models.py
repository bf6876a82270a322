"""Tests for the shared value types."""

from __future__ import annotations

from dbmanager.models import ColumnSchema, DatabaseConfig, DatabaseType, QueryResult, TableSchema


def test_primary_keys_follow_column_flags() -> None:
    schema = TableSchema(
        name="user_projects",
        columns=(
            ColumnSchema(name="user_id", type="INTEGER", nullable=False, is_primary_key=True),
            ColumnSchema(name="role", type="TEXT", nullable=True),
            ColumnSchema(name="project_id", type="INTEGER", nullable=False, is_primary_key=True),
        ),
    )

    assert schema.primary_keys == ("user_id", "project_id")
    assert schema.foreign_keys == ()


def test_failure_result_has_no_rows() -> None:
    result = QueryResult.failure("relation does not exist", execution_time=4)

    assert result.ok is False
    assert result.rows == ()
    assert result.row_count == 0
    assert result.execution_time == 4


def test_config_copy_is_equal_but_distinct() -> None:
    config = DatabaseConfig(id="1", name="Local", type=DatabaseType.MYSQL, database="test_db", port=3307)

    copied = config.copy()

    assert copied == config
    assert copied is not config


def test_database_type_compares_with_plain_strings() -> None:
    assert DatabaseType("postgresql") is DatabaseType.POSTGRESQL
    assert DatabaseType.SQLITE == "sqlite"
