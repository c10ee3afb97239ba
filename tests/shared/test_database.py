from __future__ import annotations

from pathlib import Path

import pytest

from sqlitex.query import executor
from sqlitex.query.types import Failure
from sqlitex.shared import paths
from sqlitex.shared.config import load_config
from sqlitex.shared.database import (
    close_connection,
    connect,
    create_table,
    exec_sql,
    open_connection,
    quote_identifier,
    shared_memory_uri,
    with_db,
)
from sqlitex.shared.exceptions import EngineError


def _temp_config(tmp_path: Path):
    env = {paths.DATABASE_ENV: str(tmp_path / "nested" / "test.db")}
    return load_config(env=env)


def test_connect_creates_parent_directories(tmp_path: Path) -> None:
    config = _temp_config(tmp_path)
    with connect(config) as connection:
        exec_sql(connection, "CREATE TABLE t (a INTEGER)")
    assert (tmp_path / "nested" / "test.db").exists()


def test_connect_closes_connection_on_exit(tmp_path: Path) -> None:
    with connect(tmp_path / "scoped.db") as connection:
        pass
    with pytest.raises(EngineError):
        exec_sql(connection, "SELECT 1")


def test_read_only_connection_rejects_writes(tmp_path: Path) -> None:
    db_path = tmp_path / "ro.db"
    with connect(db_path) as connection:
        exec_sql(connection, "CREATE TABLE t (a INTEGER)")
    with connect(db_path, read_only=True) as connection:
        with pytest.raises(EngineError) as excinfo:
            exec_sql(connection, "INSERT INTO t VALUES (1)")
    assert excinfo.value.code == "SQLITE_READONLY"


def test_read_only_missing_database_cannot_open(tmp_path: Path) -> None:
    with pytest.raises(EngineError) as excinfo:
        open_connection(tmp_path / "absent.db", read_only=True)
    assert excinfo.value.code == "SQLITE_CANTOPEN"
    assert not (tmp_path / "absent.db").exists()


def test_close_connection_twice_is_harmless(tmp_path: Path) -> None:
    connection = open_connection(tmp_path / "twice.db")
    close_connection(connection)
    close_connection(connection)


def test_shared_memory_database_is_visible_across_connections() -> None:
    uri = shared_memory_uri("shared-visibility")
    holder = open_connection(uri)
    try:
        exec_sql(holder, "CREATE TABLE t (a INTEGER); INSERT INTO t VALUES (7)")
        assert with_db(uri, lambda db: executor.run(db, "SELECT a FROM t")) == [(("a", 7),)]
    finally:
        close_connection(holder)
    # Once the last connection closes the database is gone.
    assert isinstance(with_db(uri, lambda db: executor.run(db, "SELECT a FROM t")), Failure)


@pytest.mark.parametrize("name", ["", "a/b"])
def test_shared_memory_uri_rejects_bad_names(name: str) -> None:
    with pytest.raises(ValueError):
        shared_memory_uri(name)


def test_exec_sql_reports_engine_errors(memory_db) -> None:
    with pytest.raises(EngineError) as excinfo:
        exec_sql(memory_db, "CREATE TABLE t (a INTEGER); CREATE TABLE t (a INTEGER)")
    assert excinfo.value.code == "SQLITE_ERROR"
    assert "already exists" in excinfo.value.message


def test_create_table_temporary_with_quoting(memory_db) -> None:
    create_table(
        memory_db,
        'odd "name"',
        {"id": ("integer", ["primary_key", "autoincrement"]), "email": ("text", ["unique", "not_null"])},
        temporary=True,
    )
    rows = executor.run(memory_db, "SELECT sql FROM sqlite_temp_master WHERE type = 'table'", into="map")
    assert rows == [
        {
            "sql": 'CREATE TABLE "odd ""name""" ("id" integer PRIMARY KEY AUTOINCREMENT, '
            '"email" text UNIQUE NOT NULL)'
        }
    ]


def test_create_table_requires_columns(memory_db) -> None:
    with pytest.raises(ValueError, match="at least one column"):
        create_table(memory_db, "empty", {})


def test_quote_identifier_escapes_quotes() -> None:
    assert quote_identifier('a"b') == '"a""b"'
