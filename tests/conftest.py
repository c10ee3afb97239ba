"""Shared pytest fixtures.

Every fixture seeds the same ``players`` table so query, server and CLI tests
assert against one canonical dataset, either on disk (``tmp_path``) or in a
named in-memory database shared by every connection in the process.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path

import apsw
import pytest

from sqlitex.query import executor
from sqlitex.shared import paths
from sqlitex.shared.config import ENV_OVERRIDE_SPEC
from sqlitex.shared.database import close_connection, exec_sql, open_connection, shared_memory_uri

PLAYERS_DDL = """
CREATE TABLE players (
    id INTEGER PRIMARY KEY,
    name TEXT,
    created_at DATETIME,
    updated_at DATETIME,
    type TEXT
)
"""

PLAYERS = [
    (1, "Mikey", "2012-10-14 05:46:28.318107", "2013-09-06 22:29:36.610911", None),
    (2, "Julie", "2012-10-14 05:47:03.000000", "2013-09-06 22:31:00.000000", "Solo"),
    (25, "Slothstronauts", "2012-10-15 10:00:00", "2013-09-07 08:00:00", "Team"),
    (26, "Eagles", "2012-10-15 10:05:00", "2013-09-07 08:05:00", "Team"),
]


def seed_players(connection: apsw.Connection) -> None:
    exec_sql(connection, PLAYERS_DDL)
    for row in PLAYERS:
        executor.run_or_fail(connection, "INSERT INTO players VALUES (?, ?, ?, ?, ?)", row)


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the user's real ~/.sqlitex/config.yaml."""
    monkeypatch.setenv(paths.CONFIG_DIR_ENV, str(tmp_path / "sqlitex-config"))
    monkeypatch.delenv(paths.CONFIG_FILE_ENV, raising=False)
    for env_key, _ in ENV_OVERRIDE_SPEC.values():
        monkeypatch.delenv(env_key, raising=False)


@pytest.fixture()
def mikey() -> tuple[tuple[str, object], ...]:
    """The first player as a default-shaped row."""
    return (
        ("id", 1),
        ("name", "Mikey"),
        ("created_at", datetime(2012, 10, 14, 5, 46, 28, 318107)),
        ("updated_at", datetime(2013, 9, 6, 22, 29, 36, 610911)),
        ("type", None),
    )


@pytest.fixture()
def golf_db(tmp_path: Path) -> Iterator[apsw.Connection]:
    connection = open_connection(tmp_path / "golf.db")
    seed_players(connection)
    yield connection
    close_connection(connection)


@pytest.fixture()
def golf_db_path(tmp_path: Path) -> str:
    db_path = tmp_path / "golf-file.db"
    connection = open_connection(db_path)
    try:
        seed_players(connection)
    finally:
        close_connection(connection)
    return str(db_path)


@pytest.fixture()
def shared_golf_db() -> Iterator[str]:
    """URI of a seeded in-memory database; kept alive by a holder connection."""
    uri = shared_memory_uri(f"golf-{uuid.uuid4().hex}")
    holder = open_connection(uri)
    seed_players(holder)
    yield uri
    close_connection(holder)


@pytest.fixture()
def memory_db() -> Iterator[apsw.Connection]:
    connection = open_connection(paths.MEMORY_TARGET)
    yield connection
    close_connection(connection)
