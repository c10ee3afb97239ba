from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path

import pytest
from click.testing import CliRunner

from sqlitex.query.main import cli, parse_bind_value
from sqlitex.shared import paths


def test_cli_query_json(golf_db_path: str) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli,
        [
            "--db",
            golf_db_path,
            "query",
            "SELECT id, name FROM players WHERE name LIKE ?1 AND type == ?2",
            "-b",
            "s%",
            "-b",
            "Team",
            "--format",
            "json",
        ],
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [{"id": 25, "name": "Slothstronauts"}]


def test_cli_query_csv_decodes_declared_types(golf_db_path: str) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["--db", golf_db_path, "query", "SELECT id, created_at FROM players WHERE id = ?", "-b", "1", "--format", "csv"],
    )

    assert result.exit_code == 0, result.output
    lines = result.stdout.strip().splitlines()
    assert lines == ["id,created_at", "1,2012-10-14 05:46:28.318107"]


def test_cli_exec_then_query(tmp_path: Path) -> None:
    db_path = str(tmp_path / "cli.db")
    runner = CliRunner()

    created = runner.invoke(
        cli,
        ["--db", db_path, "exec", "CREATE TABLE t (a INTEGER, ok BOOLEAN); INSERT INTO t VALUES (1, 1)"],
    )
    assert created.exit_code == 0, created.output
    assert "Statements executed." in created.output

    queried = runner.invoke(cli, ["--db", db_path, "query", "SELECT a, ok FROM t", "--format", "json"])
    assert queried.exit_code == 0, queried.output
    assert json.loads(queried.stdout) == [{"a": 1, "ok": True}]


def test_cli_uses_database_from_environment(golf_db_path: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(paths.DATABASE_ENV, golf_db_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["query", "SELECT COUNT(*) AS n FROM players", "--format", "csv"])

    assert result.exit_code == 0, result.output
    assert result.stdout.strip().splitlines() == ["n", "4"]


def test_cli_reports_sql_errors(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--db", str(tmp_path / "err.db"), "query", "CREATE WHAT"])

    assert result.exit_code == 1
    assert "syntax error" in result.output


def test_cli_rejects_empty_sql(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--db", str(tmp_path / "empty.db"), "exec", "   "])

    assert result.exit_code == 1
    assert "must not be empty" in result.output


def test_cli_reports_bad_config(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("query:\n  into: tuple\n", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(config_path), "query", "SELECT 1"])

    assert result.exit_code == 1
    assert "query.into" in result.output


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1", 1),
        ("2.5", 2.5),
        ("true", True),
        ("null", None),
        ("", ""),
        ("s%", "s%"),
        ("2012-10-14", date(2012, 10, 14)),
        ("2012-10-14 05:46:28", datetime(2012, 10, 14, 5, 46, 28)),
        ("[1, 2]", "[1, 2]"),
        ("{a: 1}", "{a: 1}"),
    ],
)
def test_parse_bind_value(raw: str, expected: object) -> None:
    assert parse_bind_value(raw) == expected
