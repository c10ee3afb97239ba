from __future__ import annotations

from pathlib import Path

import pytest

from sqlitex.shared import paths


def test_get_config_dir_uses_env_override(tmp_path: Path) -> None:
    env = {paths.CONFIG_DIR_ENV: str(tmp_path / "config")}
    result = paths.get_config_dir(create=True, env=env)
    assert result == tmp_path / "config"
    assert result.exists()


def test_default_config_path_uses_override(tmp_path: Path) -> None:
    cfg_path = tmp_path / "nested" / "custom.yaml"
    env = {paths.CONFIG_FILE_ENV: str(cfg_path)}
    resolved = paths.default_config_path(create_parents=True, env=env)
    assert resolved == cfg_path
    assert resolved.parent.exists()


def test_resolve_path_expands_user(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    result = paths.resolve_path("~/file.txt")
    assert result == fake_home / "file.txt"


@pytest.mark.parametrize("target", [":memory:", "file::memory:?cache=shared", "file:/golf?vfs=memdb"])
def test_resolve_target_leaves_sqlite_targets_alone(target: str) -> None:
    assert paths.is_special_target(target)
    assert paths.resolve_target(target) == target


def test_resolve_target_expands_plain_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    assert paths.resolve_target("~/golf.db") == str(tmp_path / "golf.db")
    assert paths.resolve_target(tmp_path / "x.db") == str(tmp_path / "x.db")
