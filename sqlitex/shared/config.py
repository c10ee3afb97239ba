"""Configuration loading utilities for sqlitex."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from . import paths
from .exceptions import ConfigurationError

ROW_SHAPES = ("list", "map")


@dataclass(frozen=True, slots=True)
class DatabaseSettings:
    """Connection-related configuration."""

    target: str
    read_only: bool
    busy_timeout_ms: int
    statement_cache_size: int


@dataclass(frozen=True, slots=True)
class QuerySettings:
    """Defaults applied to query calls."""

    into: str  # "list" or "map"


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Serialized-access server configuration."""

    call_timeout: float | None  # seconds; None waits forever


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Top-level application configuration."""

    source_path: Path
    database: DatabaseSettings
    query: QuerySettings
    server: ServerSettings

    def with_database_target(self, new_target: str | Path) -> AppConfig:
        """Return a copy with an updated database target."""
        new_db = replace(self.database, target=paths.resolve_target(new_target))
        return replace(self, database=new_db)


def _default_config() -> dict[str, Any]:
    return {
        "database": {
            "target": paths.MEMORY_TARGET,
            "read_only": False,
            "busy_timeout_ms": 5000,
            "statement_cache_size": 0,
        },
        "query": {"into": "list"},
        "server": {"call_timeout": None},
    }


ENV_OVERRIDE_SPEC: dict[str, tuple[str, type]] = {
    "database.target": (paths.DATABASE_ENV, str),
    "database.read_only": ("SQLITEX_READ_ONLY", bool),
    "database.busy_timeout_ms": ("SQLITEX_BUSY_TIMEOUT_MS", int),
    "database.statement_cache_size": ("SQLITEX_STATEMENT_CACHE_SIZE", int),
    "query.into": ("SQLITEX_INTO", str),
    "server.call_timeout": ("SQLITEX_CALL_TIMEOUT", float),
}


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from defaults, YAML file, and env overrides."""
    env = dict(os.environ if env is None else env)
    resolved_config_path = _resolve_config_path(config_path, env)
    file_data = _load_yaml(resolved_config_path)
    merged: dict[str, Any] = _deep_merge(_default_config(), file_data)
    merged = _apply_env_overrides(merged, env)
    return _build_config(merged, resolved_config_path)


def _resolve_config_path(config_path: str | Path | None, env: Mapping[str, str]) -> Path:
    if config_path:
        return paths.resolve_path(config_path)
    return paths.default_config_path(env=env)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Config file at {path} is not valid YAML: {exc}") from exc
        if not isinstance(data, MutableMapping):
            raise ConfigurationError(f"Config file at {path} must define a mapping root object.")
        return dict(data)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    config_copy = _deep_merge(config, {})
    for dotted_key, (env_key, expected_type) in ENV_OVERRIDE_SPEC.items():
        if env_key not in env:
            continue
        raw_value = env[env_key]
        try:
            value = _coerce_env_value(raw_value, expected_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Environment override {env_key} has invalid value '{raw_value}': {exc}"
            ) from exc
        _assign_nested(config_copy, dotted_key.split("."), value)
    return config_copy


def _coerce_env_value(raw: str, expected_type: type) -> Any:
    cleaned = raw.strip()
    if expected_type is bool:
        lowered = cleaned.lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
        raise ValueError("expected boolean (true/false)")
    if expected_type is int:
        return int(cleaned)
    if expected_type is float:
        # An empty value or "none" clears optional numeric settings.
        if cleaned.lower() in {"", "none", "null"}:
            return None
        return float(cleaned)
    return cleaned


def _assign_nested(target: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    current = target
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], MutableMapping):
            current[key] = {}
        current = current[key]  # type: ignore[assignment]
    current[keys[-1]] = value


def _optional_seconds(value: Any) -> float | None:
    if value is None:
        return None
    seconds = float(value)
    if seconds < 0:
        raise ValueError("call_timeout must not be negative")
    return seconds


def _build_config(data: Mapping[str, Any], source_path: Path) -> AppConfig:
    try:
        db_cfg = data["database"]
        database = DatabaseSettings(
            target=paths.resolve_target(str(db_cfg["target"])),
            read_only=bool(db_cfg["read_only"]),
            busy_timeout_ms=int(db_cfg["busy_timeout_ms"]),
            statement_cache_size=int(db_cfg["statement_cache_size"]),
        )
        into = str(data["query"]["into"]).lower()
        if into not in ROW_SHAPES:
            raise ValueError(f"query.into must be one of {', '.join(ROW_SHAPES)}, got '{into}'")
        server = ServerSettings(call_timeout=_optional_seconds(data["server"]["call_timeout"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration structure: {exc}") from exc

    return AppConfig(
        source_path=source_path,
        database=database,
        query=QuerySettings(into=into),
        server=server,
    )
