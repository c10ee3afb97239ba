"""Connection helpers: open/close, scoped connections, scripts and DDL."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Mapping, Sequence, TypeVar, Union

import apsw

from . import paths
from .config import AppConfig, DatabaseSettings
from .exceptions import EngineError

T = TypeVar("T")

DEFAULT_BUSY_TIMEOUT_MS = 5000

ColumnSpec = Union[str, tuple[str, Sequence[str]]]

_CONSTRAINTS = {
    "primary_key": "PRIMARY KEY",
    "not_null": "NOT NULL",
    "unique": "UNIQUE",
    "autoincrement": "AUTOINCREMENT",
}


def engine_error_from(exc: apsw.Error) -> EngineError:
    """Translate an apsw exception into an :class:`EngineError`."""
    result = getattr(exc, "result", -1)
    code = None
    if isinstance(result, int) and result >= 0:
        code = apsw.mapping_result_codes.get(result)
    else:
        result = None
    name = type(exc).__name__
    message = str(exc)
    # Older apsw releases prefix the message with the class name.
    if message.startswith(f"{name}: "):
        message = message[len(name) + 2 :]
    return EngineError(code or name, message, result=result)


def shared_memory_uri(name: str) -> str:
    """Return a URI naming an in-memory database shared by every connection in the process.

    The database lives as long as at least one connection to it stays open.
    """
    if not name or "/" in name:
        raise ValueError(f"Invalid shared database name: {name!r}")
    return f"file:/{name}?vfs=memdb"


def open_connection(
    target: str | Path,
    *,
    read_only: bool = False,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    statement_cache_size: int = 0,
) -> apsw.Connection:
    """Open a SQLite connection to a file path, ``:memory:`` or a ``file:`` URI."""
    resolved = paths.resolve_target(target)
    if not paths.is_special_target(resolved) and not read_only:
        Path(resolved).parent.mkdir(parents=True, exist_ok=True)

    flags = apsw.SQLITE_OPEN_URI
    if read_only:
        flags |= apsw.SQLITE_OPEN_READONLY
    else:
        flags |= apsw.SQLITE_OPEN_READWRITE | apsw.SQLITE_OPEN_CREATE

    try:
        connection = apsw.Connection(resolved, flags=flags, statementcachesize=statement_cache_size)
    except apsw.Error as exc:
        raise engine_error_from(exc) from exc
    try:
        connection.set_busy_timeout(busy_timeout_ms)
    except apsw.Error as exc:
        connection.close()
        raise engine_error_from(exc) from exc
    return connection


def close_connection(connection: apsw.Connection) -> None:
    """Close ``connection``; closing twice is a no-op."""
    try:
        connection.close()
    except apsw.Error as exc:
        raise engine_error_from(exc) from exc


def _settings_for(source: AppConfig | str | Path) -> DatabaseSettings:
    if isinstance(source, AppConfig):
        return source.database
    return DatabaseSettings(
        target=paths.resolve_target(source),
        read_only=False,
        busy_timeout_ms=DEFAULT_BUSY_TIMEOUT_MS,
        statement_cache_size=0,
    )


def open_from_settings(settings: DatabaseSettings, *, read_only: bool | None = None) -> apsw.Connection:
    return open_connection(
        settings.target,
        read_only=settings.read_only if read_only is None else read_only,
        busy_timeout_ms=settings.busy_timeout_ms,
        statement_cache_size=settings.statement_cache_size,
    )


@contextmanager
def connect(
    source: AppConfig | str | Path,
    *,
    read_only: bool | None = None,
) -> Iterator[apsw.Connection]:
    """Yield a connection for a config or a raw target and close it afterwards."""
    connection = open_from_settings(_settings_for(source), read_only=read_only)
    try:
        yield connection
    finally:
        close_connection(connection)


def with_db(source: AppConfig | str | Path, func: Callable[[apsw.Connection], T]) -> T:
    """Open a connection, pass it to ``func`` and return its result."""
    with connect(source) as connection:
        return func(connection)


def exec_sql(connection: apsw.Connection, sql: str) -> None:
    """Run one or more statements, discarding any rows they produce."""
    try:
        cursor = connection.execute(sql)
    except apsw.Error as exc:
        raise engine_error_from(exc) from exc
    try:
        for _ in cursor:
            pass
    except apsw.Error as exc:
        raise engine_error_from(exc) from exc
    finally:
        cursor.close()


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def create_table(
    connection: apsw.Connection,
    name: str,
    columns: Mapping[str, ColumnSpec],
    *,
    temporary: bool = False,
) -> None:
    """Create ``name`` from a column mapping.

    Each value is either a type name (``"text"``) or a ``(type, constraints)``
    pair whose constraints come from ``primary_key``, ``not_null``, ``unique``
    and ``autoincrement``.
    """
    if not columns:
        raise ValueError(f"Table '{name}' needs at least one column.")

    definitions: list[str] = []
    for column, spec in columns.items():
        if isinstance(spec, str):
            column_type, constraints = spec, ()
        else:
            column_type, constraints = spec
        parts = [quote_identifier(column), column_type]
        for constraint in constraints:
            try:
                parts.append(_CONSTRAINTS[constraint])
            except KeyError as exc:
                known = ", ".join(sorted(_CONSTRAINTS))
                raise ValueError(f"Unknown column constraint '{constraint}' (known: {known})") from exc
        definitions.append(" ".join(parts))

    prefix = "CREATE TEMP TABLE" if temporary else "CREATE TABLE"
    exec_sql(connection, f"{prefix} {quote_identifier(name)} ({', '.join(definitions)})")
