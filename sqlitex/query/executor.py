"""Query pipeline: prepare, bind, fetch and finalize in one call.

``run`` and ``execute`` never raise for database problems; they return a
:class:`Failure` carrying the error so batch callers can inspect it.
``run_or_fail`` raises :class:`QueryError` instead.
"""

from __future__ import annotations

from typing import Any, Sequence, Union

import apsw

from sqlitex.shared.database import exec_sql
from sqlitex.shared.exceptions import DatabaseError, QueryError

from .statement import Statement
from .types import Failure, QueryOptions, QueryResult, Row, RowShape

RunResult = Union[list[Row], Failure]


def _resolve_options(
    bind: Sequence[Any] | None,
    into: RowShape | str | None,
    options: QueryOptions | None,
) -> QueryOptions:
    base = options or QueryOptions()
    return QueryOptions(
        bind=base.bind if bind is None else tuple(bind),
        into=base.into if into is None else RowShape.parse(into),
        timeout=base.timeout,
    )


def run(
    connection: apsw.Connection,
    sql: str,
    bind: Sequence[Any] | None = None,
    into: RowShape | str | None = None,
    *,
    options: QueryOptions | None = None,
) -> RunResult:
    """Run ``sql`` to completion and return its rows, or a Failure."""
    opts = _resolve_options(bind, into, options)
    try:
        with Statement.prepare(connection, sql) as statement:
            return statement.bind(opts.bind).fetch_all(opts.into)
    except DatabaseError as exc:
        return Failure(exc)


def run_or_fail(
    connection: apsw.Connection,
    sql: str,
    bind: Sequence[Any] | None = None,
    into: RowShape | str | None = None,
    *,
    options: QueryOptions | None = None,
) -> list[Row]:
    """Same as :func:`run` but raises QueryError on failure."""
    result = run(connection, sql, bind, into, options=options)
    if isinstance(result, Failure):
        raise QueryError(result.reason) from result.reason
    return result


def execute(
    connection: apsw.Connection,
    sql: str,
    bind: Sequence[Any] | None = None,
) -> Union[bool, Failure]:
    """Run ``sql`` for its side effects; returns True or a Failure."""
    try:
        with Statement.prepare(connection, sql) as statement:
            statement.bind(tuple(bind or ()))
            for _ in statement.rows():
                pass
    except DatabaseError as exc:
        return Failure(exc)
    return True


def execute_script(connection: apsw.Connection, sql: str) -> Union[bool, Failure]:
    """Run a multi-statement script; returns True or a Failure."""
    try:
        exec_sql(connection, sql)
    except DatabaseError as exc:
        return Failure(exc)
    return True


def run_with_columns(
    connection: apsw.Connection,
    sql: str,
    bind: Sequence[Any] = (),
) -> QueryResult:
    """Run ``sql`` and return column names with positional rows, raising on failure."""
    try:
        with Statement.prepare(connection, sql) as statement:
            statement.bind(bind)
            rows = [tuple(value for _, value in row) for row in statement.rows(RowShape.LIST)]
            columns = statement.column_names
    except DatabaseError as exc:
        raise QueryError(exc) from exc
    return QueryResult(columns=columns, rows=rows)
