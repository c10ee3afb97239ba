"""Prepared statement lifecycle: prepare, bind, step, fetch, finalize."""

from __future__ import annotations

import enum
from typing import Any, Iterator, Sequence

import apsw
import apsw.ext

from sqlitex.shared.database import engine_error_from
from sqlitex.shared.exceptions import BindArityError, EngineError

from . import codec
from .types import DONE, Row, RowShape, _Done

Columns = tuple[tuple[str, "str | None"], ...]


class Position(enum.Enum):
    NOT_STARTED = "not-started"
    ROWS = "mid-result"
    DONE = "exhausted"
    FINALIZED = "finalized"


class Statement:
    """One SQL statement against one connection, backed by an ``apsw.Cursor``.

    :meth:`prepare` compiles the text without running it and captures the
    parameter count plus the result column names and declared types, which
    drive decoding of every row. :meth:`bind` only records values. Execution
    starts at the first :meth:`step` after a (re)bind, so nothing touches the
    database until a row is asked for.

    Use it as a context manager so the cursor is finalized on every exit path::

        with Statement.prepare(conn, "SELECT * FROM t WHERE id = ?") as stmt:
            rows = stmt.bind([1]).fetch_all()
    """

    def __init__(
        self,
        connection: apsw.Connection,
        sql: str,
        cursor: apsw.Cursor,
        *,
        columns: Columns = (),
        parameter_count: int = 0,
    ) -> None:
        self.connection = connection
        self.sql = sql
        self.parameter_count = parameter_count
        self._cursor = cursor
        self._columns: Columns = columns
        self._bound: tuple[Any, ...] | None = None
        self._started = False
        self._position = Position.NOT_STARTED

    @classmethod
    def prepare(cls, connection: apsw.Connection, sql: str) -> Statement:
        """Compile ``sql`` against ``connection`` without executing it.

        Raises EngineError for malformed SQL, a closed connection, or text
        holding more than one statement (scripts go through ``exec_sql``).
        """
        if not sql.strip():
            raise EngineError("SQLITE_MISUSE", "no SQL statement to prepare")
        try:
            info = apsw.ext.query_info(connection, sql)
            cursor = connection.cursor()
        except apsw.Error as exc:
            raise engine_error_from(exc) from exc
        remaining = (info.query_remaining or "").strip(" \t\r\n;")
        if remaining:
            raise EngineError(
                "SQLITE_MISUSE",
                f"expected a single statement, found trailing SQL: {remaining[:60]!r}",
            )
        return cls(
            connection,
            sql,
            cursor,
            columns=tuple((name, declared) for name, declared in info.description),
            parameter_count=info.bindings_count,
        )

    # ------------------------------------------------------------------ #
    # Introspection

    @property
    def position(self) -> Position:
        return self._position

    @property
    def finalized(self) -> bool:
        return self._position is Position.FINALIZED

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self._columns)

    @property
    def column_types(self) -> tuple[str | None, ...]:
        return tuple(declared for _, declared in self._columns)

    @property
    def bound_values(self) -> tuple[Any, ...]:
        return self._bound or ()

    # ------------------------------------------------------------------ #
    # Lifecycle

    def bind(self, values: Sequence[Any] = ()) -> Statement:
        """Bind positional values in order; rebinding resets the position.

        Nothing runs here: the values are checked, encoded and kept for the
        next :meth:`step`.
        """
        self._ensure_open()
        native = tuple(codec.encode(value) for value in values)
        if len(native) != self.parameter_count:
            raise BindArityError(
                f"statement expects {self.parameter_count} value(s), got {len(native)}",
                supplied=len(native),
            )
        self._bound = native
        self._started = False
        self._position = Position.NOT_STARTED
        return self

    def step(self, into: RowShape | str = RowShape.LIST) -> Row | _Done:
        """Advance one row, returning it decoded, or ``DONE`` when exhausted."""
        self._ensure_open()
        shape = RowShape.parse(into)
        if self._position is Position.DONE:
            return DONE
        if not self._started:
            self._execute()
            if self._position is Position.DONE:
                return DONE
        try:
            values = next(self._cursor)
        except (StopIteration, apsw.ExecutionCompleteError):
            self._position = Position.DONE
            return DONE
        except apsw.Error as exc:
            self._position = Position.DONE
            raise engine_error_from(exc) from exc
        self._position = Position.ROWS
        return self._build_row(values, shape)

    def fetch_all(self, into: RowShape | str = RowShape.LIST) -> list[Row]:
        rows: list[Row] = []
        while True:
            row = self.step(into)
            if row is DONE:
                return rows
            rows.append(row)  # type: ignore[arg-type]

    def rows(self, into: RowShape | str = RowShape.LIST) -> Iterator[Row]:
        while True:
            row = self.step(into)
            if row is DONE:
                return
            yield row  # type: ignore[misc]

    def finalize(self, *, force: bool = False) -> None:
        """Release the native statement. Safe to call any number of times."""
        if self._position is Position.FINALIZED:
            return
        self._position = Position.FINALIZED
        try:
            self._cursor.close(force=force)
        except apsw.ConnectionClosedError:
            # Closing the connection already released every cursor on it.
            return
        except apsw.Error as exc:
            raise engine_error_from(exc) from exc

    # ------------------------------------------------------------------ #
    # Protocols

    def __iter__(self) -> Iterator[Row]:
        return self.rows()

    def __enter__(self) -> Statement:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.finalize(force=exc_type is not None)

    def __repr__(self) -> str:
        return f"Statement({self.sql!r}, position={self._position.value})"

    # ------------------------------------------------------------------ #
    # Internals

    def _ensure_open(self) -> None:
        if self._position is Position.FINALIZED:
            raise EngineError("SQLITE_MISUSE", f"statement already finalized: {self.sql}")

    def _execute(self) -> None:
        if self._bound is None and self.parameter_count:
            raise BindArityError(
                f"statement expects {self.parameter_count} value(s), none were bound",
                supplied=0,
            )
        self._started = True
        try:
            # apsw runs the first step as part of execute.
            self._cursor.execute(self.sql, self._bound or ())
        except apsw.BindingsError as exc:
            self._position = Position.DONE
            raise BindArityError(str(exc), supplied=len(self._bound or ())) from exc
        except apsw.Error as exc:
            self._position = Position.DONE
            raise engine_error_from(exc) from exc
        try:
            self._cursor.get_description()
        except apsw.ExecutionCompleteError:
            # Nothing left to step: DDL, DML, or an empty result set.
            self._position = Position.DONE

    def _describe(self) -> Columns:
        try:
            description = self._cursor.get_description()
        except apsw.ExecutionCompleteError:
            return self._columns
        return tuple((name, declared) for name, declared in description)

    def _build_row(self, values: Sequence[Any], shape: RowShape) -> Row:
        if len(self._columns) != len(values):
            # The schema changed between prepare and execution.
            self._columns = self._describe()
        pairs = tuple(
            (name, codec.decode(value, declared, name))
            for (name, declared), value in zip(self._columns, values)
        )
        if shape is RowShape.MAP:
            return dict(pairs)
        return pairs
