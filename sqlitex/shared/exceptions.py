"""Project-wide custom exceptions."""

from __future__ import annotations

from typing import Any


class SqlitexError(Exception):
    """Base exception for the sqlitex client layer."""


class ConfigurationError(SqlitexError):
    """Raised when configuration loading or validation fails."""


class DatabaseError(SqlitexError):
    """Raised for database-related issues."""


class EngineError(DatabaseError):
    """An error reported by the SQLite engine itself.

    ``code`` is the symbolic result code (``SQLITE_ERROR``, ``SQLITE_BUSY`` ...)
    when the engine supplied one, otherwise the binding's exception name.
    """

    def __init__(self, code: str, message: str, *, result: int | None = None) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.result = result


class BindArityError(EngineError):
    """Raised when the number of bound values does not match the statement."""

    def __init__(self, message: str, *, supplied: int) -> None:
        super().__init__("SQLITE_RANGE", message)
        self.supplied = supplied


class DecodeError(DatabaseError):
    """Raised when a stored value does not fit its column's declared type."""

    def __init__(self, column: str | None, raw_value: Any, expected_pattern: str) -> None:
        label = f"column '{column}'" if column else "value"
        super().__init__(f"Cannot decode {label}: {raw_value!r} does not match {expected_pattern}")
        self.column = column
        self.raw_value = raw_value
        self.expected_pattern = expected_pattern


class EncodeError(DatabaseError):
    """Raised when a value has no SQLite representation."""

    def __init__(self, value: Any) -> None:
        super().__init__(f"Cannot bind value of type {type(value).__name__}: {value!r}")
        self.value = value


class QueryError(DatabaseError):
    """Raised by the fail-loudly query helpers; wraps the original error."""

    def __init__(self, reason: DatabaseError) -> None:
        super().__init__(str(reason))
        self.reason = reason


class ServerError(SqlitexError):
    """Raised for misuse of a serialized-access server."""


class ServerStopped(ServerError):
    """Raised when a request is submitted after the server was stopped."""


class CallTimeout(ServerError, TimeoutError):
    """The caller stopped waiting for a reply.

    The request itself keeps running inside the server and may still succeed.
    """

    def __init__(self, sql: str, timeout: float) -> None:
        super().__init__(f"No reply within {timeout}s for: {sql}")
        self.sql = sql
        self.timeout = timeout
