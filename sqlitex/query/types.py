"""Data structures shared across sqlitex query modules."""

from __future__ import annotations

import enum
from dataclasses import dataclass, fields
from typing import Any, Mapping, Sequence, Union

from sqlitex.shared.exceptions import DatabaseError

Pairs = tuple[tuple[str, Any], ...]
Row = Union[Pairs, dict[str, Any]]


class RowShape(str, enum.Enum):
    """Container each fetched row is collected into."""

    LIST = "list"  # tuple of (name, value) pairs; duplicate names preserved
    MAP = "map"  # dict; later duplicate names shadow earlier ones

    @classmethod
    def parse(cls, value: RowShape | str) -> RowShape:
        if isinstance(value, RowShape):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            raise ValueError(f"Unknown row shape '{value}'; expected 'list' or 'map'.") from exc


class _Done:
    """Sentinel returned by ``Statement.step`` once the result set is exhausted."""

    _instance: _Done | None = None

    def __new__(cls) -> _Done:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DONE"

    def __bool__(self) -> bool:
        return False


DONE = _Done()


@dataclass(frozen=True, slots=True)
class QueryOptions:
    """Per-call options: bind values, row shape and the caller's wait bound."""

    bind: tuple[Any, ...] = ()
    into: RowShape = RowShape.LIST
    timeout: float | None = None  # seconds; None waits forever (server calls only)

    def __post_init__(self) -> None:
        object.__setattr__(self, "bind", tuple(self.bind))
        object.__setattr__(self, "into", RowShape.parse(self.into))
        if self.timeout is not None and self.timeout < 0:
            raise ValueError("timeout must not be negative")

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> QueryOptions:
        known = {field.name for field in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ValueError(f"Unknown query option(s): {', '.join(unknown)}")
        return cls(**options)


@dataclass(frozen=True, slots=True)
class Failure:
    """Error value returned by the non-raising query operations."""

    reason: DatabaseError

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return str(self.reason)


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Column names plus positional rows, as consumed by the renderers."""

    columns: tuple[str, ...]
    rows: Sequence[tuple[Any, ...]]
