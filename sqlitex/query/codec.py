"""Conversion between SQLite storage classes and application values.

Encoding needs only the Python value. Decoding needs the column's declared
type: the lowered declared type is matched by substring against
``DECODERS`` in order and the first hit picks the decoder. Types that match
nothing are passed through as the native value.

Decimals are bound as text, but the column's affinity decides how SQLite
stores them. A column declared ``DECIMAL`` or ``DECIMAL(p,s)`` has NUMERIC
affinity, so numeric-looking text is converted to REAL (or INTEGER) on
insert and anything past 15-17 significant digits is lost before decoding
ever runs. Declare the column with TEXT affinity while keeping "decimal" in
the name, e.g. ``DECIMAL TEXT``, to store the exact digits.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from decimal import ROUND_DOWN, Context, Decimal, InvalidOperation
from typing import Any, Callable

from sqlitex.shared.exceptions import DecodeError, EncodeError

NativeValue = Any  # None | int | float | str | bytes
Decoder = Callable[[NativeValue, str, "str | None"], Any]

DATETIME_PATTERN = "YYYY-MM-DD HH:MM:SS[.ffffff]"
DATE_PATTERN = "YYYY-MM-DD"
BOOLEAN_PATTERN = "integer 0 or 1"
DECIMAL_PATTERN = "decimal number"

_DATETIME_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2})(?:\.(\d{1,6}))?$"
)
_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_DECIMAL_ARGS_RE = re.compile(r"decimal\s*\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)")


# ---------------------------------------------------------------------------
# Encoding


def encode(value: Any) -> NativeValue:
    """Convert an application value into a value SQLite can bind."""
    if value is None:
        return None
    # bool before int: bool is an int subclass.
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, datetime):
        return format_datetime(value)
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, Decimal):
        # Exact only in a TEXT-affinity column; NUMERIC affinity stores REAL.
        return str(value)
    raise EncodeError(value)


def format_datetime(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}.{value.microsecond:06d}"
    )


# ---------------------------------------------------------------------------
# Decoding


def _decode_datetime(value: NativeValue, declared: str, column: str | None) -> datetime:
    match = _DATETIME_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise DecodeError(column, value, DATETIME_PATTERN)
    year, month, day, hour, minute, second, fraction = match.groups()
    micro = int(fraction.ljust(6, "0")) if fraction else 0
    try:
        return datetime(int(year), int(month), int(day), int(hour), int(minute), int(second), micro)
    except ValueError as exc:
        raise DecodeError(column, value, DATETIME_PATTERN) from exc


def _decode_date(value: NativeValue, declared: str, column: str | None) -> datetime:
    match = _DATE_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise DecodeError(column, value, DATE_PATTERN)
    year, month, day = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day)
    except ValueError as exc:
        raise DecodeError(column, value, DATE_PATTERN) from exc


def _decode_boolean(value: NativeValue, declared: str, column: str | None) -> bool:
    if isinstance(value, int) and value in (0, 1):
        return value == 1
    raise DecodeError(column, value, BOOLEAN_PATTERN)


def _decode_decimal(value: NativeValue, declared: str, column: str | None) -> Decimal:
    try:
        if isinstance(value, float):
            number = Decimal(repr(value))
        elif isinstance(value, (int, str)):
            number = Decimal(value.strip() if isinstance(value, str) else value)
        else:
            raise DecodeError(column, value, DECIMAL_PATTERN)
    except InvalidOperation as exc:
        raise DecodeError(column, value, DECIMAL_PATTERN) from exc

    args = _DECIMAL_ARGS_RE.search(declared)
    if args is None or not number.is_finite():
        return number
    precision = int(args.group(1))
    scale = int(args.group(2)) if args.group(2) is not None else None
    return round_decimal(number, precision, scale)


def round_decimal(number: Decimal, precision: int, scale: int | None = None) -> Decimal:
    """Truncate ``number`` to ``precision`` significant digits, then ``scale`` places."""
    if precision > 0:
        number = Context(prec=precision, rounding=ROUND_DOWN).plus(number)
    if scale is not None and number.as_tuple().exponent < -scale:
        number = number.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_DOWN)
    return number


# Order matters: "datetime" must be tried before "date".
DECODERS: tuple[tuple[str, Decoder], ...] = (
    ("datetime", _decode_datetime),
    ("timestamp", _decode_datetime),
    ("date", _decode_date),
    ("boolean", _decode_boolean),
    ("bool", _decode_boolean),
    ("decimal", _decode_decimal),
)


def decoder_for(declared_type: str | None) -> Decoder | None:
    """Return the decoder selected by ``declared_type``, or None for pass-through."""
    if not declared_type:
        return None
    lowered = declared_type.lower()
    for marker, decoder in DECODERS:
        if marker in lowered:
            return decoder
    return None


def decode(value: NativeValue, declared_type: str | None, column: str | None = None) -> Any:
    """Convert a native value read from a column declared as ``declared_type``."""
    if value is None:
        return None
    decoder = decoder_for(declared_type)
    if decoder is None:
        return value
    return decoder(value, declared_type.lower(), column)  # type: ignore[union-attr]
