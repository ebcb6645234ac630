"""Cell encoding for stored keys and values.

Column A holds the key, column B the value. Strings are written raw;
everything else is written as JSON text. Reading parses JSON and falls
back to the raw text.
"""

from __future__ import annotations

import json
import math
from typing import Sequence

from core.errors import SheetKVInvalidValueError
from core.types import Key, Value


class RowDecodeError(ValueError):
    """Raised when a remote row cannot become a cache entry."""


def encode_key(key: Key) -> str:
    """Render a key for column A."""
    return key if isinstance(key, str) else str(key)


def encode_value(value: Value) -> str:
    """Render a value for column B.

    Raises:
        SheetKVInvalidValueError: If the value is not JSON-compatible.
    """
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError) as error:
        raise SheetKVInvalidValueError(
            f"Value of type {type(value).__name__} is not JSON-compatible: {error}. "
            "Store strings, numbers, booleans, or nested dicts/lists of them."
        ) from error


def decode_value(cell: str) -> Value:
    """Parse a column B cell, falling back to the raw text."""
    try:
        return json.loads(cell)
    except ValueError:
        return cell


def decode_row(cells: Sequence[str]) -> tuple[str, Value]:
    """Decode one data row into a key and value.

    Args:
        cells: Row cells as returned by the remote table.

    Returns:
        Key and decoded value.

    Raises:
        RowDecodeError: If the key cell is missing or blank.
    """
    if not cells or not str(cells[0]).strip():
        raise RowDecodeError("missing key")
    value_cell = cells[1] if len(cells) > 1 else ""
    return cells[0], decode_value(str(value_cell))


def validate_value(value: Value) -> None:
    """Check that a value can be stored.

    Raises:
        SheetKVInvalidValueError: If the value is None or not JSON-compatible.
    """
    if value is None:
        raise SheetKVInvalidValueError("Cannot set an undefined value: got None.")
    if isinstance(value, float) and not math.isfinite(value):
        raise SheetKVInvalidValueError(f"Cannot store non-finite number {value!r}.")
    encode_value(value)
