"""Ordered key to row-position index.

This module mirrors the remote table's row order so every key resolves
to its current sheet row. Positions are never cached: deleting a row
implicitly renumbers every later key.
"""

from __future__ import annotations

from core.constants import FIRST_DATA_ROW
from core.errors import SheetKVError
from core.types import Key


class _Unaddressable:
    """Placeholder for a remote row that holds no decodable key."""

    __slots__ = ("row_number",)

    def __init__(self, row_number: int) -> None:
        self.row_number = row_number

    def __repr__(self) -> str:
        return f"<unaddressable row {self.row_number}>"


class RowIndex:
    """Ordered sequence of keys mirroring remote data rows.

    Slot ``i`` corresponds to sheet row ``i + FIRST_DATA_ROW``. Rows that
    could not be decoded occupy an unaddressable slot so later keys keep
    their true positions; such slots do not count towards ``len()``.
    """

    def __init__(self) -> None:
        self._slots: list[Key | _Unaddressable] = []
        self._members: set[Key] = set()

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, key: object) -> bool:
        return key in self._members

    @property
    def span(self) -> int:
        """Number of remote data rows covered, unaddressable ones included."""
        return len(self._slots)

    def keys(self) -> tuple[Key, ...]:
        """Return addressable keys in row order."""
        return tuple(slot for slot in self._slots if not isinstance(slot, _Unaddressable))

    def append(self, key: Key) -> int:
        """Append a key as the last data row.

        Args:
            key: Key to append.

        Returns:
            Sheet row number now holding the key.

        Raises:
            SheetKVError: If the key is already indexed.
        """
        if key in self._members:
            raise SheetKVError(f"Key {key!r} is already indexed at row {self.row_of(key)}.")
        self._slots.append(key)
        self._members.add(key)
        return len(self._slots) - 1 + FIRST_DATA_ROW

    def append_unaddressable(self) -> int:
        """Reserve the next data row for an undecodable remote row."""
        row_number = len(self._slots) + FIRST_DATA_ROW
        self._slots.append(_Unaddressable(row_number))
        return row_number

    def row_of(self, key: Key) -> int:
        """Resolve a key's current sheet row from its position.

        Raises:
            KeyError: If the key is not indexed.
        """
        if key not in self._members:
            raise KeyError(key)
        return self._position(key) + FIRST_DATA_ROW

    def remove(self, key: Key) -> int:
        """Remove a key and return the sheet row it occupied.

        Raises:
            KeyError: If the key is not indexed.
        """
        row_number = self.row_of(key)
        del self._slots[row_number - FIRST_DATA_ROW]
        self._members.discard(key)
        return row_number

    def clear(self) -> None:
        """Drop every slot."""
        self._slots.clear()
        self._members.clear()

    def _position(self, key: Key) -> int:
        for position, slot in enumerate(self._slots):
            if not isinstance(slot, _Unaddressable) and slot == key and type(slot) is type(key):
                return position
        raise KeyError(key)
