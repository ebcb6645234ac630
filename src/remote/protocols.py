"""Capability protocols for authorization and remote tables.

The store only talks to these protocols; concrete clients are
injected at construction.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence


class AuthProvider(Protocol):
    """Produces an authorized client."""

    async def authorize(
        self,
        credentials: str | Mapping[str, Any] | None,
        token: str | Mapping[str, Any] | None,
        save_token: bool,
    ) -> Any:
        """Return a client authorized with the token or a fresh exchange."""
        ...


class RemoteTable(Protocol):
    """Row primitives against one named remote table.

    Row and column numbers are 1-based sheet coordinates; row 1 is the
    header.
    """

    async def fetch_all(self) -> list[list[str]]:
        """Return every row, header included."""
        ...

    async def append_row(self, cells: Sequence[str]) -> int | None:
        """Append a row after the last data row.

        Returns the sheet row the cells were written to, or None when
        the table cannot tell.
        """
        ...

    async def update_cell(self, row_number: int, column_number: int, value: str) -> None:
        """Overwrite a single cell."""
        ...

    async def delete_rows(self, start_row: int, end_row_exclusive: int) -> None:
        """Delete the contiguous row range ``[start_row, end_row_exclusive)``."""
        ...


class RemoteTableOpener(Protocol):
    """Binds an authorized client to a named table."""

    async def open_table(self, client: Any, spreadsheet_key: str, table_name: str) -> RemoteTable:
        """Return the table handle for the spreadsheet key and table name."""
        ...
