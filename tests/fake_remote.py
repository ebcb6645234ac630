"""In-memory remote table helpers for store tests."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Sequence

from core.errors import SheetKVAuthError, SheetKVRemoteError

HEADER = ["key", "value"]


class InMemoryTable:
    """RemoteTable keeping rows in a list, header included.

    Every call is recorded in ``calls``. ``failures`` maps an action
    name to errors raised by its next invocations, in order. ``delays``
    stalls an action before it applies; ``ack_delays`` stalls it after
    the rows changed, like a write whose response is slow. With
    ``fill_gaps`` appends land in the first blank data row, the way the
    Sheets API detects the end of a table.
    """

    def __init__(self, rows: Sequence[Sequence[str]] = ()) -> None:
        self.rows: list[list[str]] = [list(HEADER)] + [list(row) for row in rows]
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, list[BaseException]] = {}
        self.delay_seconds = 0.0
        self.delays: dict[str, float] = {}
        self.ack_delays: dict[str, float] = {}
        self.fill_gaps = False

    def data_rows(self) -> list[list[str]]:
        return [list(row) for row in self.rows[1:]]

    async def fetch_all(self) -> list[list[str]]:
        await self._enter("fetch_all")
        return [list(row) for row in self.rows]

    async def append_row(self, cells: Sequence[str]) -> int:
        await self._enter("append_row", list(cells))
        row_number = self._landing_row()
        if row_number > len(self.rows):
            self.rows.append(list(cells))
        else:
            self.rows[row_number - 1] = list(cells)
        await self._acknowledge("append_row")
        return row_number

    async def update_cell(self, row_number: int, column_number: int, value: str) -> None:
        await self._enter("update_cell", row_number, column_number, value)
        row = self.rows[row_number - 1]
        while len(row) < column_number:
            row.append("")
        row[column_number - 1] = value
        await self._acknowledge("update_cell")

    async def delete_rows(self, start_row: int, end_row_exclusive: int) -> None:
        await self._enter("delete_rows", start_row, end_row_exclusive)
        del self.rows[start_row - 1 : end_row_exclusive - 1]
        await self._acknowledge("delete_rows")

    def _landing_row(self) -> int:
        if self.fill_gaps:
            for row_number, row in enumerate(self.rows[1:], start=2):
                if not any(row):
                    return row_number
        return len(self.rows) + 1

    async def _enter(self, action: str, *args: Any) -> None:
        self.calls.append((action, *args))
        delay = self.delays.get(action, self.delay_seconds)
        if delay:
            await asyncio.sleep(delay)
        pending = self.failures.get(action)
        if pending:
            raise pending.pop(0)

    async def _acknowledge(self, action: str) -> None:
        delay = self.ack_delays.get(action)
        if delay:
            await asyncio.sleep(delay)


class StaticAuthProvider:
    """AuthProvider returning a fixed client, or failing."""

    def __init__(self, client: Any = "client", error: BaseException | None = None) -> None:
        self.client = client
        self.error = error
        self.calls: list[tuple[Any, Any, bool]] = []

    async def authorize(
        self,
        credentials: str | Mapping[str, Any] | None,
        token: str | Mapping[str, Any] | None,
        save_token: bool,
    ) -> Any:
        self.calls.append((credentials, token, save_token))
        if self.error is not None:
            raise self.error
        return self.client


class StaticTableOpener:
    """RemoteTableOpener handing out one prepared table."""

    def __init__(self, table: InMemoryTable) -> None:
        self.table = table
        self.opened: list[tuple[Any, str, str]] = []

    async def open_table(self, client: Any, spreadsheet_key: str, table_name: str) -> InMemoryTable:
        self.opened.append((client, spreadsheet_key, table_name))
        return self.table


def transient_error(message: str = "rate limited") -> SheetKVRemoteError:
    return SheetKVRemoteError(message, transient=True)


def auth_error(message: str = "denied") -> SheetKVAuthError:
    return SheetKVAuthError(message)
