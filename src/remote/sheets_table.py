"""Google Sheets remote table backed by gspread.

This module adapts a gspread worksheet to the RemoteTable protocol.
Blocking gspread calls run in worker threads so the event loop stays free.
"""

from __future__ import annotations

import asyncio
import re
import threading
from typing import Any, Callable, Mapping, Sequence, TypeVar

from core.constants import HEADER_ROW_COUNT, KEY_COLUMN, TRANSIENT_HTTP_STATUSES
from core.errors import SheetKVDependencyError, SheetKVRemoteError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)
_UPDATED_ROW_PATTERN = re.compile(r"![A-Z]+(\d+)")

T = TypeVar("T")


class GspreadTable:
    """RemoteTable over one gspread worksheet.

    Values are written with the RAW input option so text such as
    ``=SUM(A1)`` or ``007`` is stored verbatim instead of being parsed.
    Worker threads run one call at a time in call order: a call whose
    await timed out keeps its thread, and the next call waits for it.
    """

    def __init__(self, worksheet: Any) -> None:
        self._worksheet = worksheet
        self._call_lock = threading.Lock()

    @property
    def title(self) -> str:
        return str(getattr(self._worksheet, "title", "?"))

    async def fetch_all(self) -> list[list[str]]:
        return await self._run("fetch_all", self._worksheet.get_all_values)

    async def append_row(self, cells: Sequence[str]) -> int | None:
        response = await self._run(
            "append_row",
            lambda: self._worksheet.append_row(
                list(cells),
                value_input_option="RAW",
                table_range=cell_a1(HEADER_ROW_COUNT, KEY_COLUMN),
            ),
        )
        return updated_row(response)

    async def update_cell(self, row_number: int, column_number: int, value: str) -> None:
        await self._run(
            "update_cell",
            lambda: self._worksheet.update(
                range_name=cell_a1(row_number, column_number),
                values=[[value]],
                value_input_option="RAW",
            ),
        )

    async def delete_rows(self, start_row: int, end_row_exclusive: int) -> None:
        if end_row_exclusive <= start_row:
            return
        # gspread takes an inclusive end row.
        await self._run(
            "delete_rows",
            lambda: self._worksheet.delete_rows(start_row, end_row_exclusive - 1),
        )

    async def _run(self, action: str, call: Callable[[], T]) -> T:
        def _serialized() -> T:
            with self._call_lock:
                return call()

        try:
            return await asyncio.to_thread(_serialized)
        except Exception as error:
            raise remote_error(action, self.title, error) from error


class GspreadTableOpener:
    """Open worksheets by spreadsheet key and worksheet title."""

    async def open_table(self, client: Any, spreadsheet_key: str, table_name: str) -> GspreadTable:
        """Return the worksheet as a remote table.

        Args:
            client: ``gspread.Client`` or Google credentials to authorize.
            spreadsheet_key: Spreadsheet key from the sheet URL.
            table_name: Worksheet title.

        Returns:
            Table handle bound to the worksheet.

        Raises:
            SheetKVDependencyError: If gspread is missing.
            SheetKVRemoteError: If the spreadsheet or worksheet cannot be opened.
        """
        gspread_client = client if hasattr(client, "open_by_key") else _authorize(client)

        def _open() -> Any:
            return gspread_client.open_by_key(spreadsheet_key).worksheet(table_name)

        try:
            worksheet = await asyncio.to_thread(_open)
        except Exception as error:
            raise remote_error("open_table", table_name, error) from error
        _LOGGER.info("table_opened", spreadsheet_key=spreadsheet_key, table_name=table_name)
        return GspreadTable(worksheet)


def cell_a1(row_number: int, column_number: int) -> str:
    """Render 1-based coordinates in A1 notation."""
    letters = ""
    remaining = column_number
    while remaining > 0:
        remaining, offset = divmod(remaining - 1, 26)
        letters = chr(ord("A") + offset) + letters
    return f"{letters}{row_number}"


def updated_row(response: Any) -> int | None:
    """Return the row an append response reports as written, if any."""
    if not isinstance(response, Mapping):
        return None
    updates = response.get("updates")
    updated_range = updates.get("updatedRange") if isinstance(updates, Mapping) else None
    if not isinstance(updated_range, str):
        return None
    match = _UPDATED_ROW_PATTERN.search(updated_range)
    return int(match.group(1)) if match else None


def remote_error(action: str, table_name: str, error: BaseException) -> SheetKVRemoteError:
    """Map a client failure onto a remote error, flagging transient ones.

    HTTP 429 and 5xx responses and connection-level failures are
    transient; anything else (missing sheet, permissions) is not.
    """
    status = _status_code(error)
    transient = status in TRANSIENT_HTTP_STATUSES or (
        status is None and isinstance(error, (OSError, TimeoutError))
    )
    detail = f"HTTP {status}" if status is not None else type(error).__name__
    return SheetKVRemoteError(
        f"Remote {action} on table '{table_name}' failed ({detail}): {error}.",
        transient=transient,
    )


def _status_code(error: BaseException) -> int | None:
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(error, "code", None)
    return status if isinstance(status, int) else None


def _authorize(credentials: Any) -> Any:
    try:
        import gspread
    except ImportError as error:
        raise SheetKVDependencyError(
            "Google Sheets access requires gspread, but it is not installed. "
            "Install gspread to open remote tables."
        ) from error
    return gspread.authorize(credentials)
