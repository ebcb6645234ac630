"""Unit tests for the gspread-backed remote table."""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import pytest

from core.errors import SheetKVRemoteError
from remote.sheets_table import (
    GspreadTable,
    GspreadTableOpener,
    cell_a1,
    remote_error,
    updated_row,
)


class _Response:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code


class _HttpError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"status {status_code}")
        self.response = _Response(status_code)


class _FakeWorksheet:
    title = "Sheet1"

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.error: BaseException | None = None

    def get_all_values(self) -> list[list[str]]:
        self._check()
        return [["key", "value"], ["a", "1"]]

    def append_row(self, values: list[str], **kwargs: Any) -> dict[str, Any]:
        self._check()
        self.calls.append(("append_row", values, kwargs))
        return {"updates": {"updatedRange": "Sheet1!A3:B3"}}

    def update(self, **kwargs: Any) -> None:
        self._check()
        self.calls.append(("update", kwargs))

    def delete_rows(self, start_index: int, end_index: int) -> None:
        self._check()
        self.calls.append(("delete_rows", start_index, end_index))

    def _check(self) -> None:
        if self.error is not None:
            raise self.error


class _FakeSpreadsheet:
    def __init__(self, worksheet: _FakeWorksheet) -> None:
        self._worksheet = worksheet

    def worksheet(self, title: str) -> _FakeWorksheet:
        if title != self._worksheet.title:
            raise _HttpError(404)
        return self._worksheet


class _FakeClient:
    def __init__(self, worksheet: _FakeWorksheet) -> None:
        self.worksheet = worksheet
        self.opened: list[str] = []

    def open_by_key(self, key: str) -> _FakeSpreadsheet:
        self.opened.append(key)
        return _FakeSpreadsheet(self.worksheet)


@pytest.mark.parametrize(
    ("row", "column", "expected"),
    [(1, 1, "A1"), (3, 2, "B3"), (7, 26, "Z7"), (2, 27, "AA2"), (5, 703, "AAA5")],
)
def test_cell_a1(row: int, column: int, expected: str) -> None:
    """Coordinates should render in A1 notation."""
    assert cell_a1(row, column) == expected


def test_table_writes_raw_values() -> None:
    """Appends and updates should use the RAW input option."""
    worksheet = _FakeWorksheet()
    table = GspreadTable(worksheet)

    async def scenario() -> tuple[int | None, list[list[str]]]:
        landed_row = await table.append_row(["k", "=SUM(A1)"])
        await table.update_cell(3, 2, "007")
        return landed_row, await table.fetch_all()

    landed_row, rows = asyncio.run(scenario())

    assert landed_row == 3
    assert rows[1] == ["a", "1"]
    assert worksheet.calls[0] == (
        "append_row",
        ["k", "=SUM(A1)"],
        {"value_input_option": "RAW", "table_range": "A1"},
    )
    assert worksheet.calls[1] == (
        "update",
        {"range_name": "B3", "values": [["007"]], "value_input_option": "RAW"},
    )


def test_delete_rows_uses_inclusive_end() -> None:
    """Exclusive ranges should become gspread's inclusive end row."""
    worksheet = _FakeWorksheet()
    table = GspreadTable(worksheet)

    async def scenario() -> None:
        await table.delete_rows(2, 5)
        await table.delete_rows(2, 2)

    asyncio.run(scenario())

    assert worksheet.calls == [("delete_rows", 2, 4)]


@pytest.mark.parametrize(
    ("error", "transient"),
    [
        (_HttpError(429), True),
        (_HttpError(503), True),
        (_HttpError(403), False),
        (ConnectionResetError("reset"), True),
        (ValueError("bad"), False),
    ],
)
def test_remote_error_flags_transient_failures(error: Exception, transient: bool) -> None:
    """Rate limits, server errors, and connection failures should be transient."""
    mapped = remote_error("fetch_all", "Sheet1", error)

    assert mapped.transient is transient
    assert "Sheet1" in str(mapped)


def test_table_maps_client_errors() -> None:
    """Client errors should surface as remote errors."""
    worksheet = _FakeWorksheet()
    worksheet.error = _HttpError(500)

    with pytest.raises(SheetKVRemoteError, match="HTTP 500") as raised:
        asyncio.run(GspreadTable(worksheet).fetch_all())

    assert raised.value.transient


def test_opener_uses_ready_client() -> None:
    """A client exposing open_by_key should be used as is."""
    client = _FakeClient(_FakeWorksheet())

    table = asyncio.run(GspreadTableOpener().open_table(client, "sheet-key", "Sheet1"))

    assert client.opened == ["sheet-key"]
    assert table.title == "Sheet1"


def test_opener_reports_missing_worksheet() -> None:
    """A missing worksheet should raise a non-transient remote error."""
    client = _FakeClient(_FakeWorksheet())

    with pytest.raises(SheetKVRemoteError, match="open_table") as raised:
        asyncio.run(GspreadTableOpener().open_table(client, "sheet-key", "Other"))

    assert not raised.value.transient


@pytest.mark.parametrize(
    ("response", "expected"),
    [
        ({"updates": {"updatedRange": "'My Sheet'!A12:B12"}}, 12),
        ({"updates": {}}, None),
        (None, None),
    ],
)
def test_updated_row_reads_append_response(response: object, expected: int | None) -> None:
    """The written row should be read from the append response range."""
    assert updated_row(response) == expected


class _BlockingWorksheet:
    title = "Sheet1"

    def __init__(self) -> None:
        self.release = threading.Event()
        self.rows = [["key", "value"], ["a", "1"]]

    def append_row(self, values: list[str], **kwargs: Any) -> None:
        self.release.wait(timeout=5)
        self.rows.append(list(values))

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]


def test_calls_after_abandoned_call_wait_for_it() -> None:
    """A read issued after a timed-out append should see the append's effect."""
    worksheet = _BlockingWorksheet()
    table = GspreadTable(worksheet)

    async def scenario() -> tuple[bool, list[list[str]]]:
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(table.append_row(["b", "2"]), timeout=0.05)
        fetch = asyncio.ensure_future(table.fetch_all())
        await asyncio.sleep(0.05)
        waited = not fetch.done()
        worksheet.release.set()
        return waited, await fetch

    waited, rows = asyncio.run(scenario())

    assert waited
    assert rows[-1] == ["b", "2"]
