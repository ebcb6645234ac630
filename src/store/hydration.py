"""Cache hydration from fetched remote rows.

This module turns the remote table's rows into the row index and the
cache, reporting every row it could not decode instead of dropping it
silently.
"""

from __future__ import annotations

from typing import Sequence

from core.constants import HEADER_ROW_COUNT
from core.logging_config import get_logger
from core.types import HydrationReport, SkippedRow, Value
from store.row_index import RowIndex
from store.value_codec import RowDecodeError, decode_row

_LOGGER = get_logger(__name__)


def hydrate_rows(
    rows: Sequence[Sequence[str]],
    table_name: str,
) -> tuple[RowIndex, dict[str, Value], HydrationReport]:
    """Decode fetched rows into a row index, a cache, and a report.

    The header row is skipped. Undecodable rows keep an unaddressable
    slot in the index so the row numbers of later keys stay correct.

    Args:
        rows: All rows of the remote table, header included.
        table_name: Table name used in log events.

    Returns:
        Populated row index, cache mapping, and hydration report.
    """
    row_index = RowIndex()
    cache: dict[str, Value] = {}
    skipped: list[SkippedRow] = []
    for cells in rows[HEADER_ROW_COUNT:]:
        try:
            key, value = decode_row(cells)
            if key in cache:
                raise RowDecodeError(f"duplicate key {key!r}")
        except RowDecodeError as error:
            row_number = row_index.append_unaddressable()
            skipped.append(SkippedRow(row_number=row_number, reason=str(error)))
            _LOGGER.warning(
                "hydration_row_skipped",
                table_name=table_name,
                row_number=row_number,
                reason=str(error),
            )
            continue
        row_index.append(key)
        cache[key] = value
    report = HydrationReport(
        row_count=row_index.span,
        loaded_count=len(cache),
        skipped_rows=tuple(skipped),
    )
    return row_index, cache, report
