"""
scanner.py - Header row and column locator.

Finds the header row of a grid: the first row (within HEADER_SCAN_ROWS)
naming at least MIN_HEADER_LOCATIONS distinct canonical locations. The
row's location columns plus any date/total label columns seen in that same
row make up the Layout.

First qualifying row wins. No scoring between candidate rows: a legend or
footnote row that happens to list five locations above the real header
will be taken as the header.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from config import HEADER_SCAN_ROWS, MIN_HEADER_LOCATIONS
from grid import Grid, cell_text, grid_shape
from locations import LocationRegistry
from logging_config import get_logger
from models import Layout

logger = get_logger(__name__)

DATE_KEYWORDS: tuple[str, ...] = ("วันที่", "date")
TOTAL_KEYWORDS: tuple[str, ...] = ("ยอดรวม", "รวม", "total", "sum")
# "รวม CDC" is a per-location subtotal, not the grand total.
PER_LOCATION_QUALIFIERS: tuple[str, ...] = ("cdc",)


def _has_keyword(text: str, keywords: tuple[str, ...]) -> bool:
    # Latin keywords match whole words only ("summary" is not "sum"); Thai
    # has no word spacing, so Thai keywords match as substrings.
    for keyword in keywords:
        if keyword.isascii():
            if re.search(rf"\b{re.escape(keyword)}\b", text):
                return True
        elif keyword in text:
            return True
    return False


def is_date_label(value: Any) -> bool:
    text = cell_text(value).lower()
    return bool(text) and _has_keyword(text, DATE_KEYWORDS)


def is_total_label(value: Any) -> bool:
    text = cell_text(value).lower()
    if not text:
        return False
    if not _has_keyword(text, TOTAL_KEYWORDS):
        return False
    return not any(qualifier in text for qualifier in PER_LOCATION_QUALIFIERS)


def _scan_row(row: list[Any], registry: LocationRegistry) -> tuple[dict[int, str], Optional[int], Optional[int]]:
    location_columns: dict[int, str] = {}
    date_column: Optional[int] = None
    total_column: Optional[int] = None

    for col, value in enumerate(row or []):
        if is_date_label(value):
            date_column = col
        if is_total_label(value):
            total_column = col
        location = registry.resolve(value)
        if location is not None:
            location_columns[col] = location.key

    return location_columns, date_column, total_column


def locate(
    grid: Grid,
    registry: LocationRegistry,
    *,
    max_rows: int = HEADER_SCAN_ROWS,
    min_locations: int = MIN_HEADER_LOCATIONS,
) -> Optional[Layout]:
    """Find the header row. Returns None when no row qualifies."""
    if not grid:
        logger.info("locate_failed | reason=empty_grid")
        return None

    for row_index, row in enumerate(grid[:max_rows]):
        location_columns, date_column, total_column = _scan_row(row, registry)
        distinct = set(location_columns.values())
        if len(distinct) < min_locations:
            continue

        layout = Layout(
            header_row=row_index,
            location_columns=location_columns,
            date_column=date_column,
            total_column=total_column,
        )
        logger.info(
            "locate_header | row=%s | locations=%s | date_column=%s | total_column=%s",
            row_index,
            len(distinct),
            date_column,
            total_column,
        )
        return layout

    rows, cols = grid_shape(grid)
    logger.info(
        "locate_failed | reason=no_header_row | scanned_rows=%s | shape=%sx%s | min_locations=%s",
        min(rows, max_rows),
        rows,
        cols,
        min_locations,
    )
    return None
