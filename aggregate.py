"""
aggregate.py - Per-location quantity aggregation.

Two table shapes are supported:

    aggregate()             daily report screenshot: one row per DC line,
                            label columns name the location, the category's
                            value column holds the quantity.
    aggregate_sheet_rows()  workbook export: one row per day, one column per
                            location (columns come from the Layout).

Both only accumulate strictly positive quantities. Zero and negative cells
are "nothing to add", never an error.
"""

from __future__ import annotations

import numbers
from typing import NamedTuple, Optional

from categories import CategoryProfile
from config import PRIMARY_LABEL_COLUMN, SECONDARY_LABEL_COLUMN
from grid import Grid, cell_at, cell_text, is_empty
from locations import HADYAI, LocationRegistry
from logging_config import get_logger
from models import AggregationResult, CanonicalLocation, LabelColumn, Layout, TotalSource
from normalize import parse_date, parse_quantity
from scanner import is_total_label

logger = get_logger(__name__)

LABEL_COLUMN_INDEX: dict[LabelColumn, int] = {
    LabelColumn.PRIMARY: PRIMARY_LABEL_COLUMN,
    LabelColumn.SECONDARY: SECONDARY_LABEL_COLUMN,
}

# Workbook rows: the date is looked for in at least the first three columns.
SHEET_DATE_SEARCH_COLUMNS = 2


class SheetRow(NamedTuple):
    row_index: int
    date: str
    aggregation: AggregationResult


def _attributed_locations(grid: Grid, row_index: int, registry: LocationRegistry) -> list[CanonicalLocation]:
    """Locations named by this row, each checked only in its own label column."""
    found: list[CanonicalLocation] = []
    for label_column, col in LABEL_COLUMN_INDEX.items():
        location = registry.resolve(cell_at(grid, row_index, col))
        if location is not None and location.label_column == label_column and location not in found:
            found.append(location)
    return found


def _label_text(grid: Grid, row_index: int) -> str:
    return " ".join(
        cell_text(cell_at(grid, row_index, col))
        for col in (SECONDARY_LABEL_COLUMN, PRIMARY_LABEL_COLUMN)
    )


def aggregate(
    grid: Grid,
    layout: Layout,
    profile: CategoryProfile,
    registry: LocationRegistry,
) -> AggregationResult:
    """Sum the category's value column per canonical location.

    Rows below the header are attributed to a location when the row's label
    cell for that location's label column resolves to it. A row whose label
    is a grand-total label is not attributed; its positive quantity becomes
    the grand total (last such row wins). Without one, the grand total is the
    sum of the per-location totals.
    """
    totals = registry.empty_totals()
    aux_fields: dict[str, Optional[int]] = {rule.name: None for rule in profile.aux_fields}
    total_row_value: Optional[int] = None
    matched_rows = 0

    for row_index in range(layout.header_row + 1, len(grid)):
        quantity = parse_quantity(cell_at(grid, row_index, profile.value_column))

        if any(
            is_total_label(cell_at(grid, row_index, col))
            for col in LABEL_COLUMN_INDEX.values()
        ):
            if quantity > 0:
                total_row_value = quantity
                logger.debug("aggregate_total_row | row=%s | value=%s", row_index, quantity)
            continue

        locations = _attributed_locations(grid, row_index, registry)
        if not locations:
            continue
        matched_rows += 1

        keys = {location.key for location in locations}
        if profile.aux_fields:
            label = _label_text(grid, row_index)
            for rule in profile.aux_fields:
                if rule.location_key in keys and any(marker in label for marker in rule.markers):
                    aux_fields[rule.name] = quantity

        if quantity <= 0:
            continue
        for location in locations:
            totals[location.key] += quantity
            logger.debug(
                "aggregate_row | row=%s | location=%s | add=%s | total=%s",
                row_index,
                location.key,
                quantity,
                totals[location.key],
            )

    if total_row_value is not None:
        grand_total = total_row_value
        source = TotalSource.TOTAL_ROW
    else:
        grand_total = sum(totals.values())
        source = TotalSource.LOCATION_SUM

    result = AggregationResult(
        location_totals=totals,
        grand_total=grand_total,
        total_source=source,
        aux_fields=aux_fields,
        matched_rows=matched_rows,
    )
    logger.info(
        "aggregate_complete | category=%s | value_column=%s | matched_rows=%s | grand_total=%s | source=%s",
        profile.category.value,
        profile.value_column,
        matched_rows,
        grand_total,
        source.value,
    )
    return result


def _row_date(grid: Grid, row_index: int, layout: Layout) -> Optional[str]:
    date_column = layout.date_column if layout.date_column is not None else 0
    last = max(date_column, SHEET_DATE_SEARCH_COLUMNS)
    for col in range(last + 1):
        value = cell_at(grid, row_index, col)
        # Serial numbers only count in the date column; elsewhere a number is a quantity.
        if col != date_column and isinstance(value, numbers.Real) and not isinstance(value, bool):
            continue
        parsed = parse_date(value)
        if parsed:
            return parsed
    return None


def aggregate_sheet_rows(grid: Grid, layout: Layout, registry: LocationRegistry) -> list[SheetRow]:
    """Turn every dated row of a workbook table into its own aggregation.

    Rows without a parsable date are headings, notes or blank lines and
    are skipped.
    """
    results: list[SheetRow] = []

    for row_index in range(layout.header_row + 1, len(grid)):
        row = grid[row_index] or []
        if all(is_empty(value) for value in row):
            continue

        date = _row_date(grid, row_index, layout)
        if date is None:
            continue

        totals = registry.empty_totals()
        for col, key in layout.location_columns.items():
            quantity = parse_quantity(cell_at(grid, row_index, col))
            if quantity > 0:
                totals[key] += quantity

        column_total = 0
        if layout.total_column is not None:
            column_total = parse_quantity(cell_at(grid, row_index, layout.total_column))

        if column_total > 0:
            grand_total = column_total
            source = TotalSource.TOTAL_COLUMN
        else:
            grand_total = sum(totals.values())
            source = TotalSource.LOCATION_SUM

        results.append(
            SheetRow(
                row_index=row_index,
                date=date,
                aggregation=AggregationResult(
                    location_totals=totals,
                    grand_total=grand_total,
                    total_source=source,
                    matched_rows=1,
                ),
            )
        )

    logger.info(
        "aggregate_sheet_complete | header_row=%s | dated_rows=%s | location_columns=%s",
        layout.header_row,
        len(results),
        len(layout.location_columns),
    )
    return results


def hadyai_quantity(aggregation: AggregationResult) -> int:
    """Hat Yai (FC33) quantity stored alongside the totals."""
    return aggregation.location_totals.get(HADYAI, 0)
