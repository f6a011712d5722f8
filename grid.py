"""
grid.py - Grid access and merged-cell repair.

A grid is a list of rows, each a list of raw cell values exactly as the OCR
collaborator or spreadsheet reader produced them. Rows may be ragged.
Nothing here mutates its input.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Iterable, Optional

Grid = list[list[Any]]


def cell_text(value: Any) -> str:
    """Render a cell as trimmed text.

    None and NaN become "", integral floats lose their ".0" (spreadsheet
    readers hand back 1234.0 for 1234).
    """
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def cell_at(grid: Grid, row: int, col: int) -> Any:
    """Raw cell value, or None when the position is outside a ragged row."""
    if row < 0 or row >= len(grid):
        return None
    cells = grid[row] or []
    if col < 0 or col >= len(cells):
        return None
    return cells[col]


def is_empty(value: Any) -> bool:
    return cell_text(value) == ""


def grid_shape(grid: Grid) -> tuple[int, int]:
    """(row count, widest row) for logging."""
    if not grid:
        return 0, 0
    return len(grid), max((len(row or []) for row in grid), default=0)


def fill_down(
    grid: Grid,
    columns: Iterable[int],
    start_row: int = 0,
    stop: Optional[Callable[[Any], bool]] = None,
) -> Grid:
    """Repair merged label cells by carrying values downward.

    For each column in `columns`, an empty cell takes the nearest preceding
    non-empty value of the same column. Cells above the first non-empty
    value stay as they are. Returns a new grid of the same shape.

    Rows before `start_row` are neither filled nor carried from. A value
    for which `stop(value)` is true ends the carry instead of starting one.
    """
    targets = sorted(set(columns))
    filled: Grid = [list(row or []) for row in grid]

    for col in targets:
        carry: Any = None
        for row in filled[max(0, start_row):]:
            if col >= len(row):
                continue
            if is_empty(row[col]):
                if carry is not None:
                    row[col] = carry
            elif stop is not None and stop(row[col]):
                carry = None
            else:
                carry = row[col]
    return filled
