"""
test_grid.py - Grid helpers and merged-cell repair.

Usage: pytest test_grid.py
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from grid import cell_at, cell_text, fill_down, grid_shape, is_empty


def _column(grid, col=0):
    return [row[col] for row in grid]


def test_fill_down_carries_last_value():
    grid = [["A"], [""], [""], ["B"], [""]]
    assert _column(fill_down(grid, [0])) == ["A", "A", "A", "B", "B"]


def test_fill_down_leaves_leading_empties():
    grid = [[""], [""], ["A"]]
    assert _column(fill_down(grid, [0])) == ["", "", "A"]


def test_fill_down_only_touches_requested_columns_and_copies():
    grid = [["A", "x"], ["", ""], [None, "  "]]
    filled = fill_down(grid, [0])

    assert filled == [["A", "x"], ["A", ""], ["A", "  "]]
    assert grid == [["A", "x"], ["", ""], [None, "  "]]
    assert filled[0] is not grid[0]


def test_fill_down_skips_short_rows():
    grid = [["A", "B"], ["C"], ["", ""]]
    assert fill_down(grid, [0, 1]) == [["A", "B"], ["C"], ["C", "B"]]


def test_cell_text_and_access():
    assert cell_text(None) == ""
    assert cell_text(float("nan")) == ""
    assert cell_text(1234.0) == "1234"
    assert cell_text(12.5) == "12.5"
    assert cell_text("  หาดใหญ่ ") == "หาดใหญ่"
    assert is_empty("   ")

    grid = [["a", "b"], ["c"]]
    assert cell_at(grid, 1, 1) is None
    assert cell_at(grid, 5, 0) is None
    assert cell_at(grid, 0, 1) == "b"
    assert grid_shape(grid) == (2, 2)
    assert grid_shape([]) == (0, 0)


def test_fill_down_starts_below_given_row():
    grid = [["title"], ["header"], [""], ["A"], [""]]
    assert _column(fill_down(grid, [0], start_row=2)) == ["title", "header", "", "A", "A"]


def test_fill_down_stop_value_ends_the_carry():
    grid = [["A"], [""], ["รวม"], [""], ["B"], [""]]
    filled = fill_down(grid, [0], stop=lambda value: value == "รวม")
    assert _column(filled) == ["A", "A", "รวม", "", "B", "B"]
