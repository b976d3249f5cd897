"""Worksheet front end: ``ws['A1']`` access to a grid backed by a CellGraph."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from gridcalc._utils import canonical_cell_name, column_letters, format_number, split_cell_name
from gridcalc.calc._functions import UNRESOLVED, is_number
from gridcalc.calc._graph import CellGraph
from gridcalc.calc._protocol import CellEntryInfo

UNDETERMINED_TEXT = "???"


@dataclass(frozen=True)
class CellDisplay:
    """What a cell shows in the grid."""

    text: str = ""
    kind: str = "empty"  # "empty", "number", "text" or "undetermined"
    special: bool = False  # the cell holds a formula

    @property
    def is_empty(self) -> bool:
        return self.kind == "empty"


EMPTY_DISPLAY = CellDisplay()


def to_display(value: Any, special: bool) -> CellDisplay:
    """Convert a display value reported by the graph."""
    if value is UNRESOLVED:
        return CellDisplay(UNDETERMINED_TEXT, "undetermined", special)
    if is_number(value):
        return CellDisplay(format_number(value), "number", special)
    if value == "":
        return CellDisplay("", "empty", special)
    return CellDisplay(str(value), "text", special)


class Worksheet:
    """A fixed-size grid of cells.

    Column letters run ``a`` .. the *columns*-th label and rows run
    ``1`` .. *rows*.  Cell names are case-insensitive.
    """

    __slots__ = ("_graph", "_columns", "_rows", "_letters", "_cells")

    def __init__(self, columns: int = 26, rows: int = 50) -> None:
        if columns < 1 or rows < 1:
            raise ValueError("A worksheet needs at least one row and one column")
        self._columns = columns
        self._rows = rows
        self._letters = column_letters(columns)
        # name -> display, for cells that show something
        self._cells: dict[str, CellDisplay] = {}
        self._graph = CellGraph(self._letters[-1], rows, self._display_changed)

    @property
    def graph(self) -> CellGraph:
        return self._graph

    @property
    def column_letters(self) -> list[str]:
        return list(self._letters)

    @property
    def dimensions(self) -> tuple[int, int]:
        """``(rows, columns)``."""
        return (self._rows, self._columns)

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def _checked_name(self, key: str) -> str:
        col, row = split_cell_name(key)
        if not self._graph.in_scope(col, row):
            raise KeyError(f"Cell {key!r} is outside the worksheet")
        return f"{col}{row}"

    def cell_name(self, row: int, column: int) -> str:
        """Name of the cell at 1-based ``(row, column)``."""
        if not (1 <= row <= self._rows and 1 <= column <= self._columns):
            raise KeyError(f"Cell ({row}, {column}) is outside the worksheet")
        return f"{self._letters[column - 1]}{row}"

    def __getitem__(self, key: str) -> CellDisplay:
        """``ws['A1']`` -> CellDisplay."""
        return self._cells.get(self._checked_name(key), EMPTY_DISPLAY)

    def __setitem__(self, key: str, value: Any) -> None:
        """``ws['A1'] = '=b1 * 2'`` -- store what the user typed."""
        if value is None:
            value = ""
        elif not isinstance(value, str):
            value = str(value)
        self._graph.set_cell_entry(self._checked_name(key), value)

    def __delitem__(self, key: str) -> None:
        self[key] = ""

    def entry(self, key: str) -> CellEntryInfo | None:
        return self._graph.get_cell_entry(self._checked_name(key))

    def depends_on(self, key: str) -> tuple[str, ...]:
        """Cells a formula cell currently reads, in formula order."""
        info = self.entry(key)
        if info is None or info.depends_on is None:
            return ()
        return info.depends_on

    def entry_segments(self, key: str) -> list[tuple[str, bool]]:
        """Split a cell's entry text into ``(text, is_error)`` pieces."""
        info = self.entry(key)
        if info is None:
            return []
        text = info.text
        segments: list[tuple[str, bool]] = []
        pos = 0
        for region in info.error_regions or ():
            if region.index > pos:
                segments.append((text[pos : region.index], False))
            segments.append((region.slice(text), True))
            pos = region.end
        if pos < len(text):
            segments.append((text[pos:], False))
        return segments

    def iter_rows(
        self,
        min_row: int | None = None,
        max_row: int | None = None,
        min_col: int | None = None,
        max_col: int | None = None,
        values_only: bool = False,
    ) -> Iterator[tuple[Any, ...]]:
        """Iterate over rows in a range, like openpyxl's ``iter_rows``.

        Yields CellDisplay tuples, or display texts with *values_only*.
        """
        r_min = min_row or 1
        r_max = max_row or self._rows
        c_min = min_col or 1
        c_max = max_col or self._columns

        for r in range(r_min, r_max + 1):
            row = [
                self._cells.get(self.cell_name(r, c), EMPTY_DISPLAY)
                for c in range(c_min, c_max + 1)
            ]
            if values_only:
                yield tuple(display.text for display in row)
            else:
                yield tuple(row)

    def _display_changed(self, cell_name: str, display_value: Any, is_special: bool) -> None:
        display = to_display(display_value, is_special)
        name = canonical_cell_name(cell_name)
        if display.is_empty and not display.special:
            self._cells.pop(name, None)
        else:
            self._cells[name] = display

    def __repr__(self) -> str:
        return f"<Worksheet {self._rows}x{self._columns}>"
