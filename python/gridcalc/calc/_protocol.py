"""Cell entry kinds, entry reports and the display-change callback protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from gridcalc.calc._parser import ParseError, Span


@dataclass(frozen=True)
class StaticFormula:
    """A formula with no in-scope references; its value never changes."""

    text: str  # formula text without the leading "="
    tree: Any = field(repr=False, compare=False)  # bound tree, kept for diagnostics
    value: Any  # number or UNRESOLVED


@dataclass(frozen=True)
class DynamicFormula:
    """A formula reading at least one in-scope cell.

    The bound tree lives on the cell's node.
    """

    text: str


@dataclass(frozen=True)
class InvalidFormula:
    """A formula that failed to parse."""

    text: str
    error: ParseError


FORMULA_ENTRY_TYPES = (StaticFormula, DynamicFormula, InvalidFormula)


def is_formula_entry(entry: Any) -> bool:
    return isinstance(entry, FORMULA_ENTRY_TYPES)


@dataclass(frozen=True)
class CellEntryInfo:
    """What the user typed into a cell, with formula diagnostics.

    ``error_regions`` index into ``text`` (which includes the ``=`` of a
    formula) and are sorted and non-overlapping.
    """

    text: str
    depends_on: tuple[str, ...] | None = None  # dynamic formulas only
    error_regions: tuple[Span, ...] | None = None
    error_messages: tuple[str, ...] | None = None

    @property
    def has_errors(self) -> bool:
        return bool(self.error_messages)


@runtime_checkable
class DisplayCallback(Protocol):
    """Receives a cell's new display value after it changes.

    ``display_value`` is a number, a text string (``""`` when empty) or
    UNRESOLVED.  ``is_special`` is True when the cell holds a formula.
    """

    def __call__(self, cell_name: str, display_value: Any, is_special: bool) -> None:
        ...
