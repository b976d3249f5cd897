"""Reactive cell dependency graph.

Only *active* cells get a node: cells holding a formula with in-scope
references, and cells referenced by such formulas.  Writing a cell updates
its edges, registers or breaks dependency cycles, and floods cache
recomputation to its dependants, reporting every visible display change
through a callback.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from gridcalc._utils import canonical_cell_name, column_to_number, split_cell_name
from gridcalc.calc._evaluator import diagnose, evaluate
from gridcalc.calc._functions import UNRESOLVED, is_number
from gridcalc.calc._nodes import CellNode, CellRef, find_cycles_from, iter_ref_nodes
from gridcalc.calc._parser import (
    Call,
    ParseError,
    Reference,
    ReferenceRange,
    Span,
    parse_formula,
    to_number,
)
from gridcalc.calc._protocol import (
    CellEntryInfo,
    DisplayCallback,
    DynamicFormula,
    InvalidFormula,
    StaticFormula,
    is_formula_entry,
)

logger = logging.getLogger(__name__)

_FORMULA_RE = re.compile(r"^\s*=")
_NUMBER_ENTRY_RE = re.compile(r"^\s*[-+]?[0-9]+(\.[0-9]+)?\s*$")


def _static_cache(value: Any) -> Any:
    """Cache value for a node whose value is a plain entry."""
    if is_number(value):
        return value
    if isinstance(value, StaticFormula):
        return value.value
    if value is None:
        return None
    # text and invalid formulas
    return UNRESOLVED


def _same_value(a: Any, b: Any) -> bool:
    if a is b:
        return True
    return is_number(a) and is_number(b) and a == b


def _same_entry(a: Any, b: Any) -> bool:
    return type(a) is type(b) and a == b


class CellGraph:
    """Dependency graph over a rectangular grid of cells.

    Cells inside ``a1`` .. ``<max_column><max_row>`` are in scope.  Any
    cell may be written, but references to out-of-scope cells never resolve.

    ``on_display_change(name, value, is_special)`` is called for the written
    cell when its display changes, and for every formula cell whose value
    changes as a consequence.
    """

    __slots__ = (
        "min_col", "max_col", "min_row", "max_row",
        "_active", "_entries", "_on_display_change", "_writing",
    )

    def __init__(
        self,
        max_column: str,
        max_row: int | str,
        on_display_change: DisplayCallback | None = None,
    ) -> None:
        self.min_col = column_to_number("a")
        self.max_col = column_to_number(max_column.lower())
        self.min_row = 1
        self.max_row = int(max_row)
        # name -> node, only for active cells
        self._active: dict[str, CellNode] = {}
        # name -> non-empty entry
        self._entries: dict[str, Any] = {}
        self._on_display_change = on_display_change
        # cell being written; it is reported once, at the end of the write
        self._writing: str | None = None

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def in_scope(self, col: str, row: int) -> bool:
        col_number = column_to_number(col)
        return (
            self.min_col <= col_number <= self.max_col
            and self.min_row <= row <= self.max_row
        )

    def get_node(self, name: str) -> CellNode | None:
        return self._active.get(canonical_cell_name(name))

    @property
    def active_cells(self) -> list[str]:
        return list(self._active)

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    def display_value(self, name: str) -> tuple[Any, bool]:
        """Current ``(value, is_special)`` shown for a cell."""
        name = canonical_cell_name(name)
        return self._display(self._active.get(name), self._entries.get(name))

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def set_cell_entry(self, name: str, text: str) -> None:
        """Store the text typed into a cell and propagate its effects."""
        name = canonical_cell_name(name)
        prev_entry = self._entries.get(name)
        node = self._active.get(name)
        prev_display = self._display(node, prev_entry)

        if _FORMULA_RE.match(text):
            formula_text = _FORMULA_RE.sub("", text, count=1).strip()
            if is_formula_entry(prev_entry) and prev_entry.text == formula_text:
                logger.debug("No change to %s", name)
                return
            entry, value = self._classify_formula(formula_text)
            # binding may have created this cell's node (self-reference)
            node = self._active.get(name)
            if isinstance(entry, DynamicFormula) and node is None:
                node = self._create_node(name)
        else:
            if _NUMBER_ENTRY_RE.match(text):
                entry = to_number(text.strip())
            else:
                entry = text.rstrip() or None
            if not is_formula_entry(prev_entry) and _same_entry(entry, prev_entry):
                logger.debug("No change to %s", name)
                return
            value = entry

        logger.debug("Set %s to %r", name, entry)
        if entry is None:
            self._entries.pop(name, None)
        else:
            self._entries[name] = entry

        if node is not None:
            self._writing = name
            try:
                self._set_node_value(node, value)
            finally:
                self._writing = None

        display = self._display(self._active.get(name, node), entry)
        if display != prev_display:
            self._notify(name, *display)

    def _classify_formula(self, formula_text: str) -> tuple[Any, Any]:
        """Return ``(entry, node value)`` for formula text."""
        try:
            tree = parse_formula(formula_text)
        except ParseError as exc:
            logger.debug("Invalid formula %r: %s", formula_text, exc.message)
            entry = InvalidFormula(formula_text, exc)
            return entry, entry

        bound = self._bind(tree)
        if any(True for _ in iter_ref_nodes(bound)):
            return DynamicFormula(formula_text), bound
        entry = StaticFormula(formula_text, bound, evaluate(bound))
        return entry, entry

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    def _bind(self, tree: Any) -> Any:
        """Replace references with CellRefs, expanding ranges in place.

        The freshly parsed tree is rewritten with an explicit stack, since
        operator chains nest as deep as they are long.
        """
        if isinstance(tree, Reference):
            return self._bind_reference(tree.name, tree.span, None)
        pending = [tree] if isinstance(tree, Call) else []
        while pending:
            call = pending.pop()
            args: list[Any] = []
            for arg in call.args:
                if isinstance(arg, ReferenceRange):
                    args.extend(self._bind_range(arg))
                elif isinstance(arg, Reference):
                    args.append(self._bind_reference(arg.name, arg.span, None))
                else:
                    if isinstance(arg, Call):
                        pending.append(arg)
                    args.append(arg)
            call.args = args
        return tree

    def _bind_range(self, rng: ReferenceRange) -> list[CellRef]:
        """Bind the in-scope rows of a range.

        Rows past the grid share one out-of-scope placeholder, named after
        the first of them.
        """
        if column_to_number(rng.col) > self.max_col:
            return [CellRef(None, f"{rng.col}{rng.row_start}", rng.span, rng.label)]
        last = min(rng.row_end, self.max_row)
        refs = [
            self._bind_reference(f"{rng.col}{row}", rng.span, rng.label)
            for row in range(rng.row_start, last + 1)
        ]
        if rng.row_end > self.max_row:
            first_outside = max(rng.row_start, self.max_row + 1)
            refs.append(CellRef(None, f"{rng.col}{first_outside}", rng.span, rng.label))
        return refs

    def _bind_reference(self, name: str, span: Span, range_label: str | None) -> CellRef:
        col, row = split_cell_name(name)
        if not self.in_scope(col, row):
            return CellRef(None, name, span, range_label)
        node = self._active.get(name)
        if node is None:
            node = self._create_node(name)
        return CellRef(node, name, span, range_label)

    def _create_node(self, name: str) -> CellNode:
        entry = self._entries.get(name)
        # a dynamic entry always has a node already
        value = None if isinstance(entry, DynamicFormula) else entry
        node = CellNode(name, value)
        node.cache = _static_cache(value)
        self._active[name] = node
        logger.debug("Activated %s", name)
        return node

    # ------------------------------------------------------------------
    # Edges, cycles and caches
    # ------------------------------------------------------------------

    def _set_node_value(self, node: CellNode, value: Any) -> None:
        node.value = value
        node.is_dynamic = isinstance(value, (Call, CellRef))

        new_deps = set(iter_ref_nodes(value))
        gained = new_deps - node.depends_on
        lost = node.depends_on - new_deps
        node.depends_on = new_deps

        for dep in lost:
            dep.remove_dependant(node)
        for dep in gained:
            dep.dependants.add(node)

        # cycles that ran through a removed edge
        for cycle, next_node in list(node.cycles.items()):
            if next_node in lost:
                logger.debug("Broke %r", cycle)
                cycle.unregister()

        for dep in gained:
            for cycle in find_cycles_from(node, dep):
                logger.debug("Found %r", cycle)
                cycle.register()

        self._refresh(node)

        for dep in lost:
            self._release(dep)
        self._release(node)

    def _compute_cache(self, node: CellNode) -> Any:
        if node.is_dynamic:
            if node.cycles:
                return UNRESOLVED
            return evaluate(node.value)
        return _static_cache(node.value)

    def _refresh(self, start: CellNode) -> None:
        """Recompute *start* and flood changes through its dependants."""
        pending = [start]
        while pending:
            node = pending.pop()
            previous = node.cache
            node.cache = self._compute_cache(node)
            if _same_value(previous, node.cache):
                continue
            if node.is_dynamic and node.name != self._writing:
                self._notify(node.name, node.cache, True)
            pending.extend(node.dependants)

    def _release(self, node: CellNode) -> None:
        """Drop a node that no longer takes part in the graph."""
        if node.is_dynamic or node.has_edges:
            return
        if self._active.get(node.name) is node:
            del self._active[node.name]
            logger.debug("Deactivated %s", node.name)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    @staticmethod
    def _display(node: CellNode | None, entry: Any) -> tuple[Any, bool]:
        if isinstance(entry, DynamicFormula):
            return node.cache, True
        if isinstance(entry, InvalidFormula):
            return UNRESOLVED, True
        if isinstance(entry, StaticFormula):
            return entry.value, True
        if entry is None:
            return "", False
        return entry, False

    def _notify(self, name: str, value: Any, is_special: bool) -> None:
        if self._on_display_change is not None:
            self._on_display_change(name, value, is_special)

    # ------------------------------------------------------------------
    # Reading back entries
    # ------------------------------------------------------------------

    def get_cell_entry(self, name: str) -> CellEntryInfo | None:
        """What was typed into a cell, plus diagnostics for formulas.

        Returns None for empty cells.
        """
        name = canonical_cell_name(name)
        entry = self._entries.get(name)
        if entry is None:
            return None

        if isinstance(entry, InvalidFormula):
            exc = entry.error
            # an empty formula highlights its "="
            region = Span(exc.index + 1, exc.length) if exc.length else Span(0, 1)
            return CellEntryInfo(
                "=" + entry.text,
                error_regions=(region,),
                error_messages=(exc.message,),
            )

        if isinstance(entry, StaticFormula):
            if entry.value is UNRESOLVED:
                return self._diagnosed("=" + entry.text, entry.tree, None, None)
            return CellEntryInfo("=" + entry.text)

        if isinstance(entry, DynamicFormula):
            node = self._active[name]
            depends_on = tuple(dict.fromkeys(dep.name for dep in iter_ref_nodes(node.value)))
            if node.cache is UNRESOLVED:
                return self._diagnosed("=" + entry.text, node.value, node, depends_on)
            return CellEntryInfo("=" + entry.text, depends_on=depends_on)

        if is_number(entry):
            return CellEntryInfo(str(entry))
        return CellEntryInfo(entry)

    @staticmethod
    def _diagnosed(
        text: str, tree: Any, owner: CellNode | None, depends_on: tuple[str, ...] | None,
    ) -> CellEntryInfo:
        diagnosis = diagnose(tree, owner)
        messages = diagnosis.messages()
        if not messages:
            return CellEntryInfo(text, depends_on=depends_on)
        # regions index the formula text; shift past the "="
        regions = tuple(region.shift(1) for region in diagnosis.regions())
        return CellEntryInfo(
            text,
            depends_on=depends_on,
            error_regions=regions,
            error_messages=tuple(messages),
        )
