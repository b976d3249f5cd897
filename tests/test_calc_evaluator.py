"""Tests for gridcalc.calc evaluation and diagnosis of bound trees."""

from __future__ import annotations

import pytest

from gridcalc.calc._evaluator import diagnose, evaluate, format_target
from gridcalc.calc._functions import BINARY_OPERATORS, NAMED_FUNCTIONS, UNRESOLVED
from gridcalc.calc._nodes import CellNode, CellRef
from gridcalc.calc._parser import Call, Span


def _node(name: str, cache: object) -> CellNode:
    node = CellNode(name)
    node.cache = cache
    return node


def _ref(node: CellNode | None, name: str, index: int = 0, label: str | None = None) -> CellRef:
    return CellRef(node, name, Span(index, len(label or name)), label)


def _plus(left: object, right: object) -> Call:
    return Call(BINARY_OPERATORS["+"], [left, right], Span(0, 5))


def _sum(*args: object) -> Call:
    return Call(NAMED_FUNCTIONS["sum"], list(args), Span(0, 10), True)


class TestEvaluate:
    def test_literal(self) -> None:
        assert evaluate(4.5) == 4.5

    def test_reference_reads_cache(self) -> None:
        assert evaluate(_plus(_ref(_node("a1", 2), "a1"), 3)) == 5

    def test_out_of_scope_reference(self) -> None:
        assert evaluate(_ref(None, "a99")) is UNRESOLVED

    def test_empty_reference_at_top_level(self) -> None:
        assert evaluate(_ref(_node("a1", None), "a1")) is UNRESOLVED

    def test_empty_reference_in_operator(self) -> None:
        assert evaluate(_plus(_ref(_node("a1", None), "a1"), 1)) is UNRESOLVED

    def test_empty_reference_in_sum(self) -> None:
        tree = _sum(_ref(_node("a1", None), "a1"), _ref(_node("a2", 3), "a2"))
        assert evaluate(tree) == 3

    def test_null_only_allowed_as_direct_argument(self) -> None:
        inner = _plus(_ref(_node("a1", None), "a1"), 1)
        assert evaluate(_sum(inner, 2)) is UNRESOLVED

    def test_unexpected_tree(self) -> None:
        with pytest.raises(TypeError):
            evaluate("text")


class TestFormatTarget:
    def test_bare(self) -> None:
        assert format_target("a1", ["a1"]) == "a1"

    def test_range_only(self) -> None:
        assert format_target("a51", ["a49:a51"]) == "a51 (a49:a51)"

    def test_bare_first(self) -> None:
        assert format_target("b4", ["b1:b4", "b4"]) == "b4 (b4, b1:b4)"


class TestDiagnose:
    def test_empty_reference(self) -> None:
        diagnosis = diagnose(_plus(_ref(_node("b1", None), "b1"), 2))
        assert diagnosis.messages() == ["Reference is empty: b1"]
        assert diagnosis.regions() == [Span(0, 2)]

    def test_causes_in_fixed_order(self) -> None:
        tree = _sum(
            _ref(_node("c1", UNRESOLVED), "c1", 12),
            _ref(None, "a99", 4),
            Call(BINARY_OPERATORS["/"], [1, 0], Span(20, 5)),
        )
        assert diagnose(tree).messages() == [
            "Function evaluation is not defined for: /",
            "Reference is out of scope: a99",
            "Reference is undetermined: c1",
        ]

    def test_self_dependency_needs_owner(self) -> None:
        owner = _node("a1", UNRESOLVED)
        tree = _ref(owner, "a1")
        assert diagnose(tree).messages() == ["Reference is undetermined: a1"]

    def test_resolved_tree_has_no_findings(self) -> None:
        diagnosis = diagnose(_plus(_ref(_node("a1", 1), "a1"), 2))
        assert diagnosis.messages() == []
        assert diagnosis.regions() == []

    def test_repeated_target_reported_once(self) -> None:
        empty = _node("b2", None)
        tree = _plus(_ref(empty, "b2", 0), _ref(empty, "b2", 5))
        diagnosis = diagnose(tree)
        assert diagnosis.messages() == ["Reference is empty: b2"]
        assert diagnosis.regions() == [Span(0, 2), Span(5, 2)]
