"""Tests for gridcalc.calc operator and function table."""

from __future__ import annotations

import pickle

import pytest

from gridcalc.calc._functions import (
    BINARY_OPERATORS,
    NAMED_FUNCTIONS,
    UNARY_OPERATORS,
    UNRESOLVED,
    Unresolved,
    get_function,
    is_number,
    is_supported,
)


class TestUnresolved:
    def test_singleton(self) -> None:
        assert Unresolved() is UNRESOLVED

    def test_distinct_from_none(self) -> None:
        assert UNRESOLVED is not None
        assert not UNRESOLVED
        assert repr(UNRESOLVED) == "UNRESOLVED"

    def test_pickle_keeps_identity(self) -> None:
        assert pickle.loads(pickle.dumps(UNRESOLVED)) is UNRESOLVED

    def test_is_number_excludes_bools(self) -> None:
        assert is_number(3)
        assert is_number(2.5)
        assert not is_number(True)
        assert not is_number(None)
        assert not is_number(UNRESOLVED)


class TestLookup:
    def test_case_insensitive(self) -> None:
        assert get_function("SUM") is NAMED_FUNCTIONS["sum"]
        assert get_function("Avg") is NAMED_FUNCTIONS["avg"]
        assert is_supported("sUm")

    def test_unknown(self) -> None:
        assert get_function("max") is None
        assert not is_supported("max")

    def test_named_functions_allow_null(self) -> None:
        assert all(f.allows_null for f in NAMED_FUNCTIONS.values())
        assert not any(f.allows_null for f in BINARY_OPERATORS.values())
        assert not UNARY_OPERATORS["-"].allows_null


class TestOperators:
    @pytest.mark.parametrize(
        "symbol, args, expected",
        [
            ("+", [2, 3], 5),
            ("-", [2, 3], -1),
            ("*", [2, 3], 6),
            ("/", [3, 2], 1.5),
        ],
    )
    def test_binary(self, symbol: str, args: list, expected: float) -> None:
        assert BINARY_OPERATORS[symbol](args) == expected

    def test_negate(self) -> None:
        assert UNARY_OPERATORS["-"]([4]) == -4

    def test_divide_by_zero(self) -> None:
        assert BINARY_OPERATORS["/"]([1, 0]) is UNRESOLVED
        assert BINARY_OPERATORS["/"]([0, 0.0]) is UNRESOLVED

    def test_non_number_operand(self) -> None:
        assert BINARY_OPERATORS["+"]([1, None]) is UNRESOLVED
        assert UNARY_OPERATORS["-"]([None]) is UNRESOLVED


class TestNamedFunctions:
    def test_sum_skips_empty(self) -> None:
        assert NAMED_FUNCTIONS["sum"]([1, None, 2.5]) == 3.5

    def test_sum_of_nothing(self) -> None:
        assert NAMED_FUNCTIONS["sum"]([]) == 0
        assert NAMED_FUNCTIONS["sum"]([None, None]) == 0

    def test_avg_counts_only_numbers(self) -> None:
        assert NAMED_FUNCTIONS["avg"]([5, None, 4]) == 4.5

    def test_avg_of_nothing(self) -> None:
        assert NAMED_FUNCTIONS["avg"]([]) is UNRESOLVED
        assert NAMED_FUNCTIONS["avg"]([None]) is UNRESOLVED

    def test_text_argument(self) -> None:
        assert NAMED_FUNCTIONS["sum"]([1, "x"]) is UNRESOLVED
        assert NAMED_FUNCTIONS["avg"]([1, "x"]) is UNRESOLVED
