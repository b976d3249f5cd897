"""Operator and named-function table for formula evaluation.

Every implementation takes a list of already-evaluated arguments and returns
a number or :data:`UNRESOLVED`.  Arguments may be ``None`` (an empty cell) only
for functions that allow null arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


# ---------------------------------------------------------------------------
# Unresolved: the value of anything that cannot be fully determined
# ---------------------------------------------------------------------------


class Unresolved:
    """Singleton marking a value that cannot be resolved.

    Distinct from ``None``, which marks an intentionally empty cell.
    Use the module-level :data:`UNRESOLVED` instance.
    """

    __slots__ = ()
    _instance: Unresolved | None = None

    def __new__(cls) -> Unresolved:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "UNRESOLVED"


UNRESOLVED = Unresolved()


def is_number(val: Any) -> bool:
    """Return True for int/float values (bools are not numbers here)."""
    return isinstance(val, (int, float)) and not isinstance(val, bool)


# ---------------------------------------------------------------------------
# Function wrapper
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Function:
    """A named evaluation function.

    ``name`` is used in diagnostics; ``allows_null`` marks functions that
    accept empty cells as arguments.
    """

    name: str
    impl: Callable[[list[Any]], Any]
    allows_null: bool = False

    def __call__(self, args: list[Any]) -> Any:
        return self.impl(args)

    def __repr__(self) -> str:
        return f"Function({self.name!r})"


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


def _negate(args: list[Any]) -> Any:
    (arg,) = args
    if is_number(arg):
        return -arg
    return UNRESOLVED


def _add(args: list[Any]) -> Any:
    left, right = args
    if is_number(left) and is_number(right):
        return left + right
    return UNRESOLVED


def _minus(args: list[Any]) -> Any:
    left, right = args
    if is_number(left) and is_number(right):
        return left - right
    return UNRESOLVED


def _multiply(args: list[Any]) -> Any:
    left, right = args
    if is_number(left) and is_number(right):
        return left * right
    return UNRESOLVED


def _divide(args: list[Any]) -> Any:
    left, right = args
    if is_number(left) and is_number(right):
        if right == 0:
            return UNRESOLVED
        return left / right
    return UNRESOLVED


# ---------------------------------------------------------------------------
# Named functions
# ---------------------------------------------------------------------------


def _builtin_sum(args: list[Any]) -> Any:
    total = 0
    for arg in args:
        if is_number(arg):
            total += arg
        elif arg is not None:
            return UNRESOLVED
        # empty cells count as nothing
    return total


def _builtin_avg(args: list[Any]) -> Any:
    total = 0
    count = 0
    for arg in args:
        if is_number(arg):
            total += arg
            count += 1
        elif arg is not None:
            return UNRESOLVED
    if count == 0:
        return UNRESOLVED
    return total / count


UNARY_OPERATORS: dict[str, Function] = {
    "-": Function("-", _negate),
}

BINARY_OPERATORS: dict[str, Function] = {
    "*": Function("*", _multiply),
    "/": Function("/", _divide),
    "+": Function("+", _add),
    "-": Function("-", _minus),
}

NAMED_FUNCTIONS: dict[str, Function] = {
    "sum": Function("sum", _builtin_sum, allows_null=True),
    "avg": Function("avg", _builtin_avg, allows_null=True),
}


def get_function(name: str) -> Function | None:
    """Case-insensitive lookup of a named function."""
    return NAMED_FUNCTIONS.get(name.lower())


def is_supported(func_name: str) -> bool:
    """Check if a function name is in the fixed function table."""
    return func_name.lower() in NAMED_FUNCTIONS
