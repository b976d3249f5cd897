"""Evaluate bound formula trees and explain unresolved results."""

from __future__ import annotations

from typing import Any, Callable

from gridcalc.calc._functions import UNRESOLVED, is_number
from gridcalc.calc._nodes import CellNode, CellRef
from gridcalc.calc._parser import Call, Span
from gridcalc.calc._regions import merge_regions

# ---------------------------------------------------------------------------
# Tree walking
# ---------------------------------------------------------------------------


def _reduce_tree(
    tree: Any,
    leaf: Callable[[Any, bool], Any],
    finish: Callable[[Call, list[Any]], Any],
) -> Any:
    """Fold a bound tree bottom-up.

    ``leaf(el, allow_null)`` values a non-call element; ``allow_null`` is the
    enclosing call's ``allows_null_args`` (False at the top level).
    ``finish(call, values)`` combines a call's argument values.  Uses an
    explicit stack since operator chains nest as deep as they are long.
    """
    if not isinstance(tree, Call):
        return leaf(tree, False)
    stack: list[tuple[Call, list[Any]]] = [(tree, [])]
    while True:
        call, values = stack[-1]
        if len(values) < len(call.args):
            arg = call.args[len(values)]
            if isinstance(arg, Call):
                stack.append((arg, []))
            else:
                values.append(leaf(arg, call.allows_null_args))
            continue
        result = finish(call, values)
        stack.pop()
        if not stack:
            return result
        stack[-1][1].append(result)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _leaf_value(el: Any, allow_null: bool) -> Any:
    if isinstance(el, CellRef):
        if el.node is None:
            return UNRESOLVED
        value = el.node.cache
        if value is None and not allow_null:
            return UNRESOLVED
        return value
    if is_number(el):
        return el
    raise TypeError(f"Unexpected {type(el).__name__} in formula tree")


def _apply(call: Call, values: list[Any]) -> Any:
    if any(value is UNRESOLVED for value in values):
        return UNRESOLVED
    return call.function(values)


def evaluate(tree: Any) -> Any:
    """Evaluate a bound tree against the current node caches.

    Empty cells (``None``) are only passed through as direct arguments of
    functions that accept them.  Every argument is evaluated before any
    unresolved one short-circuits the call.
    """
    return _reduce_tree(tree, _leaf_value, _apply)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

FUNCTION_UNDEFINED = "function"
OUT_OF_SCOPE = "out-of-scope"
EMPTY = "empty"
SELF_DEPENDENCY = "self-dependency"
UNDETERMINED = "undetermined"

# Reporting order
_CAUSE_PREFIXES: dict[str, str] = {
    FUNCTION_UNDEFINED: "Function evaluation is not defined for: ",
    OUT_OF_SCOPE: "Reference is out of scope: ",
    EMPTY: "Reference is empty: ",
    SELF_DEPENDENCY: "Reference is a self-dependency: ",
    UNDETERMINED: "Reference is undetermined: ",
}


def format_target(target: str, labels: list[str]) -> str:
    """``b4`` alone, or ``b4 (b4, b1:b4)`` when reached through ranges."""
    if labels == [target]:
        return target
    ordered = [target] if target in labels else []
    ordered.extend(label for label in labels if label != target)
    return f"{target} ({', '.join(ordered)})"


class Diagnosis:
    """Collects the causes that left a formula unresolved."""

    __slots__ = ("spans", "targets")

    def __init__(self) -> None:
        self.spans: list[Span] = []
        # cause -> target -> labels it was reached through (insertion ordered)
        self.targets: dict[str, dict[str, list[str]]] = {}

    def add(self, cause: str, target: str, label: str, span: Span) -> None:
        self.spans.append(span)
        labels = self.targets.setdefault(cause, {}).setdefault(target, [])
        if label not in labels:
            labels.append(label)

    def messages(self) -> list[str]:
        messages = []
        for cause, prefix in _CAUSE_PREFIXES.items():
            found = self.targets.get(cause)
            if found:
                messages.append(
                    prefix + ", ".join(format_target(t, labels) for t, labels in found.items())
                )
        return messages

    def regions(self) -> list[Span]:
        return merge_regions(list(self.spans))


def diagnose(tree: Any, owner: CellNode | None = None) -> Diagnosis:
    """Walk *tree* the way :func:`evaluate` does and record why it fails.

    *owner* is the node holding the formula, used to tell self-dependencies
    from other unresolved references.
    """
    diagnosis = Diagnosis()

    def leaf(el: Any, allow_null: bool) -> Any:
        if not isinstance(el, CellRef):
            return el
        node = el.node
        if node is None:
            cause = OUT_OF_SCOPE
        elif node.cache is None:
            if allow_null:
                return None
            cause = EMPTY
        elif node.cache is UNRESOLVED:
            if owner is not None and node.shares_cycle_with(owner):
                cause = SELF_DEPENDENCY
            else:
                cause = UNDETERMINED
        else:
            return node.cache
        diagnosis.add(cause, el.name, el.label, el.span)
        return UNRESOLVED

    def finish(call: Call, values: list[Any]) -> Any:
        result = _apply(call, values)
        # only blame the function when its arguments all resolved
        if result is UNRESOLVED and not any(value is UNRESOLVED for value in values):
            name = call.function.name
            diagnosis.add(FUNCTION_UNDEFINED, name, name, call.span)
        return result

    _reduce_tree(tree, leaf, finish)
    return diagnosis
