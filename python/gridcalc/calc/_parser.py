"""Formula parser: text -> expression tree with source spans.

The parser works in two phases over each (sub-)expression:

1. Tokenise into numbers, references, ranges, operator/separator symbols and
   already-parsed bracketed elements.  Bracket contents are parsed
   recursively as soon as the opening bracket is found.
2. Reduce operators in place: unary ``-`` first, then ``*``/``/``, then
   ``+``/``-``, each pass left to right.

Calls whose arguments are all literal numbers are folded into a number at
parse time, unless the result is unresolved (e.g. ``avg()``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any, Union

from gridcalc.calc._functions import (
    BINARY_OPERATORS,
    UNARY_OPERATORS,
    Function,
    get_function,
    is_number,
)

# ---------------------------------------------------------------------------
# Spans and errors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Span:
    """Half-open ``[index, index + length)`` range over formula text."""

    index: int
    length: int

    @property
    def end(self) -> int:
        return self.index + self.length

    def cover(self, other: Span) -> Span:
        """Smallest span from the start of *self* to the end of *other*."""
        return Span(self.index, other.index - self.index + other.length)

    def widen(self) -> Span:
        """Grow by one character on each side (enclosing brackets)."""
        return Span(self.index - 1, self.length + 2)

    def shift(self, offset: int) -> Span:
        return Span(self.index + offset, self.length)

    def slice(self, text: str) -> str:
        return text[self.index : self.end]


class ParseError(Exception):
    """A malformed formula.  ``index``/``length`` locate the offending text."""

    def __init__(self, index: int, length: int, message: str) -> None:
        super().__init__(message)
        self.index = index
        self.length = length
        self.message = message

    @property
    def span(self) -> Span:
        return Span(self.index, self.length)

    def __repr__(self) -> str:
        return f"ParseError({self.index}, {self.length}, {self.message!r})"


# ---------------------------------------------------------------------------
# Expression tree
# ---------------------------------------------------------------------------


@dataclass
class Reference:
    """A single cell reference such as ``b12`` (column is lower-cased)."""

    col: str
    row: int
    span: Span

    @property
    def name(self) -> str:
        return f"{self.col}{self.row}"


@dataclass
class ReferenceRange:
    """A same-column cell range such as ``b1:b5``.

    Only legal as a function argument.
    """

    col: str
    row_start: int
    row_end: int
    span: Span

    @property
    def label(self) -> str:
        return f"{self.col}{self.row_start}:{self.col}{self.row_end}"

    def names(self) -> list[str]:
        return [f"{self.col}{row}" for row in range(self.row_start, self.row_end + 1)]


@dataclass
class Call:
    """Application of an operator or named function to its arguments."""

    function: Function
    args: list[Any]
    span: Span
    allows_null_args: bool = False


Expression = Union[int, float, Reference, ReferenceRange, Call]


# Parse-time only: a literal that still carries its position.
@dataclass
class _RawNumber:
    number: int | float
    span: Span


@dataclass
class _RawSymbol:
    text: str
    span: Span


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

_WHITESPACE_RE = re.compile(r"\s+")
# Optional function name, then the opening bracket
_CALL_OPEN_RE = re.compile(r"([a-zA-Z][a-zA-Z0-9_]*)?\s*\(")
_NUMBER_RE = re.compile(r"[0-9]+(?:\.[0-9]+)?")
_OPERATOR_RE = re.compile(r"[-+*/]")
_SEPARATOR_RE = re.compile(r",")
# Checked before _REFERENCE_RE since a range starts with a reference
_RANGE_RE = re.compile(r"([a-zA-Z]+)([0-9]+):([a-zA-Z]+)([0-9]+)")
_REFERENCE_RE = re.compile(r"([a-zA-Z]+)([0-9]+)")
_CLOSING_BRACKET_RE = re.compile(r"\)")


def to_number(text: str) -> int | float:
    """Convert numeric text, keeping plain integers as ``int``."""
    if re.fullmatch(r"[+-]?[0-9]+", text):
        return int(text)
    return float(text)


def _find_closing_bracket(text: str, start: int, end: int) -> int:
    """Index of the ``)`` closing a bracket opened just before *start*, or -1."""
    depth = 1
    for i in range(start, end):
        ch = text[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _make_range(match: re.Match[str], span: Span) -> ReferenceRange:
    col = match.group(1).lower()
    end_col = match.group(3).lower()
    if col != end_col:
        raise ParseError(span.index, span.length, "Mismatched columns in cell-range")
    row_start = int(match.group(2))
    row_end = int(match.group(4))
    if row_start == row_end:
        # a plain reference should be used instead
        raise ParseError(span.index, span.length, "Cell-range starts and ends at the same row")
    if row_start > row_end:
        raise ParseError(span.index, span.length, "Cell-range end row before the start row")
    return ReferenceRange(col, row_start, row_end, span)


def _tokenize(
    text: str, start: int, end: int, allow_separator: bool, allow_range: bool,
) -> list[Any]:
    """Split ``text[start:end]`` into elements, parsing brackets recursively."""
    elements: list[Any] = []
    pos = start

    while True:
        m = _WHITESPACE_RE.match(text, pos, end)
        if m:
            pos = m.end()
        if pos >= end:
            break

        m = _CALL_OPEN_RE.match(text, pos, end)
        if m:
            content_start = m.end()
            close = _find_closing_bracket(text, content_start, end)
            if close < 0:
                # cover the function name too
                raise ParseError(pos, content_start - pos, "Missing closing bracket")
            name = m.group(1)
            if name is None:
                el = _parse_bracketed(text, content_start, close)
            else:
                el = _parse_call(text, name, pos, content_start, close)
            elements.append(el)
            pos = close + 1
            continue

        if m := _NUMBER_RE.match(text, pos, end):
            el = _RawNumber(to_number(m.group()), Span(pos, m.end() - pos))
        elif m := _OPERATOR_RE.match(text, pos, end):
            el = _RawSymbol(m.group(), Span(pos, 1))
        elif m := _SEPARATOR_RE.match(text, pos, end):
            if not allow_separator:
                raise ParseError(pos, 1, "Separators not allowed")
            el = _RawSymbol(m.group(), Span(pos, 1))
        elif m := _RANGE_RE.match(text, pos, end):
            if not allow_range:
                raise ParseError(pos, m.end() - pos, "Cell-ranges not allowed")
            el = _make_range(m, Span(pos, m.end() - pos))
        elif m := _REFERENCE_RE.match(text, pos, end):
            el = Reference(m.group(1).lower(), int(m.group(2)), Span(pos, m.end() - pos))
        elif _CLOSING_BRACKET_RE.match(text, pos, end):
            raise ParseError(pos, 1, "Unmatched closing bracket")
        else:
            raise ParseError(pos, end - pos, "Unrecognised text")

        elements.append(el)
        pos = m.end()

    return elements


# ---------------------------------------------------------------------------
# Operator reduction
# ---------------------------------------------------------------------------


def _is_operand(el: Any) -> bool:
    # ranges are not valid operator arguments
    return isinstance(el, (_RawNumber, Reference, Call))


def _span_of(el: Any) -> Span | None:
    return getattr(el, "span", None)


def _fold(func: Function, args: list[Any], span: Span, allows_null: bool) -> Any:
    """Build a call, or a literal if every argument is a literal."""
    if all(isinstance(arg, _RawNumber) for arg in args):
        value = func([arg.number for arg in args])
        # keep the call when the result is unresolved, e.g. avg()
        if is_number(value):
            return _RawNumber(value, span)
    return Call(func, args, span, allows_null)


def _find_next(slots: list[Any], i: int) -> int:
    for j in range(i + 1, len(slots)):
        if slots[j] is not None:
            return j
    return -1


def _find_prev(slots: list[Any], i: int) -> int:
    for j in range(i - 1, -1, -1):
        if slots[j] is not None:
            return j
    return -1


def _operator_error(kind: str, symbol: _RawSymbol, problem: str) -> ParseError:
    return ParseError(
        symbol.span.index, symbol.span.length, f'{kind} operator "{symbol.text}" {problem}',
    )


def _wrong_argument_error(
    kind: str, symbol: _RawSymbol, which: str, wrong: Any,
) -> ParseError:
    """Error covering both the operator and its unusable argument."""
    wrong_span = _span_of(wrong)
    if wrong_span is None:
        span = symbol.span
    elif symbol.span.index < wrong_span.index:
        span = symbol.span.cover(wrong_span)
    else:
        span = wrong_span.cover(symbol.span)
    return ParseError(
        span.index, span.length,
        f'Incorrect {which} argument for the {kind} operator "{symbol.text}"',
    )


def _reduce_unary(slots: list[Any], ops: tuple[str, ...]) -> None:
    for i in range(len(slots)):
        el = slots[i]
        if not (isinstance(el, _RawSymbol) and el.text in ops):
            continue
        prev = _find_prev(slots, i)
        if prev >= 0 and _is_operand(slots[prev]):
            # binary usage, handled later
            continue
        nxt = _find_next(slots, i)
        if nxt < 0:
            raise _operator_error("Unary", el, "missing an argument")
        next_el = slots[nxt]
        if not _is_operand(next_el):
            raise _wrong_argument_error("Unary", el, "first", next_el)
        func = UNARY_OPERATORS[el.text]
        slots[i] = _fold(func, [next_el], el.span.cover(next_el.span), False)
        slots[nxt] = None


def _reduce_binary(slots: list[Any], ops: tuple[str, ...]) -> None:
    for i in range(len(slots)):
        el = slots[i]
        if not (isinstance(el, _RawSymbol) and el.text in ops):
            continue
        prev = _find_prev(slots, i)
        nxt = _find_next(slots, i)
        if prev < 0:
            raise _operator_error("Binary", el, "missing a first argument")
        if nxt < 0:
            raise _operator_error("Binary", el, "missing a second argument")
        prev_el = slots[prev]
        next_el = slots[nxt]
        if not _is_operand(prev_el):
            raise _wrong_argument_error("Binary", el, "first", prev_el)
        if not _is_operand(next_el):
            raise _wrong_argument_error("Binary", el, "second", next_el)
        func = BINARY_OPERATORS[el.text]
        slots[i] = _fold(func, [prev_el, next_el], prev_el.span.cover(next_el.span), False)
        slots[prev] = None
        slots[nxt] = None


def _reduce(elements: list[Any], start: int, length: int) -> Any:
    """Reduce a token list to a single element."""
    for prev, el in zip(elements, elements[1:]):
        if isinstance(prev, _RawSymbol) or isinstance(el, _RawSymbol):
            continue
        prev_span = _span_of(prev)
        el_span = _span_of(el)
        if prev_span is not None and el_span is not None:
            span = prev_span.cover(el_span)
        else:
            span = Span(start, length)
        raise ParseError(span.index, span.length, "Missing operator")

    slots: list[Any] = list(elements)
    _reduce_unary(slots, ("-",))
    _reduce_binary(slots, ("/", "*"))
    _reduce_binary(slots, ("+", "-"))

    remaining = [el for el in slots if el is not None]
    if len(remaining) != 1:
        # not expected
        if remaining:
            raise ParseError(start, length, "Unhandled symbols")
        raise ParseError(start, length, "No elements found")
    return remaining[0]


# ---------------------------------------------------------------------------
# Brackets and calls
# ---------------------------------------------------------------------------


def _parse_arguments(text: str, start: int, end: int) -> list[Any]:
    """Parse the comma-separated contents of a call."""
    elements = _tokenize(text, start, end, allow_separator=True, allow_range=True)
    args: list[Any] = []
    arg_elements: list[Any] = []
    arg_start = start
    prev_sep: _RawSymbol | None = None

    for el in elements:
        if isinstance(el, _RawSymbol) and el.text == ",":
            if not arg_elements:
                if prev_sep is None:
                    raise ParseError(el.span.index, el.span.length, "Empty argument")
                span = prev_sep.span.cover(el.span)
                raise ParseError(span.index, span.length, "Empty argument")
            prev_sep = el
            args.append(_reduce(arg_elements, arg_start, el.span.index - arg_start))
            arg_elements = []
            arg_start = el.span.end
        else:
            arg_elements.append(el)
            prev_sep = None

    # trailing separator
    if prev_sep is not None:
        raise ParseError(prev_sep.span.index, prev_sep.span.length, "Empty argument")

    # may be empty when there are no arguments at all
    if arg_elements:
        args.append(_reduce(arg_elements, arg_start, end - arg_start))
    return args


def _parse_call(text: str, name: str, name_index: int, start: int, close: int) -> Any:
    func = get_function(name)
    if func is None:
        raise ParseError(name_index, len(name), "Unknown function")
    args = _parse_arguments(text, start, close)
    return _fold(func, args, Span(name_index, close + 1 - name_index), func.allows_null)


def _parse_bracketed(text: str, start: int, end: int) -> Any:
    """Parse a parenthesised sub-expression, widening its span to the brackets."""
    elements = _tokenize(text, start, end, allow_separator=False, allow_range=False)
    if not elements:
        raise ParseError(start - 1, end - start + 2, "Empty Brackets")
    el = _reduce(elements, start, end - start)
    return replace(el, span=el.span.widen())


def _strip_raw_numbers(el: Any) -> Any:
    if isinstance(el, _RawNumber):
        return el.number
    # explicit stack; operator chains nest as deep as they are long
    pending = [el] if isinstance(el, Call) else []
    while pending:
        call = pending.pop()
        args = []
        for arg in call.args:
            if isinstance(arg, _RawNumber):
                args.append(arg.number)
            else:
                args.append(arg)
                if isinstance(arg, Call):
                    pending.append(arg)
        call.args = args
    return el


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def parse_formula(text: str) -> Expression:
    """Parse formula text (without the leading ``=``).

    Returns a literal number, a :class:`Reference` or a :class:`Call`.
    Raises :class:`ParseError` on malformed input.
    """
    try:
        elements = _tokenize(text, 0, len(text), allow_separator=False, allow_range=False)
    except RecursionError:
        # brackets are parsed recursively
        raise ParseError(0, len(text), "Formula nested too deeply") from None
    if not elements:
        raise ParseError(0, len(text), "Empty Formula")
    return _strip_raw_numbers(_reduce(elements, 0, len(text)))


def iter_references(tree: Any):
    """Yield every :class:`Reference` and :class:`ReferenceRange` in *tree*."""
    stack = [tree]
    while stack:
        el = stack.pop()
        if isinstance(el, Call):
            stack.extend(reversed(el.args))
        elif isinstance(el, (Reference, ReferenceRange)):
            yield el
