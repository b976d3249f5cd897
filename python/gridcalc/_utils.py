"""Cell-name and number-formatting helpers."""

from __future__ import annotations

import re

_CELL_NAME_RE = re.compile(r"([a-zA-Z]+)([0-9]+)")


def split_cell_name(name: str) -> tuple[str, int]:
    """Split ``"B12"`` into ``("b", 12)``.

    Raises ValueError for anything that is not letters followed by digits.
    """
    m = _CELL_NAME_RE.fullmatch(name.strip())
    if not m:
        raise ValueError(f"Invalid cell name: {name!r}")
    return m.group(1).lower(), int(m.group(2))


def canonical_cell_name(name: str) -> str:
    col, row = split_cell_name(name)
    return f"{col}{row}"


def column_to_number(col: str) -> int:
    """Ordinal used for column bounds checks (base-36 reading of the letters)."""
    return int(col, 36)


def column_letters(count: int) -> list[str]:
    """The first *count* column labels: a..z, aa, ab, ..."""
    letters: list[str] = []
    code: list[str] = []
    for _ in range(count):
        i = len(code) - 1
        while i >= 0 and code[i] == "z":
            code[i] = "a"
            i -= 1
        if i < 0:
            code.insert(0, "a")
        else:
            code[i] = chr(ord(code[i]) + 1)
        letters.append("".join(code))
    return letters


def _trim_zeros(text: str) -> str:
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_number(number: int | float) -> str:
    """Compact display text for a cell value."""
    magnitude = abs(number)
    if magnitude >= 1_000_000:
        return f"{number:.2e}"
    if magnitude >= 1 or magnitude == 0:
        if float(number).is_integer():
            return str(int(number))
        return _trim_zeros(f"{number:.2f}")
    if magnitude >= 0.001:
        fixed = f"{number:.2f}"
        if float(fixed) == number:
            return _trim_zeros(fixed)
        return f"{number:.3g}"
    return f"{number:.2e}"
