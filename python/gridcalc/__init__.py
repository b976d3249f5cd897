"""gridcalc - a reactive spreadsheet cell engine.

Usage::

    from gridcalc import Worksheet

    ws = Worksheet(columns=26, rows=50)
    ws["a1"] = "5"
    ws["a2"] = "=a1 * 2 + sum(b1:b3)"
    print(ws["a2"].text)  # "10"

    ws["a1"] = "=a2"  # a cycle: both cells show "???"
    print(ws.entry("a2").error_messages)
"""

from gridcalc._utils import column_letters, format_number
from gridcalc._worksheet import CellDisplay, Worksheet
from gridcalc.calc import CellEntryInfo, CellGraph, ParseError, Span, UNRESOLVED, parse_formula

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CellDisplay",
    "CellEntryInfo",
    "CellGraph",
    "ParseError",
    "Span",
    "UNRESOLVED",
    "Worksheet",
    "column_letters",
    "format_number",
    "parse_formula",
]
