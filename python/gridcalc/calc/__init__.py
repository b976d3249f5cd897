"""gridcalc.calc - Formula parsing, evaluation and the cell dependency graph."""

from gridcalc.calc._evaluator import Diagnosis, diagnose, evaluate
from gridcalc.calc._functions import (
    BINARY_OPERATORS,
    NAMED_FUNCTIONS,
    UNARY_OPERATORS,
    UNRESOLVED,
    Function,
    get_function,
    is_supported,
)
from gridcalc.calc._graph import CellGraph
from gridcalc.calc._nodes import CellNode, CellRef, Cycle
from gridcalc.calc._parser import (
    Call,
    ParseError,
    Reference,
    ReferenceRange,
    Span,
    iter_references,
    parse_formula,
)
from gridcalc.calc._protocol import (
    CellEntryInfo,
    DisplayCallback,
    DynamicFormula,
    InvalidFormula,
    StaticFormula,
)
from gridcalc.calc._regions import merge_regions

__all__ = [
    "BINARY_OPERATORS",
    "Call",
    "CellEntryInfo",
    "CellGraph",
    "CellNode",
    "CellRef",
    "Cycle",
    "Diagnosis",
    "DisplayCallback",
    "DynamicFormula",
    "Function",
    "InvalidFormula",
    "NAMED_FUNCTIONS",
    "ParseError",
    "Reference",
    "ReferenceRange",
    "Span",
    "StaticFormula",
    "UNARY_OPERATORS",
    "UNRESOLVED",
    "diagnose",
    "evaluate",
    "get_function",
    "is_supported",
    "iter_references",
    "merge_regions",
    "parse_formula",
]
