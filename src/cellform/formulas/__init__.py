"""Spreadsheet arithmetic formula parsing.

Public API::

    from cellform.formulas import parse_formula, try_parse, extract_refs, to_formula
"""

from cellform.formulas.ast import (
    BinaryOperation,
    BinaryOperator,
    CellReference,
    Expression,
    NumberLiteral,
    column_to_index,
    extract_refs,
    index_to_column,
    iter_nodes,
    to_formula,
)
from cellform.formulas.builder import build_expression
from cellform.formulas.errors import (
    FormulaError,
    FormulaParseError,
    FormulaStructureError,
    FormulaSyntaxError,
    IncompleteExpressionError,
    UnclosedParenthesisError,
    UnsupportedOperatorError,
)
from cellform.formulas.formula import Formula
from cellform.formulas.parser import ParseOutcome, parse_formula, recognize, try_parse

__all__ = [
    "BinaryOperation",
    "BinaryOperator",
    "CellReference",
    "Expression",
    "Formula",
    "FormulaError",
    "FormulaParseError",
    "FormulaStructureError",
    "FormulaSyntaxError",
    "IncompleteExpressionError",
    "NumberLiteral",
    "ParseOutcome",
    "UnclosedParenthesisError",
    "UnsupportedOperatorError",
    "build_expression",
    "column_to_index",
    "extract_refs",
    "index_to_column",
    "iter_nodes",
    "parse_formula",
    "recognize",
    "to_formula",
    "try_parse",
]
