"""Immutable expression tree produced by the formula parser.

Nodes are frozen Pydantic models, so they compare by value, hash, and
serialize with ``model_dump()``.  The ``kind`` field discriminates the
three node types of :data:`Expression`.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ────────────────────────────────────────────────────────────────
# Column addressing
# ────────────────────────────────────────────────────────────────


def column_to_index(letters: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26.

    Lowercase letters are accepted.

    Raises:
        ValueError: If *letters* is empty or not purely ASCII alphabetic.
    """
    if not letters or not (letters.isascii() and letters.isalpha()):
        raise ValueError(f"Invalid column letters: {letters!r}")
    idx = 0
    for ch in letters.upper():
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def index_to_column(idx: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    if idx < 0:
        raise ValueError(f"Column index must be >= 0, got {idx}")
    result = ""
    n = idx + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


# ────────────────────────────────────────────────────────────────
# Operators
# ────────────────────────────────────────────────────────────────


class BinaryOperator(str, Enum):
    add = "+"
    subtract = "-"
    multiply = "*"
    divide = "/"
    power = "^"

    @property
    def precedence(self) -> int:
        return _PRECEDENCE[self]

    @property
    def right_associative(self) -> bool:
        return self is BinaryOperator.power


# Higher binds tighter.
_PRECEDENCE: dict[BinaryOperator, int] = {
    BinaryOperator.add: 1,
    BinaryOperator.subtract: 1,
    BinaryOperator.multiply: 2,
    BinaryOperator.divide: 2,
    BinaryOperator.power: 3,
}


# ────────────────────────────────────────────────────────────────
# Nodes
# ────────────────────────────────────────────────────────────────


class NumberLiteral(BaseModel):
    """A numeric literal.  Literals too large for a float hold +/-infinity."""

    model_config = ConfigDict(frozen=True, ser_json_inf_nan="strings")

    kind: Literal["number"] = "number"
    value: float

    @field_validator("value")
    @classmethod
    def _reject_nan(cls, v: float) -> float:
        if math.isnan(v):
            raise ValueError("a number literal cannot be NaN")
        return v


class CellReference(BaseModel):
    """A column/row coordinate.  Columns are stored uppercase."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["cell"] = "cell"
    column: str
    row: int = Field(ge=1)

    @field_validator("column")
    @classmethod
    def _normalize_column(cls, v: str) -> str:
        if not v or not (v.isascii() and v.isalpha()):
            raise ValueError(f"column must be one or more letters, got {v!r}")
        return v.upper()

    @property
    def column_index(self) -> int:
        return column_to_index(self.column)

    @property
    def address(self) -> str:
        return f"{self.column}{self.row}"


class BinaryOperation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["binary"] = "binary"
    operator: BinaryOperator
    left: Expression
    right: Expression


Expression = Annotated[
    Union[NumberLiteral, CellReference, BinaryOperation],
    Field(discriminator="kind"),
]

BinaryOperation.model_rebuild()

NODE_TYPES = (NumberLiteral, CellReference, BinaryOperation)


# ────────────────────────────────────────────────────────────────
# Traversal
# ────────────────────────────────────────────────────────────────


def iter_nodes(expr: Expression) -> Iterator[Expression]:
    """Yield every node of *expr* in pre-order (parent before children)."""
    stack = [expr]
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, BinaryOperation):
            stack.append(node.right)
            stack.append(node.left)


def extract_refs(expr: Expression) -> set[CellReference]:
    """Return the set of cell references that *expr* depends on."""
    return {node for node in iter_nodes(expr) if isinstance(node, CellReference)}


# ────────────────────────────────────────────────────────────────
# Canonical text
# ────────────────────────────────────────────────────────────────


_OVERFLOW_LITERAL = "1e999"


def format_number(value: float) -> str:
    """Render *value* as a literal the grammar accepts (``150.0`` -> ``150``).

    Infinities are written as ``1e999``, which overflows back to the same value.
    """
    if math.isnan(value):
        raise ValueError("Cannot render NaN as a number literal")
    if math.isinf(value):
        return _OVERFLOW_LITERAL if value > 0 else "-" + _OVERFLOW_LITERAL
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


def to_formula(expr: Expression) -> str:
    """Serialize *expr* to canonical formula text.

    Parentheses are emitted only where precedence or associativity would
    otherwise change the tree shape, so ``parse_formula(to_formula(e)) == e``.
    The tree is walked with an explicit stack; depth is not limited.
    """
    rendered: list[str] = []
    stack: list[tuple[Expression, bool]] = [(expr, False)]
    while stack:
        node, children_done = stack.pop()
        if isinstance(node, NumberLiteral):
            rendered.append(format_number(node.value))
        elif isinstance(node, CellReference):
            rendered.append(node.address)
        elif isinstance(node, BinaryOperation):
            if not children_done:
                stack.append((node, True))
                stack.append((node.right, False))
                stack.append((node.left, False))
                continue
            right = rendered.pop()
            left = rendered.pop()
            op = node.operator
            if _needs_parens(node.left, op, is_right=False):
                left = f"({left})"
            if _needs_parens(node.right, op, is_right=True):
                right = f"({right})"
            rendered.append(f"{left} {op.value} {right}")
        else:
            raise TypeError(f"Not an expression node: {type(node).__name__}")
    return rendered[0]


def _needs_parens(child: Expression, parent: BinaryOperator, *, is_right: bool) -> bool:
    if not isinstance(child, BinaryOperation):
        return False
    if child.operator.precedence != parent.precedence:
        return child.operator.precedence < parent.precedence
    # Same level: the side the operator does not associate towards needs grouping.
    return is_right != parent.right_associative
