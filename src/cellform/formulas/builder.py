"""Operator-precedence reduction of a flat term/operator sequence.

The grammar recognizes ``term (operator term)*`` without any notion of
precedence.  This module turns that flat list into a properly nested tree:

    ^       binds tightest, right-associative   2^3^2 == 2^(3^2)
    * /     left-associative                    a/b*c == (a/b)*c
    + -     left-associative                    a-b+c == (a-b)+c

Parenthesized groups arrive already reduced to a single term.  The
reduction uses explicit operand and operator stacks, so chains of any
length are built without recursion.
"""

from __future__ import annotations

from typing import Sequence, Union

from cellform.formulas.ast import NODE_TYPES, BinaryOperation, BinaryOperator, Expression
from cellform.formulas.errors import FormulaStructureError

# One recognized item: a term (already an Expression) or an operator.
FlatItem = Union[Expression, BinaryOperator]


def build_expression(sequence: Sequence[FlatItem]) -> Expression:
    """Build an expression tree from an alternating term/operator sequence.

    Args:
        sequence: ``[term, op, term, op, ..., term]`` (odd length >= 1).

    Returns:
        The root expression.

    Raises:
        FormulaStructureError: If *sequence* is not well formed.
    """
    _check_shape(sequence)

    operands: list[Expression] = [sequence[0]]  # type: ignore[list-item]
    operators: list[BinaryOperator] = []
    for i in range(1, len(sequence), 2):
        op = sequence[i]
        while operators and _reduces_before(operators[-1], op):  # type: ignore[arg-type]
            _reduce(operands, operators)
        operators.append(op)  # type: ignore[arg-type]
        operands.append(sequence[i + 1])  # type: ignore[arg-type]
    while operators:
        _reduce(operands, operators)

    if len(operands) != 1:
        raise FormulaStructureError(f"Expected one expression, {len(operands)} left over")
    return operands[0]


def _check_shape(sequence: Sequence[FlatItem]) -> None:
    if len(sequence) % 2 == 0:
        raise FormulaStructureError(
            f"Expected an odd number of items, got {len(sequence)}"
        )
    for i, item in enumerate(sequence):
        if i % 2 == 0:
            if not isinstance(item, NODE_TYPES):
                raise FormulaStructureError(f"Expected a term at item {i}, got {item!r}")
        elif not isinstance(item, BinaryOperator):
            raise FormulaStructureError(f"Expected an operator at item {i}, got {item!r}")


def _reduces_before(pending: BinaryOperator, incoming: BinaryOperator) -> bool:
    """True if *pending* (left of *incoming*) takes its right operand first."""
    if pending.precedence != incoming.precedence:
        return pending.precedence > incoming.precedence
    # Equal levels share associativity.
    return not incoming.right_associative


def _reduce(operands: list[Expression], operators: list[BinaryOperator]) -> None:
    right = operands.pop()
    left = operands.pop()
    operands.append(BinaryOperation(operator=operators.pop(), left=left, right=right))
