"""Tests for the precedence-climbing expression builder."""

from __future__ import annotations

import pytest

from cellform.formulas import (
    BinaryOperation,
    BinaryOperator,
    CellReference,
    FormulaStructureError,
    NumberLiteral,
    build_expression,
)

ADD = BinaryOperator.add
SUB = BinaryOperator.subtract
MUL = BinaryOperator.multiply
DIV = BinaryOperator.divide
POW = BinaryOperator.power

A = CellReference(column="A", row=1)
B = CellReference(column="B", row=1)
C = CellReference(column="C", row=1)
D = CellReference(column="D", row=1)


def binop(op: BinaryOperator, left, right) -> BinaryOperation:
    return BinaryOperation(operator=op, left=left, right=right)


class TestPrecedence:
    def test_single_term(self) -> None:
        assert build_expression([A]) == A

    def test_multiplication_binds_tighter(self) -> None:
        assert build_expression([A, ADD, B, MUL, C]) == binop(ADD, A, binop(MUL, B, C))
        assert build_expression([A, MUL, B, ADD, C]) == binop(ADD, binop(MUL, A, B), C)

    def test_power_binds_tightest(self) -> None:
        assert build_expression([A, MUL, B, POW, C]) == binop(MUL, A, binop(POW, B, C))
        assert build_expression([A, POW, B, MUL, C]) == binop(MUL, binop(POW, A, B), C)

    def test_three_levels(self) -> None:
        """a + b * c ^ d - a."""
        expr = build_expression([A, ADD, B, MUL, C, POW, D, SUB, A])
        assert expr == binop(SUB, binop(ADD, A, binop(MUL, B, binop(POW, C, D))), A)


class TestAssociativity:
    def test_subtraction_is_left_associative(self) -> None:
        assert build_expression([A, SUB, B, ADD, C]) == binop(ADD, binop(SUB, A, B), C)

    def test_division_is_left_associative(self) -> None:
        assert build_expression([A, DIV, B, MUL, C]) == binop(MUL, binop(DIV, A, B), C)

    def test_long_left_chain(self) -> None:
        items: list = [A]
        for _ in range(500):
            items += [SUB, B]
        expr = build_expression(items)
        depth = 0
        while isinstance(expr, BinaryOperation):
            assert expr.right == B
            expr = expr.left
            depth += 1
        assert depth == 500
        assert expr == A

    def test_power_is_right_associative(self) -> None:
        assert build_expression([A, POW, B, POW, C]) == binop(POW, A, binop(POW, B, C))

    def test_power_evaluates_to_512(self) -> None:
        two = NumberLiteral(value=2)
        three = NumberLiteral(value=3)
        expr = build_expression([two, POW, three, POW, two])

        def evaluate(node):
            if isinstance(node, NumberLiteral):
                return node.value
            return evaluate(node.left) ** evaluate(node.right)

        assert evaluate(expr) == 512


class TestMalformedSequence:
    def test_empty(self) -> None:
        with pytest.raises(FormulaStructureError):
            build_expression([])

    def test_even_length(self) -> None:
        with pytest.raises(FormulaStructureError, match="odd number"):
            build_expression([A, ADD])

    def test_operator_in_term_position(self) -> None:
        with pytest.raises(FormulaStructureError, match="term at item 2"):
            build_expression([A, ADD, MUL])

    def test_term_in_operator_position(self) -> None:
        with pytest.raises(FormulaStructureError, match="operator at item 1"):
            build_expression([A, B, C])

    def test_raw_string_operator(self) -> None:
        with pytest.raises(FormulaStructureError):
            build_expression([A, "+", B])


class TestLongSequences:
    def test_long_power_chain_nests_to_the_right(self) -> None:
        two = NumberLiteral(value=2)
        items: list = [two]
        for _ in range(3000):
            items += [POW, two]
        expr = build_expression(items)
        depth = 0
        while isinstance(expr, BinaryOperation):
            assert expr.left == two
            expr = expr.right
            depth += 1
        assert depth == 3000

    def test_mixed_levels_in_long_sequence(self) -> None:
        """a + b * c ^ d repeated: every + stays at the top left spine."""
        items: list = [A]
        for _ in range(1000):
            items += [ADD, B, MUL, C, POW, D]
        expr = build_expression(items)
        adds = 0
        while isinstance(expr, BinaryOperation) and expr.operator is ADD:
            assert expr.right == binop(MUL, B, binop(POW, C, D))
            expr = expr.left
            adds += 1
        assert adds == 1000
        assert expr == A
