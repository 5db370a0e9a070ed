"""Tests for parse error classification and positions."""

from __future__ import annotations

import pytest

from cellform.formulas import (
    FormulaError,
    FormulaParseError,
    FormulaStructureError,
    FormulaSyntaxError,
    IncompleteExpressionError,
    ParseOutcome,
    UnclosedParenthesisError,
    UnsupportedOperatorError,
    parse_formula,
)


class TestHierarchy:
    def test_parse_errors_share_a_base(self) -> None:
        for cls in (
            FormulaSyntaxError,
            UnsupportedOperatorError,
            IncompleteExpressionError,
            UnclosedParenthesisError,
        ):
            assert issubclass(cls, FormulaParseError)
            assert issubclass(cls, FormulaError)

    def test_structure_error_is_not_a_parse_error(self) -> None:
        assert not issubclass(FormulaStructureError, FormulaParseError)

    def test_message_includes_position(self) -> None:
        err = FormulaSyntaxError("bad thing", position=4, expected=("number",))
        assert str(err) == "Formula parse error: bad thing (at position 4)"
        assert err.reason == "bad thing"
        assert err.column == 5
        assert err.expected == ("number",)

    def test_message_without_position(self) -> None:
        err = FormulaSyntaxError("bad thing")
        assert str(err) == "Formula parse error: bad thing"
        assert err.column is None


# ────────────────────────────────────────────────────────────────
# Reserved percent operator
# ────────────────────────────────────────────────────────────────


class TestPercentOperator:
    def test_binary_percent_is_rejected(self) -> None:
        with pytest.raises(UnsupportedOperatorError) as exc_info:
            parse_formula("2%3")
        assert exc_info.value.operator == "%"
        assert exc_info.value.position == 1
        assert exc_info.value.error_code == "formula_unsupported_operator"

    def test_percent_inside_group(self) -> None:
        with pytest.raises(UnsupportedOperatorError) as exc_info:
            parse_formula("1 + (A1 % 2)")
        assert exc_info.value.position == 8

    def test_trailing_percent(self) -> None:
        with pytest.raises(UnsupportedOperatorError) as exc_info:
            parse_formula("2 %  ")
        assert exc_info.value.position == 2

    @pytest.mark.parametrize("text", ["2%3+", "1%(2", "2%3 4", "2%3)", "2%A1B2", "2%3\n"])
    def test_percent_wins_over_later_errors(self, text: str) -> None:
        with pytest.raises(UnsupportedOperatorError) as exc_info:
            parse_formula(text)
        assert exc_info.value.position == 1

    def test_percent_wins_over_later_row_zero(self) -> None:
        with pytest.raises(UnsupportedOperatorError) as exc_info:
            parse_formula("2 % A0")
        assert exc_info.value.position == 2

    def test_first_of_several_percents(self) -> None:
        with pytest.raises(UnsupportedOperatorError) as exc_info:
            parse_formula("(1 + 2) % 3 % 4")
        assert exc_info.value.position == 8

    def test_earlier_error_wins_over_later_percent(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc_info:
            parse_formula("2 4 % 1")
        assert not isinstance(exc_info.value, UnsupportedOperatorError)
        assert exc_info.value.position == 2

    def test_percent_in_term_position_is_generic(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc_info:
            parse_formula("2 + %3")
        assert not isinstance(exc_info.value, UnsupportedOperatorError)
        assert exc_info.value.position == 4


# ────────────────────────────────────────────────────────────────
# Incomplete input
# ────────────────────────────────────────────────────────────────


class TestIncomplete:
    def test_dangling_operator(self) -> None:
        with pytest.raises(IncompleteExpressionError) as exc_info:
            parse_formula("2+")
        err = exc_info.value
        assert not isinstance(err, UnclosedParenthesisError)
        assert err.position == 1
        assert "right-hand operand" in err.reason
        assert err.expected == ("number", "cell reference", "'('")

    def test_unclosed_parenthesis(self) -> None:
        with pytest.raises(UnclosedParenthesisError) as exc_info:
            parse_formula("(2+3")
        assert exc_info.value.position == 0
        assert "')'" in exc_info.value.expected

    def test_innermost_unclosed_parenthesis(self) -> None:
        with pytest.raises(UnclosedParenthesisError) as exc_info:
            parse_formula("(1 + (2 * (3)) + (4")
        assert exc_info.value.position == 17

    def test_lone_open_parenthesis(self) -> None:
        with pytest.raises(UnclosedParenthesisError) as exc_info:
            parse_formula("1 * (")
        assert exc_info.value.position == 4

    def test_operator_inside_unclosed_group(self) -> None:
        with pytest.raises(IncompleteExpressionError) as exc_info:
            parse_formula("(2 -")
        assert exc_info.value.position == 3


# ────────────────────────────────────────────────────────────────
# Generic syntax errors
# ────────────────────────────────────────────────────────────────


class TestSyntax:
    @pytest.mark.parametrize("text", ["", "   ", "\t"])
    def test_empty_formula(self, text: str) -> None:
        with pytest.raises(FormulaSyntaxError, match="empty formula") as exc_info:
            parse_formula(text)
        assert exc_info.value.position == 0

    def test_two_terms_without_operator(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="unexpected number") as exc_info:
            parse_formula("1 2")
        assert exc_info.value.position == 2
        assert "operator" in exc_info.value.expected

    def test_unmatched_close_paren(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="unmatched") as exc_info:
            parse_formula("2)")
        assert exc_info.value.position == 1

    def test_empty_group(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc_info:
            parse_formula("()")
        assert exc_info.value.position == 1
        assert "unmatched" not in exc_info.value.reason

    def test_double_operator(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="unexpected operator") as exc_info:
            parse_formula("2 * / 3")
        assert exc_info.value.position == 4

    def test_function_call_is_rejected(self) -> None:
        with pytest.raises(FormulaSyntaxError):
            parse_formula("SUM(A1)")

    def test_range_is_rejected(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc_info:
            parse_formula("A1:B2")
        assert exc_info.value.position == 2

    def test_leading_equals_is_not_part_of_grammar(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc_info:
            parse_formula("=1+2")
        assert exc_info.value.position == 0

    def test_unknown_character(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="unexpected character '&'"):
            parse_formula("A1 & B1")


# ────────────────────────────────────────────────────────────────
# Expected alternatives
# ────────────────────────────────────────────────────────────────


class TestExpected:
    def test_close_paren_not_offered_at_top_level(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc_info:
            parse_formula("1A")
        assert "')'" not in exc_info.value.expected
        assert "operator" in exc_info.value.expected

    def test_close_paren_offered_inside_group(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc_info:
            parse_formula("(1A")
        assert exc_info.value.position == 2
        assert "')'" in exc_info.value.expected

    def test_unmatched_close_paren_does_not_expect_itself(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc_info:
            parse_formula("1 2)")
        assert "')'" not in exc_info.value.expected


class TestOutcomeInvariant:
    def test_empty_outcome_unwrap_is_a_structure_error(self) -> None:
        with pytest.raises(FormulaStructureError):
            ParseOutcome(source="1").unwrap()
