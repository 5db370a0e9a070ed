"""Error types for formula parsing."""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula-related errors."""


class FormulaParseError(FormulaError):
    """The formula text could not be parsed.

    Attributes:
        reason: Human-readable description, without position decoration.
        position: 0-based character offset where the error was detected.
        expected: Names of the alternatives that would have been accepted.
    """

    error_code = "formula_parse_error"

    def __init__(
        self,
        reason: str,
        position: int | None = None,
        expected: tuple[str, ...] = (),
    ) -> None:
        self.reason = reason
        self.position = position
        self.expected = tuple(expected)
        full = f"Formula parse error: {reason}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)

    @property
    def column(self) -> int | None:
        """1-based column of the error (formulas are single-line)."""
        if self.position is None:
            return None
        return self.position + 1


class FormulaSyntaxError(FormulaParseError):
    """The input does not match the formula grammar."""

    error_code = "formula_syntax_error"


class UnsupportedOperatorError(FormulaSyntaxError):
    """A reserved operator symbol (``%``) was used as a binary operator.

    Attributes:
        operator: The offending symbol.
    """

    error_code = "formula_unsupported_operator"

    def __init__(self, operator: str, position: int | None = None) -> None:
        self.operator = operator
        super().__init__(
            f"operator {operator!r} is not supported",
            position=position,
            expected=("operator",),
        )


class IncompleteExpressionError(FormulaParseError):
    """The input ended before the expression was complete."""

    error_code = "formula_incomplete"


class UnclosedParenthesisError(IncompleteExpressionError):
    """A ``(`` is never closed; ``position`` points at the ``(``."""

    error_code = "formula_unclosed_paren"


class FormulaStructureError(FormulaError):
    """The builder received a malformed term/operator sequence.

    This signals an internal inconsistency between recognizer and builder,
    never a problem with user input.
    """
