"""Lark-based recognizer for spreadsheet arithmetic formulas.

Supports:
- Number literals with optional sign, fraction and exponent: ``-1.5e2``
- Cell references: ``A1``, ``aa23`` (columns normalized to uppercase)
- Binary operators ``+ - * / ^`` and parenthesized groups

The grammar's ``expr`` rule is deliberately flat (``term (OPERATOR term)*``);
operator precedence is applied afterwards by
:func:`cellform.formulas.builder.build_expression`.  ``%`` is lexed as an
operator so that it can be reported precisely, but it is always rejected.

The transformer runs inside the LALR parser, as each rule is reduced, so
nesting depth is limited only by memory.
"""

from __future__ import annotations

import re

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedInput, UnexpectedToken
from pydantic import BaseModel, ConfigDict, Field

from cellform.formulas.ast import BinaryOperator, CellReference, Expression, NumberLiteral
from cellform.formulas.builder import FlatItem, build_expression
from cellform.formulas.errors import (
    FormulaParseError,
    FormulaStructureError,
    FormulaSyntaxError,
    IncompleteExpressionError,
    UnclosedParenthesisError,
    UnsupportedOperatorError,
)

GRAMMAR = r"""
start: expr

expr: term (OPERATOR term)*

?term: NUMBER           -> number
    | CELL_REF          -> cell_ref
    | LPAR expr RPAR    -> group

NUMBER: /[+-]?[0-9]+(\.[0-9]*)?([eE][+-]?[0-9]+)?/
CELL_REF: /[A-Za-z]+[0-9]+/

// "%" is reserved: lexed as an operator, rejected when transforming.
OPERATOR: /[-+*\/^%]/

LPAR: "("
RPAR: ")"

// Only space and tab; line breaks are not part of a formula.
%ignore /[ \t]+/
"""

_RESERVED_OPERATORS = frozenset({"%"})
_OPERATOR_SYMBOLS = frozenset(op.value for op in BinaryOperator) | _RESERVED_OPERATORS

_CELL_RE = re.compile(r"([A-Za-z]+)([0-9]+)")

# Terminal name -> description, in the order they are listed in messages.
_EXPECTED_NAMES: dict[str, str] = {
    "NUMBER": "number",
    "CELL_REF": "cell reference",
    "LPAR": "'('",
    "OPERATOR": "operator",
    "RPAR": "')'",
    "$END": "end of input",
}


# ────────────────────────────────────────────────────────────────
# Parse tree -> flat sequence
# ────────────────────────────────────────────────────────────────


@v_args(inline=True)
class _FlatSequenceBuilder(Transformer):
    """Turn the lark tree into ``[term, op, term, ...]``.

    Groups are reduced to a single expression as soon as they are seen, so
    the top-level result only contains leaves, reduced groups and operators.
    """

    def start(self, sequence: list[FlatItem]) -> list[FlatItem]:
        return sequence

    def expr(self, *items: Expression | Token) -> list[FlatItem]:
        out: list[FlatItem] = []
        for item in items:
            if isinstance(item, Token):
                out.append(_to_operator(item))
            else:
                out.append(item)
        return out

    def number(self, token: Token) -> NumberLiteral:
        # Literals beyond the float range become +/-inf.
        return NumberLiteral(value=float(token))

    def cell_ref(self, token: Token) -> CellReference:
        m = _CELL_RE.fullmatch(str(token))
        if m is None:
            raise FormulaStructureError(f"Malformed cell reference token {str(token)!r}")
        letters, digits = m.groups()
        row = int(digits)
        if row == 0:
            raise FormulaSyntaxError(
                f"row numbers start at 1 in {str(token)!r}",
                position=token.start_pos + len(letters),
                expected=("cell reference",),
            )
        return CellReference(column=letters, row=row)

    def group(self, _lpar: Token, sequence: list[FlatItem], _rpar: Token) -> Expression:
        return build_expression(sequence)


def _to_operator(token: Token) -> BinaryOperator:
    symbol = str(token)
    if symbol in _RESERVED_OPERATORS:
        raise UnsupportedOperatorError(symbol, position=token.start_pos)
    return BinaryOperator(symbol)


_parser = Lark(GRAMMAR, parser="lalr", start="start", transformer=_FlatSequenceBuilder())


# ────────────────────────────────────────────────────────────────
# Public API
# ────────────────────────────────────────────────────────────────


def recognize(text: str) -> list[FlatItem]:
    """Recognize *text* and return its flat term/operator sequence.

    Parenthesized groups are returned already reduced to one expression.

    Raises:
        FormulaParseError: If the text is not a valid formula.
    """
    try:
        return _parser.parse(text)
    except UnexpectedInput as exc:
        error = _translate_error(text, exc)
        raise _earlier_percent(text, error) from exc
    except FormulaParseError as exc:
        error = _earlier_percent(text, exc)
        if error is exc:
            raise
        raise error from exc


def parse_formula(text: str) -> Expression:
    """Parse a formula into an expression tree.

    No ``=`` prefix is expected; stripping one is up to the caller.

    Args:
        text: The formula text, e.g. ``"A1 * (1 + B2) ^ 2"``.

    Returns:
        The root :data:`~cellform.formulas.ast.Expression`.

    Raises:
        FormulaParseError: If the formula has invalid syntax.
    """
    return build_expression(recognize(text))


class ParseOutcome(BaseModel):
    """The result of :func:`try_parse`: an expression or an error, as a value."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    source: str
    expression: Expression | None = None
    error_kind: str | None = None
    error_code: str | None = None
    message: str | None = None
    position: int | None = None
    expected: tuple[str, ...] = ()
    error: FormulaParseError | None = Field(default=None, exclude=True, repr=False)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, source: str, error: FormulaParseError) -> ParseOutcome:
        return cls(
            source=source,
            error_kind=type(error).__name__,
            error_code=error.error_code,
            message=error.reason,
            position=error.position,
            expected=error.expected,
            error=error,
        )

    def unwrap(self) -> Expression:
        """Return the expression, or raise the stored parse error."""
        if self.error is not None:
            raise self.error
        if self.expression is None:
            raise FormulaStructureError("Parse outcome holds neither an expression nor an error")
        return self.expression


def try_parse(text: str) -> ParseOutcome:
    """Like :func:`parse_formula`, but report parse errors as a value."""
    try:
        expression = parse_formula(text)
    except FormulaParseError as exc:
        return ParseOutcome.failure(text, exc)
    return ParseOutcome(source=text, expression=expression)


# ────────────────────────────────────────────────────────────────
# Error translation
# ────────────────────────────────────────────────────────────────


def _translate_error(text: str, exc: UnexpectedInput) -> FormulaParseError:
    """Map a lark exception onto the formula error taxonomy."""
    if isinstance(exc, UnexpectedCharacters):
        pos = exc.pos_in_stream
        char = text[pos]
        if char in "\r\n":
            reason = "line breaks are not allowed in a formula"
        else:
            reason = f"unexpected character {char!r}"
        return FormulaSyntaxError(reason, position=pos, expected=_describe_expected(exc.allowed, text, pos))

    if isinstance(exc, UnexpectedToken) and exc.token.type != "$END":
        token = exc.token
        expected = _describe_expected(exc.expected, text, token.start_pos)
        if token.type == "RPAR" and not _unclosed_parens(text[: token.start_pos]):
            reason = "unmatched ')'"
        else:
            reason = f"unexpected {_describe_token(token)}"
        return FormulaSyntaxError(reason, position=token.start_pos, expected=expected)

    expected = _describe_expected(getattr(exc, "expected", None), text, len(text))
    return _end_of_input_error(text, expected)


def _end_of_input_error(text: str, expected: tuple[str, ...]) -> FormulaParseError:
    body = text.rstrip(" \t")
    if not body.strip(" \t"):
        return FormulaSyntaxError("empty formula", position=len(body), expected=expected)

    last = len(body) - 1
    char = body[last]
    if char == "(":
        return UnclosedParenthesisError("'(' is never closed", position=last, expected=expected)
    if char in _RESERVED_OPERATORS:
        return UnsupportedOperatorError(char, position=last)
    if char in _OPERATOR_SYMBOLS:
        return IncompleteExpressionError(
            f"operator {char!r} is missing its right-hand operand",
            position=last,
            expected=expected,
        )
    open_parens = _unclosed_parens(body)
    if open_parens:
        return UnclosedParenthesisError(
            "'(' is never closed", position=open_parens[-1], expected=expected
        )
    return IncompleteExpressionError(
        "unexpected end of input", position=len(body), expected=expected
    )


def _earlier_percent(text: str, error: FormulaParseError) -> FormulaParseError:
    """Report a ``%`` operator that precedes *error* instead of *error*.

    Every token before the failure offset was accepted by the parser, and
    ``%`` only lexes as an operator, so any ``%`` there sat in operator
    position.
    """
    end = len(text) if error.position is None else error.position
    idx = text.find("%", 0, end)
    if idx < 0:
        return error
    return UnsupportedOperatorError("%", position=idx)


def _unclosed_parens(text: str) -> list[int]:
    """Offsets of the ``(`` still open at the end of *text*, outermost first."""
    stack: list[int] = []
    for i, ch in enumerate(text):
        if ch == "(":
            stack.append(i)
        elif ch == ")" and stack:
            stack.pop()
    return stack


def _describe_expected(names: object, text: str, position: int) -> tuple[str, ...]:
    """Readable names for lark's expected terminals at *position*.

    LALR state merging can offer ``')'`` where no ``(`` is open; it is
    dropped in that case.
    """
    if not names:
        return ()
    names = set(names)  # type: ignore[arg-type]
    if not _unclosed_parens(text[:position]):
        names.discard("RPAR")
    known = [desc for name, desc in _EXPECTED_NAMES.items() if name in names]
    unknown = sorted(n.lower() for n in names if n not in _EXPECTED_NAMES)
    return tuple(known + unknown)


def _describe_token(token: Token) -> str:
    if token.type == "NUMBER":
        return f"number {str(token)!r}"
    if token.type == "CELL_REF":
        return f"cell reference {str(token)!r}"
    if token.type == "OPERATOR":
        return f"operator {str(token)!r}"
    return repr(str(token))
