"""A parsed formula together with the cells it depends on."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from cellform.formulas.ast import CellReference, Expression, extract_refs, to_formula
from cellform.formulas.parser import parse_formula


class Formula(BaseModel):
    """Source text, expression tree and cell dependencies of one formula.

    Build instances with :meth:`from_text`; the dependencies are derived
    from the tree, never supplied separately.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    expression: Expression
    refs: frozenset[CellReference]

    @classmethod
    def from_text(cls, text: str) -> Formula:
        """Parse *text*.  Raises :class:`FormulaParseError` on invalid syntax."""
        expression = parse_formula(text)
        return cls(source=text, expression=expression, refs=frozenset(extract_refs(expression)))

    @property
    def canonical(self) -> str:
        return to_formula(self.expression)

    def sorted_refs(self) -> list[CellReference]:
        """Dependencies ordered by column index, then row."""
        return sorted(self.refs, key=lambda ref: (ref.column_index, ref.row))

    def depends_on(self, address: str) -> bool:
        """True if the formula references *address* (e.g. ``"b2"``)."""
        return any(ref.address == address.upper() for ref in self.refs)
