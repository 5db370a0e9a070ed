"""cellform -- spreadsheet formula parsing."""

__version__ = "0.1.0"

from cellform.formulas import (  # noqa: E402
    Formula,
    FormulaParseError,
    parse_formula,
    try_parse,
)

__all__ = [
    "Formula",
    "FormulaParseError",
    "__version__",
    "parse_formula",
    "try_parse",
]
