"""
Expression Compiler: XPath string → reusable lxml query.

Compilation is a pure function of the expression text.  Memoization lives
in the run context, not here, so nothing is cached across runs.
"""

from dataclasses import dataclass
from typing import Optional

from lxml import etree

from .exceptions import ExpressionCompileError
from .logger import get_module_logger

logger = get_module_logger("compiler")


@dataclass(frozen=True)
class CompiledQuery:
    """Compiled query for one expression string, or the reason there is none."""
    expression: str
    query: Optional[etree.XPath] = None
    error: Optional[ExpressionCompileError] = None

    @property
    def ok(self) -> bool:
        return self.query is not None


def compile_expression(expression: str) -> CompiledQuery:
    """
    Compile an XPath expression.

    smart_strings is off: string results are plain str without a back
    reference to the tree they came from.
    """
    try:
        query = etree.XPath(expression, smart_strings=False)
    except (etree.XPathError, ValueError) as e:
        # XPathSyntaxError is the usual case.  NUL characters and lone surrogates
        # are rejected before libxml2 sees the text (ValueError, UnicodeEncodeError)
        error = ExpressionCompileError(
            f"Failed to compile XPath {expression!r}: {e}",
            expression=expression,
            details={"error_log": [str(entry) for entry in getattr(e, "error_log", ())]}
        )
        logger.warning(f"Failed to compile XPath {expression!r}: {e}. Every URL counts as unsuccessful.")
        return CompiledQuery(expression=expression, error=error)

    return CompiledQuery(expression=expression, query=query)
