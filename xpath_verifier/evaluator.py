"""
Match Evaluator: (expression, url, expected target) → Outcome.

Canonicalization of an XPath result into a comparable string:
  node collection  → string-value of the first node in document order,
                     "" when the collection is empty
  string           → the string itself
  boolean / number → no value at all; the pair is NoMatch whatever the target

The actual value must equal the target exactly (no trimming, no case-folding).

Failures the evaluator knows about (parse error, compile error, XPath
runtime error, missing target) become NoMatch outcomes here.  Anything else
is left to propagate to the scheduler's unit boundary.
"""

from typing import Optional

from lxml import etree

from .run_context import RunContext
from .schemas import Outcome, OutcomeReason
from .exceptions import EvaluationError
from .logger import get_module_logger

logger = get_module_logger("evaluator")


def string_value(node) -> str:
    """XPath string-value of one item from a node collection."""
    # Attribute and text nodes arrive as str (smart strings are disabled)
    if isinstance(node, str):
        return str(node)
    # Namespace nodes arrive as (prefix, uri) tuples
    if isinstance(node, tuple):
        return str(node[1])
    # Elements, comments and processing instructions
    return str(node.xpath("string()"))


def canonicalize(result) -> Optional[str]:
    """Reduce an XPath result to the string compared against the target, or None."""
    # bool first: it is a subclass of int
    if isinstance(result, bool):
        return None
    if isinstance(result, (int, float)):
        return None
    if isinstance(result, str):
        return str(result)
    if isinstance(result, list):
        if not result:
            return ""
        return string_value(result[0])
    return None


class MatchEvaluator:
    """Evaluates one (expression, url) pair against the run's memoized trees and queries."""

    def __init__(self, context: RunContext):
        self.context = context

    def resolve(self, expression: str, heading: str, url: str) -> Outcome:
        """
        Compute the canonical actual value without comparing it to anything.

        Returns an EXTRACTED outcome carrying `actual`, or a NoMatch outcome
        naming what went wrong.
        """
        document = self.context.document(url)
        if not document.ok:
            return self._outcome(expression, heading, url, OutcomeReason.PARSE_ERROR,
                                 detail=document.error.message)

        compiled = self.context.query(expression)
        if not compiled.ok:
            return self._outcome(expression, heading, url, OutcomeReason.COMPILE_ERROR,
                                 detail=compiled.error.message)

        try:
            result = compiled.query(document.tree)
        except etree.XPathError as e:
            error = EvaluationError(f"XPath evaluation failed: {e}", expression=expression, url=url)
            return self._outcome(expression, heading, url, OutcomeReason.EVALUATION_ERROR,
                                 detail=error.message)

        actual = canonicalize(result)
        if actual is None:
            return self._outcome(expression, heading, url, OutcomeReason.NON_STRING_RESULT,
                                 detail=f"result of type {type(result).__name__}: {result!r}")

        return self._outcome(expression, heading, url, OutcomeReason.EXTRACTED, actual=actual)

    def evaluate(self, expression: str, heading: str, url: str, target: Optional[str]) -> Outcome:
        """
        Classify one pair as Match or NoMatch.

        Args:
            expression: XPath expression text
            heading: Heading the expression was registered under
            url: Document key
            target: Expected value, None when the document registers none for heading

        Returns:
            Outcome; `matched` is True only for an exact string match
        """
        if target is None:
            return self._missing_target(expression, heading, url)

        resolved = self.resolve(expression, heading, url)
        if resolved.reason is not OutcomeReason.EXTRACTED:
            return resolved

        if resolved.actual == target:
            return resolved.model_copy(update={"reason": OutcomeReason.MATCH})

        return resolved.model_copy(update={
            "reason": OutcomeReason.VALUE_MISMATCH,
            "detail": f"expected {target!r}, got {resolved.actual!r}"
        })

    def _missing_target(self, expression: str, heading: str, url: str) -> Outcome:
        # An unregistered expectation can never be satisfied, so by default the
        # query is not even run
        if not self.context.config.evaluate_missing_targets:
            return self._outcome(expression, heading, url, OutcomeReason.MISSING_TARGET,
                                 detail=f"no target registered for heading '{heading}'")

        resolved = self.resolve(expression, heading, url)
        logger.info(
            f"No target for heading '{heading}' on '{url}'; "
            f"'{expression}' yields {resolved.actual!r} ({resolved.reason.value})"
        )
        return resolved.model_copy(update={
            "reason": OutcomeReason.MISSING_TARGET,
            "detail": f"no target registered for heading '{heading}' ({resolved.reason.value})"
        })

    @staticmethod
    def _outcome(expression: str, heading: str, url: str, reason: OutcomeReason,
                 actual: Optional[str] = None, detail: Optional[str] = None) -> Outcome:
        return Outcome(expression=expression, heading=heading, url=url,
                       reason=reason, actual=actual, detail=detail)
