"""
Result Aggregator: finalized outcome groups → public report.

Duplicate expressions: the same expression text may be registered under
more than one heading, each with its own targets.  All of them map to one
output key.  Policy: FIRST REGISTERED WINS.  The first finalization of an
expression string is kept; later finalizations of the same string are
discarded (and logged when they would have produced a different result).
The scheduler finalizes in registration order, so "first" means the first
heading in input order that lists the expression.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from .schemas import ExpressionReport, Outcome, VerificationReport
from .logger import get_module_logger

logger = get_module_logger("aggregator")


@dataclass(frozen=True)
class ResultEntry:
    """Finalized result for one expression string."""
    expression: str
    heading: str      # heading whose evaluation produced this entry
    successful: frozenset
    unsuccessful: frozenset

    def to_report(self) -> ExpressionReport:
        return ExpressionReport(
            successful=sorted(self.successful),
            unsuccessful=sorted(self.unsuccessful)
        )


class ResultAggregator:
    """Collects one ResultEntry per distinct expression string."""

    def __init__(self, urls: Iterable[str]):
        self.universe = frozenset(urls)
        self._entries: dict[str, ResultEntry] = {}
        self.discarded = 0

    def finalize(self, expression: str, heading: str, outcomes: Iterable[Outcome]) -> bool:
        """
        Record the result for one expression.

        Every url in the universe lands in exactly one set: urls with a Match
        outcome are successful, everything else (including urls with no
        outcome at all) is unsuccessful.

        Returns:
            True if stored, False if discarded because the expression string
            was already finalized under an earlier heading
        """
        successful = frozenset(o.url for o in outcomes if o.matched) & self.universe
        entry = ResultEntry(
            expression=expression,
            heading=heading,
            successful=successful,
            unsuccessful=self.universe - successful
        )

        existing = self._entries.get(expression)
        if existing is not None:
            self.discarded += 1
            if existing.successful != entry.successful:
                logger.warning(
                    f"XPath '{expression}' is listed under '{existing.heading}' and '{heading}' "
                    f"with different results; keeping the result from '{existing.heading}'"
                )
            else:
                logger.debug(f"Discarded repeat of '{expression}' under heading '{heading}'")
            return False

        self._entries[expression] = entry
        return True

    def entries(self) -> dict[str, ResultEntry]:
        """Finalized entries, sorted by expression string."""
        return dict(sorted(self._entries.items()))

    def to_report(self) -> VerificationReport:
        return VerificationReport({
            expression: entry.to_report()
            for expression, entry in sorted(self._entries.items())
        })

    def __contains__(self, expression: str) -> bool:
        return expression in self._entries

    def __len__(self) -> int:
        return len(self._entries)
