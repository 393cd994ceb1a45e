"""
Main orchestrator for the XPath verifier.

Wires the components together for one run:
  loader → RunContext (parse/compile caches) → ConcurrencyScheduler
  → MatchEvaluator per unit → ResultAggregator → VerificationReport

Each call to verify()/extract() builds a fresh RunContext, so nothing
survives from one run to the next.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .aggregator import ResultAggregator, ResultEntry
from .config import VerifierConfig
from .evaluator import MatchEvaluator
from .loader import load_input, load_input_file
from .run_context import RunContext
from .scheduler import ConcurrencyScheduler, UnitGroup, groups_from_headings
from .schemas import Outcome, OutcomeReason, VerificationInput, VerificationReport
from .logger import get_module_logger, setup_logger

logger = get_module_logger("main")


@dataclass
class VerificationRun:
    """Everything a run produced.  Only `report` is the public result."""
    report: VerificationReport
    entries: dict[str, ResultEntry]
    diagnostics: list[Outcome]
    parse_count: int
    compile_count: int
    discarded_duplicates: int

    def to_output(self) -> dict:
        return self.report.to_output()


class XPathVerifier:
    """
    Main orchestrator for XPath verification.

    Coordinates one run:
    1. RunContext: per-run parse and compile caches plus diagnostics
    2. ConcurrencyScheduler: one unit per (expression, document) pair
    3. MatchEvaluator: classifies each pair
    4. ResultAggregator: merges outcomes, first registered heading wins
    """

    def __init__(self, config: Optional[VerifierConfig] = None, log_level: Union[int, str, None] = None):
        self.config = config or VerifierConfig()
        setup_logger(level=log_level if log_level is not None else self.config.log_level)
        logger.debug(f"XPathVerifier initialized ({self.config.parser_backend.value} backend)")

    def _new_context(self, request: VerificationInput) -> RunContext:
        return RunContext(request.urls, config=self.config)

    def verify(self, request: VerificationInput) -> VerificationRun:
        """
        Verify every expression of every heading against every document.

        Args:
            request: Validated input

        Returns:
            VerificationRun; `report` maps each distinct expression string to
            its successful / unsuccessful urls
        """
        context = self._new_context(request)
        evaluator = MatchEvaluator(context)
        aggregator = ResultAggregator(context.urls)
        scheduler = ConcurrencyScheduler(self.config.max_workers, diagnostics=context.diagnostics)

        def unit(heading: str, expression: str, url: str) -> Outcome:
            return evaluator.evaluate(expression, heading, url, context.target(url, heading))

        def finalize(heading: str, expression: str, outcomes: list[Outcome]) -> None:
            aggregator.finalize(expression, heading, outcomes)

        logger.info(
            f"Verifying {request.expression_count()} expressions under "
            f"{len(request.xpaths)} headings against {len(context.urls)} documents"
        )
        scheduler.run(groups_from_headings(request.xpaths), context.urls, unit, finalize)

        run = VerificationRun(
            report=aggregator.to_report(),
            entries=aggregator.entries(),
            diagnostics=context.diagnostics.entries(),
            parse_count=context.documents.total_computations,
            compile_count=context.queries.total_computations,
            discarded_duplicates=aggregator.discarded
        )

        matched = sum(len(entry.successful) for entry in run.entries.values())
        logger.info(
            f"Complete: {len(run.entries)} expressions, {matched} successful pairs, "
            f"{run.parse_count} parses, {run.compile_count} compilations"
        )
        if run.diagnostics:
            logger.info(f"NoMatch reasons: {context.diagnostics.by_reason()}")
        return run

    def verify_json(self, data: Union[str, bytes, Mapping]) -> VerificationRun:
        """Validate raw input then verify.  Raises InputError before any evaluation."""
        return self.verify(load_input(data))

    def verify_file(self, file_path: Union[str, Path]) -> VerificationRun:
        """Verify an input JSON file."""
        return self.verify(load_input_file(file_path))

    def extract(self, request: VerificationInput) -> dict[str, dict[str, str]]:
        """
        Value-extraction mode: the canonical actual value per expression and url.

        Targets are ignored.  Pairs that fail (parse, compile or evaluation
        error) or yield a boolean/numeric result are left out.

        Returns:
            expression → {url: value}, both levels sorted
        """
        context = self._new_context(request)
        evaluator = MatchEvaluator(context)
        scheduler = ConcurrencyScheduler(self.config.max_workers, diagnostics=context.diagnostics)
        values: dict[str, dict[str, str]] = {}

        # Each distinct expression once, under the first heading that lists it
        groups: list[UnitGroup] = []
        for group in groups_from_headings(request.xpaths):
            if group.expression not in values:
                values[group.expression] = {}
                groups.append(group)

        def unit(heading: str, expression: str, url: str) -> Outcome:
            return evaluator.resolve(expression, heading, url)

        def collect(heading: str, expression: str, outcomes: list[Outcome]) -> None:
            values[expression] = {
                o.url: o.actual
                for o in sorted(outcomes, key=lambda o: o.url)
                if o.reason is OutcomeReason.EXTRACTED
            }

        logger.info(f"Extracting {len(groups)} expressions from {len(context.urls)} documents")
        scheduler.run(groups, context.urls, unit, collect)
        return dict(sorted(values.items()))


def verify_xpaths(payload: Union[str, bytes, Mapping], config: Optional[VerifierConfig] = None) -> dict:
    """Convenience function: raw input in, sorted report mapping out."""
    return XPathVerifier(config=config).verify_json(payload).to_output()


def extract_values(payload: Union[str, bytes, Mapping], config: Optional[VerifierConfig] = None) -> dict:
    """Convenience function: raw input in, extracted values out."""
    return XPathVerifier(config=config).extract(load_input(payload))
