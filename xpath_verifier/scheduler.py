"""
Concurrency Scheduler: one evaluation unit per (expression, document) pair.

Every unit of every group is submitted to a thread pool up front; groups
are then joined strictly in registration order.  A group's outcomes are
handed on only once all of its units have finished, so finalization order
(and therefore first-registered-wins in the aggregator) never depends on
which thread happens to finish first.

Fault isolation: a unit that raises is converted to a UNIT_FAULT outcome at
the unit boundary and recorded on the diagnostic log.  Sibling units and the
rest of the batch carry on.

No timeouts: a unit that hangs hangs the batch.
"""

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Optional

from .run_context import DiagnosticLog
from .schemas import Outcome, OutcomeReason
from .logger import get_module_logger

logger = get_module_logger("scheduler")

# (heading, expression, url) → Outcome
UnitFn = Callable[[str, str, str], Outcome]
# (heading, expression, outcomes) → None
GroupCallback = Callable[[str, str, list[Outcome]], None]

# Outcomes that do not go to the diagnostic log
_UNREMARKABLE = (OutcomeReason.MATCH, OutcomeReason.EXTRACTED)


@dataclass(frozen=True)
class UnitGroup:
    """All units for one expression as registered under one heading."""
    heading: str
    expression: str


def groups_from_headings(headings: dict[str, Sequence[str]]) -> list[UnitGroup]:
    """Flatten headings into groups in registration order (heading order, then list order)."""
    return [
        UnitGroup(heading=heading, expression=expression)
        for heading, expressions in headings.items()
        for expression in expressions
    ]


class ConcurrencyScheduler:
    """Fans units out over a thread pool and joins them per group."""

    def __init__(self, max_workers: Optional[int] = None, diagnostics: Optional[DiagnosticLog] = None):
        self.max_workers = max_workers
        self.diagnostics = diagnostics

    def _run_unit(self, unit: UnitFn, group: UnitGroup, url: str) -> Outcome:
        """Unit boundary: whatever the unit raises becomes an outcome."""
        try:
            outcome = unit(group.heading, group.expression, url)
        except Exception as e:
            logger.error(
                f"Evaluation unit for '{group.expression}' on '{url}' failed unexpectedly: "
                f"{type(e).__name__}: {e}",
                exc_info=logger.isEnabledFor(logging.DEBUG)
            )
            outcome = Outcome(
                expression=group.expression,
                heading=group.heading,
                url=url,
                reason=OutcomeReason.UNIT_FAULT,
                detail=f"{type(e).__name__}: {e}"
            )

        if self.diagnostics is not None and outcome.reason not in _UNREMARKABLE:
            self.diagnostics.record(outcome)
        return outcome

    def run(
        self,
        groups: Iterable[UnitGroup],
        urls: Sequence[str],
        unit: UnitFn,
        on_group_done: GroupCallback
    ) -> int:
        """
        Run every unit and finalize groups in registration order.

        Args:
            groups: Groups in registration order
            urls: Document universe; one unit per url per group
            unit: Callable evaluating one pair
            on_group_done: Receives each group's complete outcome list

        Returns:
            Number of units executed
        """
        groups = list(groups)
        urls = list(urls)
        started = time.perf_counter()
        logger.info(f"Scheduling {len(groups)} expression groups x {len(urls)} documents")

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="xpath-unit") as executor:
            # Submit everything first so work on later groups overlaps joins on earlier ones
            submitted: list[tuple[UnitGroup, list[Future]]] = [
                (group, [executor.submit(self._run_unit, unit, group, url) for url in urls])
                for group in groups
            ]

            for group, futures in submitted:
                # Join point: every unit of this group, success or fault
                wait(futures)
                outcomes = [future.result() for future in futures]
                on_group_done(group.heading, group.expression, outcomes)

        units = len(groups) * len(urls)
        logger.info(f"Completed {units} evaluation units in {time.perf_counter() - started:.2f}s")
        return units
