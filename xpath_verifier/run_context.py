"""
Per-run state: memoized parses, memoized compilations, diagnostics.

Benefits:
- Speed: each url is parsed once and each distinct expression compiled once,
  however many headings and expressions touch them
- Isolation: a RunContext is created for one run and dropped afterwards;
  nothing is shared between runs or held at module level
- Auditing: the diagnostic log keeps the reason behind every NoMatch
"""

import threading
from collections import Counter
from collections.abc import Callable, Mapping
from typing import Generic, Optional, TypeVar

from .compiler import CompiledQuery, compile_expression
from .config import VerifierConfig
from .document_parser import ParsedDocument, parse_document
from .schemas import DocumentPayload, Outcome, OutcomeReason
from .logger import get_module_logger

logger = get_module_logger("run_context")

K = TypeVar("K")
V = TypeVar("V")


class OnceCache(Generic[K, V]):
    """
    Key → value map whose values are computed at most once.

    Concurrent first requests for the same key serialize on a per-key lock:
    one caller computes, the others wait and read the stored value.  Requests
    for different keys never block each other during computation.  After the
    first computation a key is read-only.

    Failures are expected to come back as values.  If the factory raises
    anyway, the exception is stored in place of the value and raised again
    for every later request, so the factory still runs only once per key.
    """

    def __init__(self, name: str, factory: Callable[[K], V]):
        self.name = name
        self._factory = factory
        self._values: dict = {}
        self._errors: dict = {}
        self._locks: dict = {}
        self._guard = threading.Lock()   # protects _locks and _counts
        self._counts: Counter = Counter()

    def _stored(self, key: K) -> V:
        error = self._errors.get(key)
        if error is not None:
            raise error
        return self._values[key]

    def get(self, key: K) -> V:
        if key in self._values or key in self._errors:
            return self._stored(key)

        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())

        with lock:
            # Another thread may have finished while we waited
            if key in self._values or key in self._errors:
                return self._stored(key)

            with self._guard:
                self._counts[key] += 1
            try:
                value = self._factory(key)
            except Exception as e:
                self._errors[key] = e
                logger.warning(f"{self.name}: computing {key!r} failed: {type(e).__name__}: {e}")
                raise

            self._values[key] = value
            logger.debug(f"{self.name}: computed {key!r}")
            return value

    def exists(self, key: K) -> bool:
        return key in self._values

    def failed(self, key: K) -> bool:
        return key in self._errors

    def computations(self, key: K) -> int:
        """How many times the factory ran for key (0 or 1), failed attempts included."""
        with self._guard:
            return self._counts[key]

    @property
    def total_computations(self) -> int:
        with self._guard:
            return sum(self._counts.values())

    def __len__(self) -> int:
        return len(self._values)


class DiagnosticLog:
    """Side channel for NoMatch reasons.  Not part of the public report."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: list[Outcome] = []

    def record(self, outcome: Outcome) -> None:
        with self._lock:
            self._entries.append(outcome)
        logger.debug(
            f"[{outcome.reason.value}] '{outcome.expression}' on '{outcome.url}'"
            + (f": {outcome.detail}" if outcome.detail else "")
        )

    def entries(self) -> list[Outcome]:
        """Snapshot in a stable order: expression, url, heading, reason."""
        with self._lock:
            snapshot = list(self._entries)
        return sorted(snapshot, key=lambda o: (o.expression, o.url, o.heading, o.reason.value))

    def by_reason(self) -> dict[str, int]:
        with self._lock:
            counts = Counter(o.reason.value for o in self._entries)
        return dict(sorted(counts.items()))

    def count(self, reason: Optional[OutcomeReason] = None) -> int:
        with self._lock:
            if reason is None:
                return len(self._entries)
            return sum(1 for o in self._entries if o.reason is reason)


class RunContext:
    """
    Everything one verification run shares across its evaluation units.

    Parsed documents and compiled queries are populated lazily through
    OnceCache, so concurrent units asking for the same url or expression
    trigger exactly one parse or compile.
    """

    def __init__(self, documents: Mapping[str, DocumentPayload], config: Optional[VerifierConfig] = None):
        self.config = config or VerifierConfig()
        self._payloads = dict(documents)
        self.documents: OnceCache[str, ParsedDocument] = OnceCache("documents", self._parse)
        self.queries: OnceCache[str, CompiledQuery] = OnceCache("queries", compile_expression)
        self.diagnostics = DiagnosticLog()

    @property
    def urls(self) -> list[str]:
        return list(self._payloads)

    def target(self, url: str, heading: str) -> Optional[str]:
        """Expected value for (heading, url); None when nothing is registered."""
        return self._payloads[url].targets.get(heading)

    def document(self, url: str) -> ParsedDocument:
        return self.documents.get(url)

    def query(self, expression: str) -> CompiledQuery:
        return self.queries.get(expression)

    def _parse(self, url: str) -> ParsedDocument:
        return parse_document(
            url,
            self._payloads[url].content,
            backend=self.config.parser_backend,
            sanitize=self.config.sanitize_markup
        )
