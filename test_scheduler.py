"""
Tests for the concurrency scheduler, the per-run caches and the aggregator.
"""

import threading
import time

import pytest

from xpath_verifier.aggregator import ResultAggregator
from xpath_verifier.run_context import DiagnosticLog, OnceCache
from xpath_verifier.scheduler import ConcurrencyScheduler, UnitGroup, groups_from_headings
from xpath_verifier.schemas import Outcome, OutcomeReason


URLS = ["http://a.com", "http://b.com", "http://c.com"]


def outcome(heading, expression, url, reason=OutcomeReason.MATCH) -> Outcome:
    return Outcome(expression=expression, heading=heading, url=url, reason=reason)


class Recorder:
    """on_group_done callback that remembers what it was given, in order."""

    def __init__(self):
        self.calls = []

    def __call__(self, heading, expression, outcomes):
        self.calls.append((heading, expression, outcomes))


# --- Scheduler ---

def test_groups_follow_registration_order():
    groups = groups_from_headings({"H1": ["//a", "//b"], "H2": ["//c", "//a"]})

    assert groups == [
        UnitGroup("H1", "//a"),
        UnitGroup("H1", "//b"),
        UnitGroup("H2", "//c"),
        UnitGroup("H2", "//a"),
    ]


def test_every_unit_runs_and_groups_are_joined():
    recorder = Recorder()
    groups = [UnitGroup("H", "//a"), UnitGroup("H", "//b")]

    units = ConcurrencyScheduler(max_workers=4).run(groups, URLS, outcome, recorder)

    assert units == 6
    assert len(recorder.calls) == 2
    for _, _, outcomes in recorder.calls:
        assert sorted(o.url for o in outcomes) == URLS


def test_groups_finalize_in_registration_order_even_when_first_is_slowest():
    recorder = Recorder()
    groups = [UnitGroup("H1", "slow"), UnitGroup("H2", "fast")]

    def unit(heading, expression, url):
        if expression == "slow":
            time.sleep(0.05)
        return outcome(heading, expression, url)

    ConcurrencyScheduler(max_workers=8).run(groups, URLS, unit, recorder)

    assert [expression for _, expression, _ in recorder.calls] == ["slow", "fast"]


def test_faulting_unit_is_isolated():
    recorder = Recorder()
    diagnostics = DiagnosticLog()

    def unit(heading, expression, url):
        if url == "http://b.com":
            raise RuntimeError("boom")
        return outcome(heading, expression, url)

    ConcurrencyScheduler(max_workers=2, diagnostics=diagnostics).run(
        [UnitGroup("H", "//a")], URLS, unit, recorder
    )

    (_, _, outcomes), = recorder.calls
    by_url = {o.url: o for o in outcomes}
    assert by_url["http://a.com"].matched
    assert by_url["http://c.com"].matched
    assert by_url["http://b.com"].reason is OutcomeReason.UNIT_FAULT
    assert "RuntimeError: boom" in by_url["http://b.com"].detail

    assert diagnostics.count(OutcomeReason.UNIT_FAULT) == 1
    assert diagnostics.count() == 1


def test_matches_are_not_recorded_as_diagnostics():
    diagnostics = DiagnosticLog()

    def unit(heading, expression, url):
        reason = OutcomeReason.MATCH if url == "http://a.com" else OutcomeReason.VALUE_MISMATCH
        return outcome(heading, expression, url, reason)

    ConcurrencyScheduler(diagnostics=diagnostics).run([UnitGroup("H", "//a")], URLS, unit, Recorder())

    assert diagnostics.by_reason() == {"value_mismatch": 2}


def test_no_documents_still_finalizes_each_group():
    recorder = Recorder()
    ConcurrencyScheduler().run([UnitGroup("H", "//a")], [], outcome, recorder)

    assert recorder.calls == [("H", "//a", [])]


# --- OnceCache ---

def test_once_cache_computes_each_key_once_under_contention():
    calls = []
    barrier = threading.Barrier(8)

    def factory(key):
        calls.append(key)
        time.sleep(0.02)
        return key.upper()

    cache = OnceCache("test", factory)
    results = []

    def worker():
        barrier.wait()
        results.append(cache.get("doc"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert calls == ["doc"]
    assert results == ["DOC"] * 8
    assert cache.computations("doc") == 1
    assert cache.total_computations == 1


def test_once_cache_keys_are_independent():
    cache = OnceCache("test", len)

    assert cache.get("ab") == 2
    assert cache.get("abc") == 3
    assert cache.get("ab") == 2
    assert not cache.exists("zz")
    assert len(cache) == 2
    assert cache.total_computations == 2


def test_once_cache_remembers_a_failing_factory():
    calls = []

    def factory(key):
        calls.append(key)
        raise RecursionError("too deep")

    cache = OnceCache("test", factory)

    for _ in range(3):
        with pytest.raises(RecursionError):
            cache.get("doc")

    assert calls == ["doc"]
    assert cache.computations("doc") == 1
    assert cache.failed("doc")
    assert not cache.exists("doc")


# --- Aggregator ---

def test_every_url_lands_in_exactly_one_set():
    aggregator = ResultAggregator(URLS)
    # c.com has no outcome at all and still counts as unsuccessful
    aggregator.finalize("//a", "H", [
        outcome("H", "//a", "http://a.com"),
        outcome("H", "//a", "http://b.com", OutcomeReason.PARSE_ERROR),
    ])

    entry = aggregator.entries()["//a"]
    assert entry.successful == {"http://a.com"}
    assert entry.unsuccessful == {"http://b.com", "http://c.com"}
    assert entry.successful | entry.unsuccessful == set(URLS)
    assert not entry.successful & entry.unsuccessful


def test_first_finalization_wins():
    aggregator = ResultAggregator(URLS)

    assert aggregator.finalize("//a", "H1", [outcome("H1", "//a", "http://a.com")])
    assert not aggregator.finalize("//a", "H2", [outcome("H2", "//a", "http://b.com")])

    entry = aggregator.entries()["//a"]
    assert entry.heading == "H1"
    assert entry.successful == {"http://a.com"}
    assert aggregator.discarded == 1


def test_report_is_sorted():
    aggregator = ResultAggregator(reversed(URLS))
    aggregator.finalize("//z", "H", [])
    aggregator.finalize("//a", "H", [outcome("H", "//a", u) for u in reversed(URLS)])

    output = aggregator.to_report().to_output()

    assert list(output) == ["//a", "//z"]
    assert output["//a"] == {"successful": URLS, "unsuccessful": []}
    assert output["//z"] == {"successful": [], "unsuccessful": URLS}
