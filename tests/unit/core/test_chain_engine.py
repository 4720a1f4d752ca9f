"""Tests for running a single chain."""

import pytest
from conftest import static_check

from labctl.core.chain import Chain, ChainFilter, ChainObserver, run_chain
from labctl.core.check import Check, check
from labctl.core.result import CheckResult, CheckStatus


class RecordingObserver(ChainObserver):
    def __init__(self):
        self.events = []

    def on_chain_start(self, chain, checks):
        self.events.append(("start", chain.name, [c.id for c in checks]))

    def on_check_complete(self, chain, report):
        self.events.append(("check", report.id, report.status))

    def on_chain_complete(self, chain, report):
        self.events.append(("complete", chain.name, report.total))


async def test_smoke_chain_counts(make_ctx):
    chain = Chain("smoke", [
        static_check("a", "pass"),
        static_check("b", "fail"),
        static_check("c", "warn"),
    ])

    report = await run_chain(chain, make_ctx())

    assert report.name == "smoke"
    assert (report.total, report.passed, report.failed, report.warned) == (
        3, 1, 1, 1,
    )
    assert report.skipped == 0
    assert report.summary == "1 check(s) failed"
    assert report.has_failures
    assert [c.id for c in report.checks] == ["a", "b", "c"]


async def test_exception_becomes_failure_and_chain_continues(make_ctx):
    calls = []

    async def boom(ctx):
        raise RuntimeError("boom")

    chain = Chain("smoke", [
        Check(id="x", title="Explodes", run=boom),
        static_check("y", "pass", calls=calls),
    ])

    report = await run_chain(chain, make_ctx())

    first = report.checks[0].result
    assert first.status == CheckStatus.FAIL
    assert first.message == "Exception"
    assert first.details == "boom"
    assert calls == ["y"]
    assert report.passed == 1
    assert report.failed == 1


async def test_checks_run_sequentially_in_order(make_ctx):
    calls = []
    chain = Chain("order", [
        static_check(name, calls=calls) for name in ("one", "two", "three")
    ])

    await run_chain(chain, make_ctx())

    assert calls == ["one", "two", "three"]


async def test_counts_partition_total(make_ctx):
    statuses = ["pass", "fail", "warn", "skip", "pass", "skip"]
    chain = Chain("mixed", [
        static_check(f"c{i}", status) for i, status in enumerate(statuses)
    ])

    report = await run_chain(chain, make_ctx())

    assert report.total == len(statuses)
    assert (
        report.passed + report.failed + report.warned + report.skipped
        == report.total
    )
    assert report.skipped == 2


async def test_durations_recorded_and_summed(make_ctx):
    chain = Chain("timed", [static_check("a"), static_check("b")])

    report = await run_chain(chain, make_ctx())

    durations = [c.result.duration for c in report.checks]
    assert all(d is not None and d >= 0 for d in durations)
    assert report.duration == pytest.approx(sum(durations))


async def test_filters_applied_before_running(make_ctx):
    calls = []
    chain = Chain("filtered", [
        static_check("a", tags=("x",), calls=calls),
        static_check("b", tags=("y",), calls=calls),
        static_check("c", tags=("x",), calls=calls),
    ])

    report = await run_chain(
        chain, make_ctx(), ChainFilter(only_tags=["x"], to_id="a")
    )

    assert calls == ["a"]
    assert report.total == 1


async def test_empty_selection_passes(make_ctx):
    report = await run_chain(Chain("empty", []), make_ctx())

    assert report.total == 0
    assert report.summary == "all checks passed"
    assert not report.has_failures


async def test_observers_receive_events_in_order(make_ctx):
    observer = RecordingObserver()
    chain = Chain("obs", [static_check("a"), static_check("b", "warn")])

    await run_chain(chain, make_ctx(), observers=[observer])

    assert observer.events == [
        ("start", "obs", ["a", "b"]),
        ("check", "a", CheckStatus.PASS),
        ("check", "b", CheckStatus.WARN),
        ("complete", "obs", 2),
    ]


async def test_check_decorator_builds_tagged_check(make_ctx):
    @check("decorated", "Decorated check", tags=("smoke", "op"))
    async def decorated(ctx):
        return CheckResult.passed(ctx.settings.vault)

    assert isinstance(decorated, Check)
    assert decorated.tags == frozenset({"smoke", "op"})
    assert decorated.matches(["op"])
    assert not decorated.matches(["tailscale"])

    report = await run_chain(Chain("c", [decorated]), make_ctx(vault="v1"))
    assert report.checks[0].result.message == "v1"
    assert report.checks[0].tags == ["op", "smoke"]
