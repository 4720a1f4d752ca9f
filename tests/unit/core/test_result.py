"""Tests for result models and their JSON form."""

import json

from labctl.core.result import (
    ChainReport,
    CheckReport,
    CheckResult,
    CheckStatus,
    RunReport,
    summarize,
)


def report(id, status, duration=0.5):
    return CheckReport(
        id=id,
        title=id.upper(),
        result=CheckResult(status=status, duration=duration),
    )


def test_factories_set_status():
    assert CheckResult.passed().status == CheckStatus.PASS
    assert CheckResult.failed("x").status == CheckStatus.FAIL
    assert CheckResult.warned("x").status == CheckStatus.WARN
    assert CheckResult.skipped("x").status == CheckStatus.SKIP
    assert CheckResult.failed("m", details="d").details == "d"


def test_summarize():
    assert summarize(2, 3) == "2 check(s) failed"
    assert summarize(0, 3) == "3 check(s) warned"
    assert summarize(0, 0) == "all checks passed"


def test_chain_report_from_reports():
    chain = ChainReport.from_reports("smoke", [
        report("a", CheckStatus.PASS),
        report("b", CheckStatus.WARN),
        report("c", CheckStatus.SKIP, duration=1.0),
    ])

    assert chain.total == 3
    assert chain.warned == 1
    assert chain.skipped == 1
    assert chain.duration == 2.0
    assert chain.summary == "1 check(s) warned"
    assert not chain.has_failures


def test_run_report_json_shape():
    run = RunReport(chains=[
        ChainReport.from_reports("smoke", [report("a", CheckStatus.PASS)]),
        ChainReport.from_reports("preflight", [report("b", CheckStatus.FAIL)]),
    ])

    data = json.loads(run.model_dump_json())

    assert data["summary"] == {"total": 2, "passed": 1, "failed": 1}
    assert [c["name"] for c in data["chains"]] == ["smoke", "preflight"]
    first = data["chains"][0]
    assert first["summary"] == "all checks passed"
    assert first["checks"][0]["id"] == "a"
    assert first["checks"][0]["result"]["status"] == "pass"
    assert "timestamp" in first["checks"][0]


def test_exit_code():
    assert RunReport().exit_code == 0
    failing = RunReport(chains=[
        ChainReport.from_reports("x", [report("a", CheckStatus.FAIL)])
    ])
    assert failing.exit_code == 1
