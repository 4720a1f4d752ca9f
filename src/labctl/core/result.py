"""Result and report types for check execution."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, computed_field


class CheckStatus(StrEnum):
    """Outcome of a single check."""

    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"
    SKIP = "skip"


class CheckResult(BaseModel):
    """What a check returns.

    details is only rendered for non-pass results. duration is filled in
    by the chain engine, not by the check.
    """

    status: CheckStatus
    message: str | None = None
    details: str | None = None
    data: Any = None
    duration: float | None = None

    @classmethod
    def passed(cls, message: str | None = None, **kwargs) -> CheckResult:
        return cls(status=CheckStatus.PASS, message=message, **kwargs)

    @classmethod
    def failed(cls, message: str | None = None, **kwargs) -> CheckResult:
        return cls(status=CheckStatus.FAIL, message=message, **kwargs)

    @classmethod
    def warned(cls, message: str | None = None, **kwargs) -> CheckResult:
        return cls(status=CheckStatus.WARN, message=message, **kwargs)

    @classmethod
    def skipped(cls, message: str | None = None, **kwargs) -> CheckResult:
        return cls(status=CheckStatus.SKIP, message=message, **kwargs)


class CheckReport(BaseModel):
    """A CheckResult tagged with the check that produced it."""

    id: str
    title: str
    tags: list[str] = Field(default_factory=list)
    result: CheckResult
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def status(self) -> CheckStatus:
        return self.result.status


def summarize(failed: int, warned: int) -> str:
    """One-line chain summary."""
    if failed:
        return f"{failed} check(s) failed"
    if warned:
        return f"{warned} check(s) warned"
    return "all checks passed"


class ChainReport(BaseModel):
    """Aggregated outcome of one chain run."""

    name: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    warned: int = 0
    skipped: int = 0
    duration: float = 0.0
    checks: list[CheckReport] = Field(default_factory=list)

    @computed_field
    @property
    def summary(self) -> str:
        return summarize(self.failed, self.warned)

    @property
    def has_failures(self) -> bool:
        return self.failed > 0

    @classmethod
    def from_reports(
        cls, name: str, reports: list[CheckReport]
    ) -> ChainReport:
        """Count reports by status and sum their durations."""
        counts = {status: 0 for status in CheckStatus}
        for report in reports:
            counts[report.status] += 1
        return cls(
            name=name,
            total=len(reports),
            passed=counts[CheckStatus.PASS],
            failed=counts[CheckStatus.FAIL],
            warned=counts[CheckStatus.WARN],
            skipped=counts[CheckStatus.SKIP],
            duration=sum(r.result.duration or 0.0 for r in reports),
            checks=list(reports),
        )


class RunSummary(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0


class RunReport(BaseModel):
    """Every chain executed by one command, as printed with --json."""

    chains: list[ChainReport] = Field(default_factory=list)

    @computed_field
    @property
    def summary(self) -> RunSummary:
        return RunSummary(
            total=sum(c.total for c in self.chains),
            passed=sum(c.passed for c in self.chains),
            failed=sum(c.failed for c in self.chains),
        )

    @property
    def has_failures(self) -> bool:
        return any(c.has_failures for c in self.chains)

    @property
    def exit_code(self) -> int:
        return 1 if self.has_failures else 0
