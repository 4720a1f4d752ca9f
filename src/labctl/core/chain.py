"""Chain engine and multi-chain orchestrator."""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from labctl.core.check import Check
from labctl.core.context import RunContext
from labctl.core.errors import RangeFilterError
from labctl.core.log import logger
from labctl.core.result import (
    ChainReport,
    CheckReport,
    CheckResult,
    RunReport,
)


@dataclass(frozen=True)
class Chain:
    """An ordered list of checks run as one phase."""

    name: str
    checks: tuple[Check, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "checks", tuple(self.checks))


class ChainFilter(BaseModel):
    """Tag and id-range selection applied before a chain runs."""

    only_tags: list[str] = Field(default_factory=list)
    from_id: str | None = None
    to_id: str | None = None

    @classmethod
    def parse_tags(cls, value: str | None) -> list[str]:
        """Split a comma-separated --only-tags value."""
        if not value:
            return []
        return [tag.strip() for tag in value.split(",") if tag.strip()]


class ChainObserver:
    """Receives progress events from the engine. Methods default to no-ops."""

    def on_chain_start(self, chain: Chain, checks: list[Check]) -> None:
        pass

    def on_check_complete(self, chain: Chain, report: CheckReport) -> None:
        pass

    def on_chain_complete(self, chain: Chain, report: ChainReport) -> None:
        pass

    def on_run_halted(self, chain: Chain, report: ChainReport) -> None:
        pass


def _index_of(checks: Sequence[Check], check_id: str) -> int:
    for i, c in enumerate(checks):
        if c.id == check_id:
            return i
    return -1


def _range_bounds(
    checks: Sequence[Check],
    from_id: str | None,
    to_id: str | None,
) -> tuple[int, int]:
    """Inclusive start and end positions of the --from/--to range.

    Raises:
        RangeFilterError: Unknown id, or from after to
    """
    start, end = 0, len(checks) - 1
    if from_id:
        start = _index_of(checks, from_id)
        if start < 0:
            raise RangeFilterError(f"Unknown check id for --from: {from_id}")
    if to_id:
        end = _index_of(checks, to_id)
        if end < 0:
            raise RangeFilterError(f"Unknown check id for --to: {to_id}")
    if start > end and from_id and to_id:
        raise RangeFilterError(
            f"--from {from_id} comes after --to {to_id}"
        )
    return start, end


def filter_checks(
    checks: Iterable[Check],
    only_tags: Iterable[str] | None = None,
    from_id: str | None = None,
    to_id: str | None = None,
) -> list[Check]:
    """Select checks by tag, then by inclusive id range.

    Order is always preserved.

    Raises:
        RangeFilterError: Unknown id, or from after to
    """
    selected = list(checks)

    tags = set(only_tags or ())
    if tags:
        selected = [c for c in selected if c.matches(tags)]

    start, end = _range_bounds(selected, from_id, to_id)
    return selected[start:end + 1]


async def _run_one(check: Check, ctx: RunContext) -> CheckReport:
    start = time.perf_counter()
    try:
        result = await check.run(ctx)
    except Exception as e:
        logger.warn(f"Check {check.id} raised {type(e).__name__}")
        result = CheckResult.failed("Exception", details=str(e))
    duration = time.perf_counter() - start

    return CheckReport(
        id=check.id,
        title=check.title,
        tags=sorted(check.tags),
        result=result.model_copy(update={"duration": duration}),
    )


async def _run_selected(
    chain: Chain,
    checks: list[Check],
    ctx: RunContext,
    observers: Sequence[ChainObserver],
) -> ChainReport:
    for observer in observers:
        observer.on_chain_start(chain, checks)

    reports = []
    with logger.span(f"Chain {chain.name}", checks=len(checks)):
        for check in checks:
            report = await _run_one(check, ctx)
            reports.append(report)
            logger.debug(
                f"{check.id}: {report.status}",
                duration=report.result.duration,
            )
            for observer in observers:
                observer.on_check_complete(chain, report)

    chain_report = ChainReport.from_reports(chain.name, reports)
    for observer in observers:
        observer.on_chain_complete(chain, chain_report)
    return chain_report


async def run_chain(
    chain: Chain,
    ctx: RunContext,
    filters: ChainFilter | None = None,
    observers: Sequence[ChainObserver] = (),
) -> ChainReport:
    """Run the selected checks of one chain, one after another.

    A failing or raising check never stops the chain.
    """
    filters = filters or ChainFilter()
    checks = filter_checks(
        chain.checks,
        filters.only_tags,
        filters.from_id,
        filters.to_id,
    )
    return await _run_selected(chain, checks, ctx, observers)


def select_checks(
    chains: Sequence[Chain], filters: ChainFilter
) -> list[list[Check]]:
    """Checks to run per chain, with one range spanning all chains.

    The tag-filtered checks of every chain are laid end to end and the
    --from/--to slice is taken over that sequence; an id present in
    several chains matches its first occurrence.

    Raises:
        RangeFilterError: Unknown id, or from after to in run order
    """
    tagged = [filter_checks(chain.checks, filters.only_tags) for chain in chains]
    combined = [check for checks in tagged for check in checks]
    start, end = _range_bounds(combined, filters.from_id, filters.to_id)

    selected, offset = [], 0
    for checks in tagged:
        selected.append([
            check for i, check in enumerate(checks, start=offset)
            if start <= i <= end
        ])
        offset += len(checks)
    return selected


async def run_chains(
    chains: Sequence[Chain],
    ctx: RunContext,
    filters: ChainFilter | None = None,
    observers: Sequence[ChainObserver] = (),
) -> RunReport:
    """Run chains in order on one shared context.

    Outside dry-run the first chain with a failed check halts the run
    and only the reports gathered so far are returned.

    Raises:
        RangeFilterError: --from/--to names no selected check, or from
            comes after to; raised before any check runs
    """
    selections = select_checks(chains, filters or ChainFilter())

    run = RunReport()
    for chain, checks in zip(chains, selections, strict=True):
        report = await _run_selected(chain, checks, ctx, observers)
        run.chains.append(report)

        if report.failed and not ctx.dry_run:
            logger.error(f"Chain {chain.name} failed, stopping")
            for observer in observers:
                observer.on_run_halted(chain, report)
            break
    return run


__all__ = [
    "Chain",
    "ChainFilter",
    "ChainObserver",
    "filter_checks",
    "run_chain",
    "run_chains",
    "select_checks",
]
