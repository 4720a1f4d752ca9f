"""Human and JSON rendering of check results.

The chain engine never prints. ConsoleReporter subscribes to its events
for the live status lines and renders the per-chain summaries once the
run is over.
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from labctl.core.chain import Chain, ChainObserver
from labctl.core.check import Check
from labctl.core.result import (
    ChainReport,
    CheckReport,
    CheckStatus,
    RunReport,
)

SYMBOLS = {
    CheckStatus.PASS: "✓",
    CheckStatus.FAIL: "✗",
    CheckStatus.WARN: "⚠",
    CheckStatus.SKIP: "⊘",
}

STYLES = {
    CheckStatus.PASS: "green",
    CheckStatus.FAIL: "red",
    CheckStatus.WARN: "yellow",
    CheckStatus.SKIP: "dim",
}


def status_label(status: CheckStatus) -> str:
    style = STYLES[status]
    return f"[{style}]{SYMBOLS[status]} {status.upper()}[/{style}]"


def format_duration(seconds: float | None) -> str:
    return f"{seconds:.2f}s" if seconds is not None else ""


def check_line(report: CheckReport) -> str:
    """``✓ PASS (0.12s): Title - message`` as rich markup."""
    result = report.result
    duration = f" ({format_duration(result.duration)})" if result.duration else ""
    message = f" - {escape(result.message)}" if result.message else ""
    return (
        f"{status_label(result.status)}{duration}: "
        f"{escape(report.title)}{message}"
    )


def shows_details(report: CheckReport) -> bool:
    return bool(report.result.details) and report.status in (
        CheckStatus.FAIL,
        CheckStatus.WARN,
    )


def chain_summary(report: ChainReport) -> Panel:
    """Boxed summary: counts, one row per check, details for fail/warn."""
    counts = (
        f"Total: {report.total} checks\n"
        f"Results: [green]{report.passed} passed[/green] | "
        f"[red]{report.failed} failed[/red] | "
        f"[yellow]{report.warned} warned[/yellow] | "
        f"[dim]{report.skipped} skipped[/dim]\n"
        f"Duration: {format_duration(report.duration)}"
    )

    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("Status", no_wrap=True)
    table.add_column("Check", style="cyan")
    table.add_column("Duration", justify="right", style="dim")
    table.add_column("Message")
    for check in report.checks:
        table.add_row(
            status_label(check.status),
            escape(check.title),
            format_duration(check.result.duration),
            escape(check.result.message or ""),
        )
        if shows_details(check):
            details = "\n".join(
                f"  {escape(line)}"
                for line in check.result.details.splitlines()
            )
            table.add_row("", f"[dim]{details}[/dim]", "", "")

    if report.failed:
        footer = f"[red]✗ Failed: {report.summary}[/red]"
    elif report.warned:
        footer = f"[yellow]⚠ Warnings: {report.summary}[/yellow]"
    else:
        footer = "[green]✓ All checks passed![/green]"

    return Panel(
        Group(counts, "", table, "", footer),
        title=f"[bold]{escape(report.name)}[/bold]",
        title_align="left",
    )


class ConsoleReporter(ChainObserver):
    """Live status lines while chains run, summaries at the end."""

    def __init__(self, console: Console | None = None, verbose: bool = False):
        self.console = console or Console()
        self.verbose = verbose

    def on_chain_start(self, chain: Chain, checks: list[Check]) -> None:
        self.console.print(
            f"\n[bold]▶ Running {escape(chain.name)} checks "
            f"({len(checks)})...[/bold]"
        )

    def on_check_complete(self, chain: Chain, report: CheckReport) -> None:
        self.console.print(f"  {check_line(report)}")
        if self.verbose and shows_details(report):
            for line in report.result.details.splitlines():
                self.console.print(f"      [dim]{escape(line)}[/dim]")

    def on_run_halted(self, chain: Chain, report: ChainReport) -> None:
        self.console.print(
            f"\n[red]✗ Chain {escape(chain.name)} failed. Stopping.[/red]"
        )

    def render(self, run: RunReport) -> None:
        for chain_report in run.chains:
            self.console.print()
            self.console.print(chain_summary(chain_report))


def render_json(run: RunReport) -> str:
    """The structured report printed with --json."""
    return run.model_dump_json(indent=2)
