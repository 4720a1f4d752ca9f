"""Flags, report output and template loading shared by commands."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field
from rich.console import Console

from labctl.core.chain import Chain, ChainFilter, run_chains
from labctl.core.context import RunContext
from labctl.report import ConsoleReporter, render_json
from labctl.secrets.config import load_entries as load_secret_entries
from labctl.secrets.template import TemplateEntry

if TYPE_CHECKING:
    from labctl.core.config import Config, State


class ChainCommand(BaseModel):
    """Options common to every command that runs check chains.

    Parameters:
        dry_run: Run every chain even after failures; skip checks with
            side effects
        as_json: Print the JSON report instead of the console summary
        only_tags: Comma-separated tags; checks need one of them
        from_id: First check id to run (inclusive)
        to_id: Last check id to run (inclusive)
        verbose: Debug logging and details for every failed check
    """

    model_config = ConfigDict(populate_by_name=True)

    dry_run: bool = Field(
        default=False,
        alias="dry-run",
        description="Run all chains regardless of failures",
    )
    as_json: bool = Field(
        default=False,
        alias="json",
        description="Output the report as JSON",
    )
    only_tags: str | None = Field(
        default=None,
        alias="only-tags",
        description="Only run checks with these comma-separated tags",
    )
    from_id: str | None = Field(
        default=None,
        alias="from",
        description="Start at this check id",
    )
    to_id: str | None = Field(
        default=None,
        alias="to",
        description="Stop after this check id",
    )
    verbose: bool = Field(
        default=False,
        description="Verbose output",
    )

    def filters(self) -> ChainFilter:
        return ChainFilter(
            only_tags=ChainFilter.parse_tags(self.only_tags),
            from_id=self.from_id,
            to_id=self.to_id,
        )

    def prepare(self, state: State) -> None:
        """Raise console logging to debug for --verbose."""
        if self.verbose:
            state.config.configure_logging("debug")

    async def run_and_report(
        self,
        chains: Sequence[Chain],
        ctx: RunContext,
        console: Console | None = None,
    ) -> int:
        """Run chains, print the report, return the exit code.

        Console output goes to stdout; logs go to stderr so --json
        output stays parseable.
        """
        console = console or Console()
        if self.as_json:
            run = await run_chains(chains, ctx, self.filters())
            console.print(render_json(run), markup=False, highlight=False,
                          soft_wrap=True)
        else:
            reporter = ConsoleReporter(console, verbose=self.verbose)
            run = await run_chains(
                chains, ctx, self.filters(), observers=[reporter]
            )
            reporter.render(run)
        return run.exit_code


def load_entries(config: Config) -> list[TemplateEntry]:
    """Template entries, with kinds overridden by secrets.config.json.

    Raises:
        ConfigurationError: The template is missing or the secrets
            config is invalid
    """
    return load_secret_entries(
        config.resolve_path(config.secrets_template),
        config.resolve_path(config.secrets_config),
    )
