"""Rotate command - replace one secret's value."""

from pydantic import BaseModel, ConfigDict, Field
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt

from labctl.command.base import load_entries
from labctl.core.errors import ConfigurationError
from labctl.core.log import logger
from labctl.secrets.store import SecretStore
from labctl.secrets.strategies import (
    SshKeyStrategy,
    instructions_for,
    ssh_sibling,
    strategy_for,
    validate_format,
)


class RotateCommand(BaseModel):
    """Rotate one secret from secrets.template.

    Generated kinds get a fresh value; rotating either half of an SSH
    key pair rewrites both halves. External kinds print the steps
    to obtain a new value and prompt for it; an empty answer skips.

    Parameters:
        name: Variable name of the secret in secrets.template
        dry_run: Show what would change without writing
        verbose: Debug logging
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(description="Secret name from secrets.template")
    dry_run: bool = Field(
        default=False,
        alias="dry-run",
        description="Show what would change without writing to 1Password",
    )
    verbose: bool = Field(default=False, description="Verbose output")

    async def run_workflow(self, state: "State") -> int:
        config = state.config
        if self.verbose:
            config.configure_logging("debug")

        entries = load_entries(config)
        entry = next((e for e in entries if e.name == self.name), None)
        if entry is None:
            raise ConfigurationError(
                f"Secret not in {config.secrets_template}: {self.name}"
            )
        strategy = strategy_for(entry.kind)
        if strategy is None:
            raise ConfigurationError(
                f'No rotation strategy for {entry.name} (kind "{entry.kind}")'
            )

        console = Console()
        console.print(f"\n[bold]Rotating {escape(entry.name)}[/bold]")

        value = None
        if strategy.external and not self.dry_run:
            console.print(Panel(escape(instructions_for(entry.kind))))
            value = Prompt.ask(
                f"Paste new {escape(entry.name)}",
                password=True,
                default="",
                show_default=False,
                console=console,
            ).strip()
            if not value:
                console.print("[dim]Skipped[/dim]")
                return 0
            if not validate_format(entry.kind, value):
                logger.warn(
                    f"Value for {entry.name} does not look like a {entry.kind}"
                )

        store = SecretStore(config.store_cli)
        if isinstance(strategy, SshKeyStrategy):
            # Both halves are replaced from one new pair
            result = await strategy.rotate(
                entry, store, dry_run=self.dry_run,
                sibling=ssh_sibling(entry, entries),
            )
        else:
            result = await strategy.rotate(
                entry, store, dry_run=self.dry_run, value=value
            )
        if not result.success:
            console.print(f"[red]✗ {escape(result.error or 'Rotation failed')}[/red]")
            return 1

        if result.dry_run:
            console.print(
                f"[yellow]Would rotate {escape(entry.name)} "
                f"({entry.kind})[/yellow]"
            )
        else:
            console.print(
                f"[green]✓ Rotated {escape(entry.name)} in "
                f"{escape(entry.reference)}[/green]"
            )
        return 0
