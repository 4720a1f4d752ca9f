"""Init command - create every template secret in the store."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from labctl.command.base import load_entries
from labctl.core.errors import ExecutionError
from labctl.core.log import logger
from labctl.secrets.store import SecretStore
from labctl.secrets.strategies import strategy_for
from labctl.secrets.template import SecretKind, TemplateEntry


class InitStatus(StrEnum):
    CREATED = "created"
    PLANNED = "would create"
    EXISTS = "exists"
    SKIPPED = "skipped"
    FAILED = "failed"


_STYLES = {
    InitStatus.CREATED: "green",
    InitStatus.PLANNED: "yellow",
    InitStatus.EXISTS: "dim",
    InitStatus.SKIPPED: "dim",
    InitStatus.FAILED: "red",
}


class InitOutcome(BaseModel):
    name: str
    kind: SecretKind
    status: InitStatus
    message: str = ""


class InitCommand(BaseModel):
    """Initialize secrets in 1Password from secrets.template.

    Each entry is handed to the strategy for its kind. Secret values
    are never printed.

    Parameters:
        dry_run: Show what would be created without writing
        verbose: Debug logging
        force: Overwrite secrets that already have a value
        skip_external: Skip secrets issued by other systems
    """

    model_config = ConfigDict(populate_by_name=True)

    dry_run: bool = Field(
        default=False,
        alias="dry-run",
        description="Show what would be created without writing to 1Password",
    )
    verbose: bool = Field(default=False, description="Verbose output")
    force: bool = Field(
        default=False,
        description="Overwrite existing secrets",
    )
    skip_external: bool = Field(
        default=False,
        alias="skip-external",
        description="Skip external secrets (Proxmox token, Tailscale keys)",
    )

    async def run_workflow(self, state: "State") -> int:
        """Initialize every entry.

        Returns:
            Exit code (1 if any entry failed)
        """
        config = state.config
        if self.verbose:
            config.configure_logging("debug")

        entries = load_entries(config)
        store = SecretStore(config.store_cli)
        console = Console()

        console.print(f"\n[blue]Found {len(entries)} secret(s) to initialize[/blue]")
        if self.dry_run:
            console.print("[yellow]DRY RUN - no changes will be made[/yellow]")

        outcomes = [await self.initialize_entry(e, store) for e in entries]
        console.print(outcome_table(outcomes))

        failed = sum(1 for o in outcomes if o.status == InitStatus.FAILED)
        created = sum(
            1 for o in outcomes
            if o.status in (InitStatus.CREATED, InitStatus.PLANNED)
        )
        verb = "Would create" if self.dry_run else "Created"
        console.print(f"\nTotal: {len(outcomes)}  {verb}: {created}  Failed: {failed}")

        if failed:
            return 1
        if self.dry_run:
            console.print("[blue]Run without --dry-run to create secrets[/blue]")
        else:
            console.print(
                "[green]✓ Secrets initialized! Run 'labctl preflight' "
                "to test.[/green]"
            )
        return 0

    async def initialize_entry(
        self, entry: TemplateEntry, store: SecretStore
    ) -> InitOutcome:
        def outcome(status, message=""):
            return InitOutcome(
                name=entry.name, kind=entry.kind,
                status=status, message=message,
            )

        if not entry.is_valid:
            return outcome(
                InitStatus.FAILED,
                f"Reference needs vault/item/field: {entry.reference}",
            )

        strategy = strategy_for(entry.kind)
        if strategy is None:
            return outcome(
                InitStatus.FAILED, f'No strategy for kind "{entry.kind}"'
            )
        if self.skip_external and strategy.external:
            return outcome(InitStatus.SKIPPED, "External")

        if not self.force and await has_value(store, entry):
            return outcome(
                InitStatus.EXISTS, "Already set (--force to overwrite)"
            )

        logger.debug(f"Initializing {entry.name}", kind=str(entry.kind))
        result = await strategy.initialize(entry, store, dry_run=self.dry_run)
        if not result.success:
            return outcome(InitStatus.FAILED, result.error or "Failed")
        if result.dry_run:
            return outcome(InitStatus.PLANNED, f"Would create {entry.reference}")
        return outcome(InitStatus.CREATED, f"Created in {entry.reference}")


async def has_value(store: SecretStore, entry: TemplateEntry) -> bool:
    """True if the reference already resolves to a non-empty value."""
    try:
        return bool(await store.read(entry.reference))
    except ExecutionError:
        return False


def outcome_table(outcomes: list[InitOutcome]) -> Table:
    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("Status", no_wrap=True)
    table.add_column("Secret", style="cyan")
    table.add_column("Kind", style="dim")
    table.add_column("Message")
    for o in outcomes:
        style = _STYLES[o.status]
        table.add_row(
            f"[{style}]{o.status}[/{style}]",
            escape(o.name),
            str(o.kind),
            escape(o.message),
        )
    return table
