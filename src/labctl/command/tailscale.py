"""Tailscale-up command - join the tailnet with the stored auth key."""

from pydantic import BaseModel, ConfigDict, Field
from rich.console import Console
from rich.markup import escape

from labctl.checks.tailscale import connected_ip
from labctl.command.base import load_entries
from labctl.core.errors import ConfigurationError, ExecutionError, ParseError
from labctl.core.exec import capture_json, capture_output, execute
from labctl.core.log import logger
from labctl.secrets.store import SecretStore
from labctl.secrets.template import SecretKind, TemplateEntry


async def tailscale_ip() -> str | None:
    """Current tailnet IP, or None when not connected."""
    try:
        status = await capture_json("tailscale", ["status", "--json"])
    except (ExecutionError, ParseError):
        return None
    return connected_ip(status)


class TailscaleUpCommand(BaseModel):
    """Authenticate this machine with the Tailscale network.

    Does nothing when already connected. Otherwise reads the auth key
    from 1Password, runs tailscale up with it and verifies the
    connection. The key is never printed.

    Parameters:
        name: Template entry holding the auth key
        dry_run: Stop before running tailscale up
        verbose: Debug logging
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(
        default=None,
        description=(
            "Secret name from secrets.template; defaults to the first "
            "tailscale-auth-key entry"
        ),
    )
    dry_run: bool = Field(
        default=False,
        alias="dry-run",
        description="Show what would happen without connecting",
    )
    verbose: bool = Field(default=False, description="Verbose output")

    def auth_key_entry(self, entries: list[TemplateEntry]) -> TemplateEntry:
        """Raises:
            ConfigurationError: No matching entry in the template
        """
        for entry in entries:
            if self.name is None and entry.kind == SecretKind.TAILSCALE_AUTH_KEY:
                return entry
            if entry.name == self.name:
                return entry
        raise ConfigurationError(
            f"No Tailscale auth key in template: "
            f"{self.name or SecretKind.TAILSCALE_AUTH_KEY}"
        )

    async def run_workflow(self, state: "State") -> int:
        config = state.config
        if self.verbose:
            config.configure_logging("debug")
        console = Console()
        console.print("\n[blue]Tailscale setup[/blue]")

        try:
            version = await capture_output("tailscale", ["version"])
        except ExecutionError:
            console.print(
                "[red]✗ Tailscale not installed[/red]\n"
                "  Install: https://tailscale.com/download"
            )
            return 1
        console.print(f"[green]✓ Tailscale {escape(version.splitlines()[0])}[/green]")

        ip = await tailscale_ip()
        if ip:
            console.print(f"[yellow]⊘ Already authenticated: {escape(ip)}[/yellow]")
            return 0

        entry = self.auth_key_entry(load_entries(config))
        try:
            auth_key = await SecretStore(config.store_cli).read(entry.reference)
        except ExecutionError as e:
            logger.debug(f"Reading {entry.name} failed", exit_code=e.exit_code)
            auth_key = ""
        if not auth_key:
            console.print(
                f"[red]✗ Failed to read {escape(entry.name)} from "
                f"1Password[/red]\n  Run: labctl init"
            )
            return 1
        console.print(f"[green]✓ {escape(entry.name)} retrieved[/green]")

        if self.dry_run:
            console.print(
                "[yellow]⊙ Would run: tailscale up --authkey=<key>[/yellow]"
            )
            return 0

        # Not raised: ExecutionError would carry the key in its command line
        result = await execute(
            "tailscale", ["up", f"--authkey={auth_key}"], throw_on_error=False
        )
        if result.failed:
            console.print(
                "[red]✗ Failed to connect to Tailscale[/red]\n"
                f"  {escape(result.stderr.strip())}\n"
                "  You may need: sudo tailscale up --authkey=<key>"
            )
            return 1

        ip = await tailscale_ip()
        if ip:
            console.print(f"[green]✓ Connected: {escape(ip)}[/green]")
        else:
            console.print(
                "[yellow]⚠ tailscale up completed but the connection is "
                "not confirmed yet[/yellow]\n  Run: tailscale status"
            )
        return 0
