"""Vaults command - show configured vaults."""

import os

from dotenv import dotenv_values
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from labctl.core.errors import VaultResolutionError
from labctl.secrets.vaults import load_vaults_config, resolve_active_vault


class VaultsCommand(BaseModel):
    """List vaults from vaults.config.json and mark the active one."""

    async def run_workflow(self, state: "State") -> int:
        config = state.config
        path = config.resolve_path(config.vaults_config)

        environ = dict(os.environ)
        env_file = config.resolve_path(config.env_file)
        if env_file.is_file():
            for key, value in dotenv_values(env_file).items():
                if value is not None:
                    environ.setdefault(key, value)

        try:
            active = resolve_active_vault(path, environ)
        except VaultResolutionError:
            active = None

        console = Console()
        vaults = load_vaults_config(path)
        if vaults is None:
            console.print(f"[yellow]No vaults config at {escape(str(path))}[/yellow]")
        else:
            table = Table(show_header=True, header_style="bold", box=None)
            table.add_column("", no_wrap=True)
            table.add_column("Id", style="cyan")
            table.add_column("Name")
            table.add_column("Description", style="dim")
            for vault in vaults.entries():
                table.add_row(
                    "[green]*[/green]" if vault.id == active else "",
                    escape(vault.id),
                    escape(vault.name),
                    escape(vault.description),
                )
            console.print(table)

        console.print(f"Active vault: [bold]{escape(active or 'none')}[/bold]")
        return 0
