#!/usr/bin/env python3
"""labctl CLI - home lab provisioning checks and ephemeral secrets."""

import asyncio
import sys

from pydantic import Field
from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from labctl.command import (
    InitCommand,
    PreflightCommand,
    RotateCommand,
    TailscaleUpCommand,
    UpCommand,
    VaultsCommand,
)
from labctl.core.config import State
from labctl.core.errors import LabError
from labctl.core.log import logger


class CliState(State):
    """Orchestrate provisioning checks and manage ephemeral secrets.

    Check chains (smoke, preflight, terraform) run in order and stop
    at the first failing chain unless --dry-run is given. Secrets are
    resolved from 1Password into a short-lived file that is removed
    when the command exits.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.workdir value)
    2. labctl.yaml in the current directory, then --include files
    3. .env file
    4. Environment variables (LABCTL_CONFIG__WORKDIR=value)
    """

    preflight: CliSubCommand[PreflightCommand]
    up: CliSubCommand[UpCommand]
    init: CliSubCommand[InitCommand]
    rotate: CliSubCommand[RotateCommand]
    vaults: CliSubCommand[VaultsCommand]
    tailscale_up: CliSubCommand[TailscaleUpCommand] = Field(
        alias="tailscale-up"
    )

    def cli_cmd(self):
        """Dispatch to active subcommand, or show help if none
        provided."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        # Logger as context manager so sinks are flushed on exit
        with logger:
            try:
                exit_code = asyncio.run(subcommand.run_workflow(self))
            except LabError as e:
                logger.error(str(e))
                print(f"✗ {e}", file=sys.stderr)
                exit_code = 1
            raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
