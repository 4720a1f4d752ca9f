"""Preflight command - smoke and preflight chains."""

from pydantic import Field

from labctl.checks import PREFLIGHT, SMOKE
from labctl.command.base import ChainCommand
from labctl.core.context import build_context
from labctl.core.log import logger
from labctl.secrets.manager import SecretsManager


class PreflightCommand(ChainCommand):
    """Check that tools, secrets and hosts are ready for provisioning.

    Runs in dry-run mode unless --no-dry-run is given, so every chain
    runs and checks with side effects are skipped.
    """

    dry_run: bool = Field(
        default=True,
        alias="dry-run",
        description="Run all chains regardless of failures",
    )

    async def run_workflow(self, state: "State") -> int:
        """Run smoke then preflight.

        Returns:
            Exit code (0 = no check failed)
        """
        self.prepare(state)
        config = state.config
        ctx = build_context(config, dry_run=self.dry_run, verbose=self.verbose)

        # Left over from an interrupted `up`; preflight never generates one
        SecretsManager(
            template=ctx.settings.secrets_template,
            secrets_env=ctx.settings.secrets_env,
        ).warn_if_stale()

        logger.info(f"Preflight against vault {ctx.settings.vault}")
        return await self.run_and_report([SMOKE, PREFLIGHT], ctx)
