"""Up command - full provisioning readiness run."""

from labctl.checks import PREFLIGHT, SMOKE, TERRAFORM
from labctl.command.base import ChainCommand
from labctl.core.context import build_context
from labctl.core.log import logger
from labctl.secrets.manager import initialize_secrets
from labctl.secrets.store import SecretStore


class UpCommand(ChainCommand):
    """Generate secrets, then run smoke, preflight and terraform.

    The first chain with a failed check stops the run unless
    --dry-run is given. The secrets file is removed when the command
    ends, however it ends.
    """

    async def run_workflow(self, state: "State") -> int:
        """Run the up workflow.

        Args:
            state: State instance

        Returns:
            Exit code (0 = no check failed)
        """
        self.prepare(state)
        ctx = build_context(
            state.config, dry_run=self.dry_run, verbose=self.verbose
        )

        # Secrets land in ctx.env so every child process inherits them
        manager = await initialize_secrets(
            ctx.settings.secrets_template,
            ctx.settings.secrets_env,
            store=SecretStore.for_context(ctx),
            target=ctx.env,
        )
        try:
            exit_code = await self.run_and_report(
                [SMOKE, PREFLIGHT, TERRAFORM], ctx
            )
        finally:
            manager.close()

        if exit_code == 0:
            logger.info("Ready to provision")
        return exit_code
