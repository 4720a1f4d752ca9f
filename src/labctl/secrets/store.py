"""1Password CLI wrapper."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from labctl.core.errors import ExecutionError, SecretsError
from labctl.core.exec import capture_output, execute
from labctl.core.log import logger
from labctl.secrets.template import StoreReference

if TYPE_CHECKING:
    from labctl.core.context import RunContext


class SecretStore:
    """Async calls into the ``op`` CLI.

    Values passed to write() appear on the op command line, so errors
    raised from here carry op's stderr but never the command itself.
    """

    def __init__(self, cli: str = "op", env: Mapping[str, str] | None = None):
        self.cli = cli
        self.env = dict(env or {})

    @classmethod
    def for_context(cls, ctx: RunContext) -> SecretStore:
        return cls(ctx.settings.store_cli, env=ctx.env)

    async def _output(self, *args: str) -> str:
        return await capture_output(self.cli, args, env=self.env)

    async def version(self) -> str:
        return await self._output("--version")

    async def account_count(self) -> int:
        """Accounts listed by ``op account list`` (header excluded)."""
        lines = (await self._output("account", "list")).splitlines()
        return max(len(lines) - 1, 0)

    async def whoami(self) -> str:
        return await self._output("whoami")

    async def vault_exists(self, vault: str) -> bool:
        result = await execute(
            self.cli, ["vault", "get", vault],
            env=self.env, throw_on_error=False,
        )
        return not result.failed

    async def read(self, reference: str) -> str:
        """Resolved value of one reference, stripped.

        Raises:
            ExecutionError: op could not resolve it
        """
        return await self._output("read", reference)

    async def inject(self, template: Path, output: Path) -> None:
        """Resolve every reference in template into output.

        Raises:
            ExecutionError: op failed (not signed in, unresolvable
                reference, ...)
        """
        await execute(
            self.cli,
            ["inject", "-i", str(template), "-o", str(output)],
            env=self.env,
        )

    async def write(self, reference: StoreReference, value: str) -> None:
        """Set a field, creating the item when editing fails.

        Raises:
            SecretsError: Neither edit nor create succeeded
        """
        assignment = f"{reference.assignment_field}={value}"
        try:
            await execute(
                self.cli,
                ["item", "edit", reference.item, assignment,
                 "--vault", reference.vault],
                env=self.env,
            )
            return
        except ExecutionError:
            logger.debug(
                f"Item {reference.item} not editable, creating it",
                vault=reference.vault,
            )

        try:
            await execute(
                self.cli,
                ["item", "create", "--category", "password",
                 "--title", reference.item, "--vault", reference.vault,
                 assignment],
                env=self.env,
            )
        except ExecutionError as e:
            raise SecretsError(
                f"Failed to write {reference}: {e.stderr.strip()}"
            ) from None
