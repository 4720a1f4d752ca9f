"""Resolved settings and per-run context handed to every check."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field

from labctl.core.errors import ConfigurationError
from labctl.core.log import logger

if TYPE_CHECKING:
    from labctl.core.config import Config


class LabSettings(BaseModel):
    """Settings resolved once at startup.

    extra is the open passthrough bag: the process environment merged
    with the dotenv file. Checks read optional keys from it through
    RunContext.get(), so adding keys never breaks an existing check.
    """

    model_config = ConfigDict(frozen=True)

    vault: str | None = None
    proxmox_endpoint: str | None = None
    tailscale_magic_ip: str | None = None
    secrets_template: Path = Path("secrets.template")
    secrets_env: Path = Path(".env.secrets")
    secrets_config: Path = Path("secrets.config.json")
    terraform_dir: Path = Path("terraform")
    ansible_inventory: Path = Path("ansible/inventory.ini")
    ssh_key_path: Path = Path("~/.ssh/id_rsa")
    min_disk_gb: int = 50
    store_cli: str = "op"
    extra: dict[str, str] = Field(default_factory=dict)


class RunContext(BaseModel):
    """Read-only view of one run, shared by all chains.

    env is the overlay passed to every child process; the secrets
    manager loads into it so tests never touch os.environ.
    """

    settings: LabSettings = Field(default_factory=LabSettings)
    dry_run: bool = False
    verbose: bool = False
    env: dict[str, str] = Field(default_factory=dict)

    def get(self, name: str, default: str | None = None) -> str | None:
        """Look up a key in the overlay, then the passthrough bag."""
        if name in self.env:
            return self.env[name]
        return self.settings.extra.get(name, default)


def build_context(
    config: Config,
    dry_run: bool = False,
    verbose: bool = False,
    environ: Mapping[str, str] | None = None,
) -> RunContext:
    """Validate configuration and assemble the RunContext.

    Values from the dotenv file never override variables already set
    in the environment. Those that are new go into the env overlay so
    child processes see them.

    Raises:
        ConfigurationError: dotenv file, required variable or secrets
            template missing
        VaultResolutionError: No active vault could be determined
    """
    from labctl.secrets.vaults import resolve_active_vault

    environ = dict(os.environ if environ is None else environ)
    env_file = config.resolve_path(config.env_file)
    if not env_file.is_file():
        raise ConfigurationError(f"Configuration file not found: {env_file}")

    overlay = {
        key: value
        for key, value in dotenv_values(env_file).items()
        if value is not None and key not in environ
    }
    merged = {**environ, **overlay}
    logger.debug(
        f"Loaded {len(overlay)} variable(s) from {env_file.name}",
        env_file=str(env_file),
    )

    missing = [name for name in config.required_env if not merged.get(name)]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    template = config.resolve_path(config.secrets_template)
    if not template.is_file():
        raise ConfigurationError(f"Secrets template not found: {template}")

    vault = resolve_active_vault(config.resolve_path(config.vaults_config), merged)

    settings = LabSettings(
        vault=vault,
        proxmox_endpoint=merged.get("TF_VAR_proxmox_endpoint"),
        tailscale_magic_ip=merged.get("PVE02_TS_MAGIC_IP"),
        secrets_template=template,
        secrets_env=config.resolve_path(config.secrets_env),
        secrets_config=config.resolve_path(config.secrets_config),
        terraform_dir=config.resolve_path(config.terraform_dir),
        ansible_inventory=config.resolve_path(config.ansible_inventory),
        ssh_key_path=config.ssh_key_path.expanduser(),
        min_disk_gb=config.min_disk_gb,
        store_cli=config.store_cli,
        extra=merged,
    )
    return RunContext(
        settings=settings, dry_run=dry_run, verbose=verbose, env=overlay
    )
