"""Vault selection from vaults.config.json."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from labctl.core.errors import ConfigurationError, VaultResolutionError
from labctl.core.log import logger

_TRUTHY = {"1", "true", "yes", "on"}


class VaultEntry(BaseModel):
    id: str
    name: str
    description: str = ""


class VaultsConfig(BaseModel):
    """``{"vaults": {id: {...}}, "active": id}``"""

    vaults: dict[str, VaultEntry] = Field(default_factory=dict)
    active: str | None = None

    def get(self, vault_id: str) -> VaultEntry:
        try:
            return self.vaults[vault_id]
        except KeyError:
            raise ConfigurationError(f"Vault not found: {vault_id}") from None

    def entries(self) -> list[VaultEntry]:
        return list(self.vaults.values())


def load_vaults_config(path: Path) -> VaultsConfig | None:
    """Parse the vaults file; None when it does not exist.

    Raises:
        ConfigurationError: The file is not valid JSON for VaultsConfig
    """
    if not path.is_file():
        return None
    try:
        return VaultsConfig.model_validate_json(path.read_text("utf-8"))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid vaults config {path}: {e}") from e


def resolve_active_vault(path: Path, environ: Mapping[str, str]) -> str:
    """Vault every op:// reference is resolved against.

    OP_VAULT wins only when OP_VAULT_OVERRIDE is truthy; otherwise the
    configured active vault is used and OP_VAULT is the fallback.

    Raises:
        VaultResolutionError: Nothing names a vault
    """
    env_vault = environ.get("OP_VAULT") or None
    override = environ.get("OP_VAULT_OVERRIDE", "").strip().lower()

    if env_vault and override in _TRUTHY:
        logger.debug(f"Vault {env_vault} from OP_VAULT (override)")
        return env_vault

    config = load_vaults_config(path)
    if config and config.active:
        return config.active

    if env_vault:
        return env_vault

    raise VaultResolutionError(
        f"No active vault: set 'active' in {path} or OP_VAULT"
    )
