"""secrets.config.json: rotation strategies and SSH targets."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from labctl.core.errors import ConfigurationError
from labctl.secrets.template import (
    SecretKind,
    TemplateEntry,
    infer_kind,
    load_template,
    substitute_vault,
)


class SecretSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    op_path: str = Field(alias="opPath")
    strategy: str | None = None
    description: str = ""

    @property
    def kind(self) -> SecretKind:
        """Configured strategy, else the kind inferred from op_path."""
        if self.strategy:
            return SecretKind.parse(self.strategy)
        return infer_kind(self.op_path)


class SshTarget(BaseModel):
    """Host reachable over SSH with a key stored in the vault."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    host_op_path: str = Field(alias="hostOpPath")
    user: str
    port: int = 22
    key_name: str = Field(alias="keyName")


class SecretsConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    secrets: list[SecretSpec] = Field(default_factory=list)
    ssh_targets: list[SshTarget] = Field(
        default_factory=list, alias="sshTargets"
    )

    def find(self, name: str) -> SecretSpec | None:
        return next((s for s in self.secrets if s.name == name), None)

    def with_vault(self, vault: str) -> SecretsConfig:
        """Copy with every //VAULT/ placeholder pointing at vault."""
        return self.model_copy(update={
            "secrets": [
                s.model_copy(
                    update={"op_path": substitute_vault(s.op_path, vault)}
                )
                for s in self.secrets
            ],
            "ssh_targets": [
                t.model_copy(update={
                    "host_op_path": substitute_vault(t.host_op_path, vault)
                })
                for t in self.ssh_targets
            ],
        })

    def references(self) -> list[str]:
        """Unique op:// references in file order."""
        refs = [s.op_path for s in self.secrets if s.op_path]
        refs += [t.host_op_path for t in self.ssh_targets if t.host_op_path]
        return list(dict.fromkeys(refs))


def load_secrets_config(path: Path, vault: str | None = None) -> SecretsConfig:
    """Parse secrets.config.json, substituting the vault when given.

    Raises:
        ConfigurationError: Missing or invalid file
    """
    if not path.is_file():
        raise ConfigurationError(f"Secrets config not found: {path}")
    try:
        config = SecretsConfig.model_validate_json(path.read_text("utf-8"))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid secrets config {path}: {e}") from e
    return config.with_vault(vault) if vault else config


def load_entries(template: Path, secrets_config: Path) -> list[TemplateEntry]:
    """Template entries, with kinds overridden by configured strategies.

    A missing secrets_config leaves the inferred kinds in place.

    Raises:
        ConfigurationError: The template is missing or the secrets
            config is invalid
    """
    entries = load_template(template)
    if not secrets_config.is_file():
        return entries

    specs = load_secrets_config(secrets_config)
    overridden = []
    for entry in entries:
        spec = specs.find(entry.name)
        if spec and spec.strategy:
            entry = entry.model_copy(update={"kind": spec.kind})
        overridden.append(entry)
    return overridden
