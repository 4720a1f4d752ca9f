"""Application state and configuration."""

from __future__ import annotations

import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from labctl.core.base import BaseConfig
from labctl.core.log import Logger
from labctl.core.yaml_settings import YamlWithIncludesSettingsSource

# Modules available for template substitution in YAML files
# Usage: {platformdirs.user_state_dir}, {platformdirs.user_log_dir}
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}

_TEMPLATE = re.compile(r'\{([a-z._]+)\}')


class Config(BaseConfig):
    """Application configuration loaded from YAML/env/CLI.

    Relative paths are resolved against workdir when the run context
    is built. Inherits from BaseConfig so close() cascades to the
    logger.
    """

    logger: Logger = Field(
        default=None,
        description="Logger configuration and runtime instance",
    )
    workdir: Path = Field(
        default=Path("."),
        description="Directory holding the lab repository",
    )
    env_file: Path = Field(
        default=Path(".env"),
        description="dotenv file with non-secret settings",
    )
    secrets_template: Path = Field(
        default=Path("secrets.template"),
        description='Reference template: NAME="op://vault/item/field" lines',
    )
    secrets_env: Path = Field(
        default=Path(".env.secrets"),
        description="Ephemeral secrets file written by op inject",
    )
    secrets_config: Path = Field(
        default=Path("secrets.config.json"),
        description="Secret strategies and SSH targets",
    )
    vaults_config: Path = Field(
        default=Path("vaults.config.json"),
        description="Known vaults and the active one",
    )
    store_cli: str = Field(
        default="op",
        description="Secret store CLI executable",
    )
    terraform_dir: Path = Field(
        default=Path("terraform"),
        description="Terraform working directory",
    )
    ansible_inventory: Path = Field(
        default=Path("ansible/inventory.ini"),
        description="Ansible inventory file",
    )
    ssh_key_path: Path = Field(
        default=Path("~/.ssh/id_rsa"),
        description="SSH private key checked by ssh-private-key",
    )
    required_env: list[str] = Field(
        default_factory=lambda: [
            "PVE02_TS_MAGIC_IP",
            "TF_VAR_proxmox_endpoint",
        ],
        description="Variables that must be set after loading env_file",
    )
    min_disk_gb: int = Field(
        default=50,
        description="Free space on / below which disk-space warns",
    )
    run_name: str = Field(
        default_factory=lambda: datetime.now().strftime("%Y%m%d-%H%M%S"),
        description="Name of this run, used for the log directory",
    )
    log_level: str | None = Field(
        default=None,
        alias="log-level",
        description=(
            "Console log level override: 'trace', 'debug', 'info', "
            "'warn', 'error', 'fatal'"
        ),
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "labctl"
        ),
        description=(
            "Root directory for log files "
            "(supports {platformdirs.*} templates)"
        ),
    )

    model_config = {"populate_by_name": True}

    @model_validator(mode='after')
    def _setup_logger(self) -> 'Config':
        """Install the global logger once configuration has loaded.

        While log_root still holds a {...} template the logger is left
        alone; State installs it after substitution.
        """
        if self.logger is None:
            self.logger = Logger()
        if not _TEMPLATE.search(str(self.log_root)):
            self.configure_logging(self.log_level)
        return self

    def resolve_path(self, path: Path) -> Path:
        """path expanded and anchored at workdir when relative."""
        path = path.expanduser()
        if path.is_absolute():
            return path
        return self.workdir.expanduser().resolve() / path

    def configure_logging(self, console_level: str | None = None):
        """(Re)install the global logger, optionally at a new console level."""
        from labctl.core.log import setup_logger

        if console_level:
            self.logger.console.level = console_level

        setup_logger(
            log_root=self.log_root,
            run_name=self.run_name,
            level=self.logger.level,
            console=self.logger.console,
            file=self.logger.file,
            logfire=self.logger.logfire,
        )

    def close(self):
        """Close the global logger, then any other closeable children."""
        from labctl.core.log import logger
        logger.close()
        super().close()


class State(BaseSettings):
    """Configuration plus the CLI surface built on top of it.

    Sources are YAML (with includes), .env, environment variables and
    the command line. See settings_customise_sources for priority.
    """

    config: Config = Field(
        default_factory=Config,
        description="Application configuration (from YAML/env/CLI)",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to include and merge. "
            "Use --include on CLI or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        yaml_file="labctl.yaml",
        env_file=".env",
        env_prefix="LABCTL_",
        env_nested_delimiter="__",
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        # .env also carries lab variables that are not settings
        extra='ignore'
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority, highest first: init args, YAML, .env, environment,
        file secrets."""
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> "State":
        """Replace {config.x.y} and {platformdirs.*} in string and
        path fields, recursively, then install the logger."""
        self._substitute_recursive(self)
        self.config.configure_logging(self.config.log_level)
        return self

    def _substitute_recursive(self, obj: Any) -> None:
        if isinstance(obj, BaseModel):
            for field_name in obj.__class__.model_fields:
                value = getattr(obj, field_name)
                new_value = self._substitute_value(value)
                if new_value is not value:
                    setattr(obj, field_name, new_value)
        elif isinstance(obj, dict):
            for key in obj:
                obj[key] = self._substitute_value(obj[key])
        elif isinstance(obj, list):
            for i in range(len(obj)):
                obj[i] = self._substitute_value(obj[i])

    def _substitute_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value)
        elif isinstance(value, Path):
            substituted = self._substitute_string(str(value))
            return value if substituted == str(value) else Path(substituted)
        elif isinstance(value, (BaseModel, dict, list)):
            self._substitute_recursive(value)
            return value
        else:
            return value

    def _substitute_string(self, value: str) -> str:
        """Replace {field.path} templates with actual field values.

        Examples:
            "{config.workdir}/terraform" -> "/home/user/lab/terraform"
            "{platformdirs.user_state_dir}" -> "~/.local/state/labctl"

        Unknown references are left unchanged, so runtime placeholders
        such as {log_root} survive.
        """
        def replace_template(match):
            parts = match.group(1).split(".")

            if parts[0] in TEMPLATE_NAMESPACE:
                obj = TEMPLATE_NAMESPACE[parts[0]]
                parts = parts[1:]
            else:
                obj = self

            try:
                for part in parts:
                    obj = getattr(obj, part)

                if callable(obj):
                    obj = obj('labctl', appauthor=False)

                return str(obj)
            except (AttributeError, TypeError):
                return match.group(0)

        return _TEMPLATE.sub(replace_template, value)


__all__ = ["Config", "State"]
