"""YAML configuration loading with include directive support."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

from labctl.core.log import logger

DEFAULT_CONFIG = Path(__file__).parent.parent / "defaults" / "default.yaml"


def cli_includes(argv: list[str]) -> list[str]:
    """Values of every ``--include FILE`` pair in argv."""
    includes = []
    i = 1
    while i < len(argv):
        if argv[i] == "--include" and i + 1 < len(argv):
            includes.append(argv[i + 1])
            i += 1
        i += 1
    return includes


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """YAML settings source with include: directive and --include
    CLI support.

    Deep merges, later wins:
        package defaults < user config < ./labctl.yaml < CLI includes.
    include: directives inside any file are processed recursively.
    """

    def __init__(
        self, settings_cls: type[BaseSettings], yaml_file=None
    ):
        """Initialize with CLI include processing.

        Args:
            settings_cls: The Settings class being initialized
            yaml_file: Optional override for the project config path
        """
        # --include has to be seen before pydantic parses the CLI
        includes = cli_includes(sys.argv)

        self._project_file = Path(
            yaml_file or settings_cls.model_config.get("yaml_file")
            or "labctl.yaml"
        )
        super().__init__(settings_cls, includes or None)

    def _read_files(self, files):
        """Load defaults, user config, project config, and CLI includes.

        Args:
            files: CLI include file path(s) from --include arguments

        Returns:
            Deep-merged dictionary of all loaded data
        """
        result = {}

        files_to_load = [
            DEFAULT_CONFIG,
            Path(user_config_dir("labctl", appauthor=False)) / "labctl.yaml",
            self._project_file,
        ]
        if files:
            if isinstance(files, (str, os.PathLike)):
                files = [files]
            files_to_load.extend(Path(f).expanduser() for f in files)

        for file_path in files_to_load:
            if file_path.is_file():
                logger.debug("Loading configuration", file=str(file_path))
                data = self._load_file_recursive(file_path, set())
                result = self._deep_merge(result, data)
            else:
                logger.trace(
                    "Configuration file not found (skipping)",
                    file=str(file_path),
                )

        return result

    def _load_file_recursive(
        self, filepath: Path, visited: set[Path]
    ) -> dict:
        """Load file and process include: directives recursively.

        Raises:
            ValueError: If circular include detected
        """
        filepath = filepath.resolve()
        if filepath in visited:
            raise ValueError(f"Circular include: {filepath}")
        visited.add(filepath)

        with open(filepath) as f:
            data = yaml.safe_load(f) or {}

        if "include" in data:
            includes = data.pop("include")
            if isinstance(includes, str):
                includes = [includes]

            for inc in includes:
                inc_path = self._resolve_path(inc, filepath)
                inc_data = self._load_file_recursive(inc_path, visited.copy())
                data = self._deep_merge(inc_data, data)

        return data

    def _resolve_path(self, include_path: str, relative_to: Path) -> Path:
        """Resolve include path relative to the including file."""
        path = Path(include_path).expanduser()
        if path.is_absolute():
            return path
        return (relative_to.parent / path).resolve()

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Deep merge override into base (override wins)."""
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
