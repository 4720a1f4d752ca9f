"""Exception hierarchy for labctl.

Everything raised on purpose by labctl derives from LabError, so the CLI
entry point can report it and exit 1 without a traceback. Anything else
is a bug and propagates normally.
"""

from __future__ import annotations


class LabError(Exception):
    """Base class for expected, user-facing failures."""


class ConfigurationError(LabError):
    """Missing or invalid settings, or a missing declarative file."""


class RangeFilterError(ConfigurationError):
    """A --from/--to id is unknown or the range is inverted."""


class VaultResolutionError(ConfigurationError):
    """No active vault could be determined."""


class ExecutionError(LabError):
    """External command exited non-zero."""

    def __init__(self, command_line: str, stderr: str, exit_code: int):
        self.command_line = command_line
        self.stderr = stderr
        self.exit_code = exit_code
        message = f"Command failed: {command_line}"
        if stderr.strip():
            message = f"{message}\n{stderr.strip()}"
        super().__init__(message)


class ParseError(LabError):
    """External command output could not be parsed."""


class SecretsError(LabError):
    """Base class for secrets lifecycle failures."""


class GenerationError(SecretsError):
    """The secret store could not materialize the ephemeral file."""


class LoadError(SecretsError):
    """The ephemeral file could not be loaded."""


__all__ = [
    "LabError",
    "ConfigurationError",
    "RangeFilterError",
    "VaultResolutionError",
    "ExecutionError",
    "ParseError",
    "SecretsError",
    "GenerationError",
    "LoadError",
]
