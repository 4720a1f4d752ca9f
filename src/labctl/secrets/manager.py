"""Lifecycle of the ephemeral secrets file.

One run goes through::

    Idle -> StalenessChecked -> Generated -> Loaded -> Cleaned

The file is generated fresh from the store on every run, loaded into an
environment mapping before any check starts, and removed on exit,
SIGINT or SIGTERM.
"""

from __future__ import annotations

import atexit
import os
import signal
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import ConfigDict, Field, PrivateAttr

from labctl.core.base import BaseCloseable
from labctl.core.errors import ExecutionError, GenerationError, LoadError
from labctl.core.log import logger
from labctl.secrets.store import SecretStore


class SecretsState(StrEnum):
    IDLE = "idle"
    STALENESS_CHECKED = "staleness-checked"
    GENERATED = "generated"
    LOADED = "loaded"
    CLEANED = "cleaned"


def parse_env_file(text: str) -> dict[str, str]:
    """KEY=value pairs; values may be wrapped in double quotes."""
    pairs = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key, value = key.strip(), value.strip()
        if not key:
            continue
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
        pairs[key] = value
    return pairs


class SecretsManager(BaseCloseable):
    """Owns the ephemeral secrets file for one process.

    load() writes into target, which is os.environ unless a mapping is
    given. Using the manager as a context manager runs cleanup on exit.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    template: Path
    secrets_env: Path
    store: SecretStore = Field(default_factory=SecretStore, exclude=True)
    target: Any = Field(default=None, exclude=True)

    state: SecretsState = SecretsState.IDLE
    loaded_keys: list[str] = Field(default_factory=list)

    _registered: bool = PrivateAttr(default=False)
    _previous_handlers: dict = PrivateAttr(default_factory=dict)

    def _target(self) -> MutableMapping[str, str]:
        return os.environ if self.target is None else self.target

    def is_stale(self) -> bool:
        """True if a secrets file from an earlier run is on disk."""
        return self.secrets_env.exists()

    def warn_if_stale(self) -> bool:
        stale = self.is_stale()
        if stale:
            logger.warn(
                f"Stale {self.secrets_env.name} left by an earlier run"
            )
        self.state = SecretsState.STALENESS_CHECKED
        return stale

    def _discard(self):
        if self.secrets_env.exists():
            self.secrets_env.unlink()

    async def generate(self) -> None:
        """Delete any existing file and inject the template afresh.

        Raises:
            GenerationError: The old file could not be removed, the
                template is missing, or the store failed. No partial
                file is left behind.
        """
        try:
            self._discard()
        except OSError as e:
            raise GenerationError(
                f"Failed to delete stale {self.secrets_env}: {e}"
            ) from e

        if not self.template.is_file():
            raise GenerationError(
                f"Secrets template not found: {self.template}"
            )

        logger.debug(f"Generating {self.secrets_env.name} via op inject")
        try:
            await self.store.inject(self.template, self.secrets_env)
        except ExecutionError as e:
            try:
                self._discard()
            except OSError:
                logger.error(f"Could not remove partial {self.secrets_env}")
            raise GenerationError(
                f"Failed to generate {self.secrets_env.name} via op inject: "
                f"{e.stderr.strip() or f'exit {e.exit_code}'}"
            ) from e

        self.state = SecretsState.GENERATED
        logger.info(f"Generated {self.secrets_env.name}")

    async def load(
        self, target: MutableMapping[str, str] | None = None
    ) -> list[str]:
        """Copy every KEY=value pair into the target environment.

        Existing keys are overwritten. Nothing is written unless the
        whole file could be read.

        Returns:
            Names of the loaded keys, in file order

        Raises:
            LoadError: The file does not exist or cannot be read
        """
        if not self.secrets_env.is_file():
            raise LoadError(
                f"{self.secrets_env} not found. Did you call generate()?"
            )
        try:
            pairs = parse_env_file(self.secrets_env.read_text("utf-8"))
        except OSError as e:
            raise LoadError(f"Failed to load {self.secrets_env}: {e}") from e

        env = target if target is not None else self._target()
        env.update(pairs)

        self.loaded_keys = list(pairs)
        self.state = SecretsState.LOADED
        logger.info(f"Loaded {len(pairs)} secret(s) into the environment")
        return self.loaded_keys

    def cleanup(self) -> None:
        """Remove the secrets file. Never raises; safe to call twice."""
        try:
            existed = self.secrets_env.exists()
            self.secrets_env.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to clean up {self.secrets_env}: {e}")
            return
        if existed:
            logger.debug(f"Cleaned up {self.secrets_env.name}")
        self.state = SecretsState.CLEANED

    def _handle_signal(self, signum, frame):  # noqa: ARG002
        self.cleanup()
        # SIGINT exits 0, SIGTERM 128+signum
        sys.exit(0 if signum == signal.SIGINT else 128 + signum)

    def register_cleanup(self) -> None:
        """Run cleanup at interpreter exit and on SIGINT/SIGTERM."""
        if self._registered:
            return
        atexit.register(self.cleanup)
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                self._previous_handlers[signum] = signal.signal(
                    signum, self._handle_signal
                )
            except ValueError:
                # Not the main thread; atexit still applies
                logger.debug(f"Cannot install handler for {signum}")
        self._registered = True

    def unregister_cleanup(self) -> None:
        if not self._registered:
            return
        atexit.unregister(self.cleanup)
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()
        self._registered = False

    def close(self):
        self.cleanup()
        self.unregister_cleanup()
        super().close()


async def initialize_secrets(
    template: Path,
    secrets_env: Path,
    store: SecretStore | None = None,
    target: MutableMapping[str, str] | None = None,
) -> SecretsManager:
    """warn_if_stale, generate, load and register_cleanup in one call."""
    manager = SecretsManager(
        template=template,
        secrets_env=secrets_env,
        store=store or SecretStore(),
        target=target,
    )
    manager.warn_if_stale()
    await manager.generate()
    await manager.load()
    manager.register_cleanup()
    return manager
