"""Pytest configuration and fixtures for labctl tests."""

import tempfile
from pathlib import Path

import pytest

from labctl.core.check import Check
from labctl.core.context import LabSettings, RunContext
from labctl.core.errors import ExecutionError
from labctl.core.log import ConsoleSink, setup_logger
from labctl.core.result import CheckResult
from labctl.secrets.store import SecretStore


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Configure logging for console-only mode during tests.

    This enables debug output during test runs without sending
    anything to logfire.dev.
    """
    test_log_root = Path(tempfile.gettempdir()) / "labctl-tests"
    setup_logger(
        log_root=test_log_root,
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture
def make_ctx(tmp_path):
    """RunContext factory rooted at tmp_path."""

    def factory(dry_run=False, env=None, **settings):
        defaults = {
            "vault": "lab",
            "secrets_template": tmp_path / "secrets.template",
            "secrets_env": tmp_path / ".env.secrets",
            "secrets_config": tmp_path / "secrets.config.json",
            "terraform_dir": tmp_path / "terraform",
            "ansible_inventory": tmp_path / "ansible" / "inventory.ini",
            "ssh_key_path": tmp_path / "id_rsa",
        }
        defaults.update(settings)
        return RunContext(
            settings=LabSettings(**defaults),
            dry_run=dry_run,
            env=dict(env or {}),
        )

    return factory


def static_check(id, status="pass", tags=(), calls=None, message=None):
    """Check that returns a fixed status and records that it ran."""

    async def run(ctx):
        if calls is not None:
            calls.append(id)
        return CheckResult(status=status, message=message)

    return Check(id=id, title=f"Check {id}", run=run, tags=frozenset(tags))


class FakeStore(SecretStore):
    """SecretStore backed by a dict; inject renders from it.

    A reference missing from values behaves like an unresolvable op
    reference.
    """

    def __init__(self, values=None, fail_inject=False):
        super().__init__("op")
        self.values = dict(values or {})
        self.fail_inject = fail_inject
        self.writes = []

    async def read(self, reference):
        if reference not in self.values:
            raise ExecutionError("op read", "isn't an item", 1)
        return self.values[reference]

    async def inject(self, template, output):
        if self.fail_inject:
            # op leaves a half-written file behind on failure
            Path(output).write_text("PARTIAL=1\n")
            raise ExecutionError("op inject", "not signed in", 1)
        lines = []
        for raw in Path(template).read_text().splitlines():
            if "=" not in raw or raw.lstrip().startswith("#"):
                continue
            name, reference = raw.split("=", 1)
            value = self.values[reference.strip().strip('"')]
            lines.append(f'{name}="{value}"')
        Path(output).write_text("\n".join(lines) + "\n")

    async def write(self, reference, value):
        self.writes.append((str(reference), value))
        self.values[str(reference)] = value
