"""Tests for the ephemeral secrets file lifecycle."""

import os
import signal

import pytest
from conftest import FakeStore

from labctl.core.errors import GenerationError, LoadError
from labctl.secrets.manager import (
    SecretsManager,
    SecretsState,
    initialize_secrets,
    parse_env_file,
)

VALUES = {
    "op://lab/proxmox/api-token": "root@pam!tf=0000",
    "op://lab/argocd/password": 'p@ss"word=1',
}


@pytest.fixture
def template(tmp_path):
    path = tmp_path / "secrets.template"
    path.write_text(
        '# header\n'
        'TF_VAR_proxmox_api_token="op://lab/proxmox/api-token"\n'
        'ARGOCD_ADMIN_PASSWORD="op://lab/argocd/password"\n'
    )
    return path


@pytest.fixture
def secrets_env(tmp_path):
    return tmp_path / ".env.secrets"


@pytest.fixture
def manager(template, secrets_env):
    return SecretsManager(
        template=template,
        secrets_env=secrets_env,
        store=FakeStore(VALUES),
        target={},
    )


@pytest.fixture
def no_hooks(monkeypatch):
    """Record atexit and signal registrations instead of installing them."""
    calls = {"atexit": [], "signal": []}
    monkeypatch.setattr(
        "labctl.secrets.manager.atexit.register",
        lambda fn: calls["atexit"].append(fn),
    )
    monkeypatch.setattr(
        "labctl.secrets.manager.atexit.unregister",
        lambda fn: calls["atexit"].remove(fn),
    )
    monkeypatch.setattr(
        "labctl.secrets.manager.signal.signal",
        lambda signum, handler: calls["signal"].append(signum),
    )
    return calls


def test_parse_env_file():
    text = '# c\n\nA=1\nB="two words"\nC=x=y\n  D = "" \nnoequals\n'

    assert parse_env_file(text) == {
        "A": "1", "B": "two words", "C": "x=y", "D": "",
    }


def test_is_stale_has_no_side_effects(manager, secrets_env):
    assert not manager.is_stale()

    secrets_env.write_text("OLD=1\n")

    assert manager.is_stale()
    assert manager.is_stale()
    assert secrets_env.read_text() == "OLD=1\n"
    assert manager.state == SecretsState.IDLE


def test_warn_if_stale(manager, secrets_env):
    secrets_env.write_text("OLD=1\n")

    assert manager.warn_if_stale()
    assert manager.state == SecretsState.STALENESS_CHECKED
    assert secrets_env.exists()


async def test_generate_writes_file(manager, secrets_env):
    await manager.generate()

    assert secrets_env.is_file()
    assert manager.state == SecretsState.GENERATED


async def test_generate_discards_stale_content(manager, secrets_env):
    secrets_env.write_text("STALE_ONLY=1\n")

    await manager.generate()
    loaded = await manager.load()

    assert "STALE_ONLY" not in loaded
    assert "STALE_ONLY" not in manager.target


async def test_generate_failure_leaves_no_file(template, secrets_env):
    manager = SecretsManager(
        template=template,
        secrets_env=secrets_env,
        store=FakeStore(VALUES, fail_inject=True),
        target={},
    )

    with pytest.raises(GenerationError, match="not signed in"):
        await manager.generate()

    assert not secrets_env.exists()


async def test_generate_missing_template(tmp_path, secrets_env):
    manager = SecretsManager(
        template=tmp_path / "missing.template",
        secrets_env=secrets_env,
        store=FakeStore(VALUES),
        target={},
    )

    with pytest.raises(GenerationError, match="template not found"):
        await manager.generate()


async def test_load_before_generate_raises_without_mutation(manager):
    manager.target["EXISTING"] = "keep"

    with pytest.raises(LoadError, match="Did you call generate"):
        await manager.load()

    assert manager.target == {"EXISTING": "keep"}


async def test_load_overwrites_existing_keys(manager):
    manager.target["ARGOCD_ADMIN_PASSWORD"] = "old"

    await manager.generate()
    keys = await manager.load()

    assert keys == ["TF_VAR_proxmox_api_token", "ARGOCD_ADMIN_PASSWORD"]
    assert manager.target["TF_VAR_proxmox_api_token"] == "root@pam!tf=0000"
    assert manager.target["ARGOCD_ADMIN_PASSWORD"] == 'p@ss"word=1'
    assert manager.state == SecretsState.LOADED


async def test_load_into_explicit_target(manager):
    await manager.generate()
    other = {}

    await manager.load(other)

    assert set(other) == {"TF_VAR_proxmox_api_token", "ARGOCD_ADMIN_PASSWORD"}
    assert manager.target == {}


async def test_load_defaults_to_os_environ(template, secrets_env, monkeypatch):
    monkeypatch.delenv("TF_VAR_proxmox_api_token", raising=False)
    monkeypatch.delenv("ARGOCD_ADMIN_PASSWORD", raising=False)
    manager = SecretsManager(
        template=template, secrets_env=secrets_env, store=FakeStore(VALUES)
    )

    await manager.generate()
    await manager.load()

    try:
        assert os.environ["TF_VAR_proxmox_api_token"] == "root@pam!tf=0000"
    finally:
        os.environ.pop("TF_VAR_proxmox_api_token", None)
        os.environ.pop("ARGOCD_ADMIN_PASSWORD", None)


async def test_cleanup_is_idempotent(manager, secrets_env):
    await manager.generate()

    manager.cleanup()
    manager.cleanup()

    assert not secrets_env.exists()
    assert manager.state == SecretsState.CLEANED


def test_cleanup_without_file(manager):
    manager.cleanup()

    assert manager.state == SecretsState.CLEANED


def test_cleanup_never_raises(manager, monkeypatch):
    def refuse(self, missing_ok=False):
        raise PermissionError("read-only")

    monkeypatch.setattr("pathlib.Path.unlink", refuse)

    manager.cleanup()

    assert manager.state != SecretsState.CLEANED


def test_register_cleanup_installs_hooks_once(manager, no_hooks):
    manager.register_cleanup()
    manager.register_cleanup()

    assert no_hooks["atexit"] == [manager.cleanup]
    assert no_hooks["signal"] == [signal.SIGINT, signal.SIGTERM]


def test_unregister_cleanup(manager, no_hooks):
    manager.register_cleanup()
    manager.unregister_cleanup()

    assert no_hooks["atexit"] == []


async def test_sigint_cleans_and_exits_zero(manager, secrets_env):
    await manager.generate()

    with pytest.raises(SystemExit) as excinfo:
        manager._handle_signal(signal.SIGINT, None)

    assert excinfo.value.code == 0
    assert not secrets_env.exists()


async def test_sigterm_exits_with_signal_status(manager, secrets_env):
    await manager.generate()

    with pytest.raises(SystemExit) as excinfo:
        manager._handle_signal(signal.SIGTERM, None)

    assert excinfo.value.code == 128 + signal.SIGTERM
    assert not secrets_env.exists()


async def test_context_manager_cleans_up(manager, secrets_env, no_hooks):
    with manager:
        await manager.generate()
        manager.register_cleanup()
        assert secrets_env.exists()

    assert not secrets_env.exists()
    assert no_hooks["atexit"] == []


async def test_initialize_secrets(template, secrets_env, no_hooks):
    secrets_env.write_text("STALE=1\n")
    target = {}

    manager = await initialize_secrets(
        template, secrets_env, store=FakeStore(VALUES), target=target
    )

    assert manager.state == SecretsState.LOADED
    assert target["TF_VAR_proxmox_api_token"] == "root@pam!tf=0000"
    assert "STALE" not in target
    assert no_hooks["atexit"] == [manager.cleanup]

    manager.close()
    assert not secrets_env.exists()


async def test_initialize_secrets_generation_failure(
    template, secrets_env, no_hooks
):
    target = {}

    with pytest.raises(GenerationError):
        await initialize_secrets(
            template, secrets_env,
            store=FakeStore(VALUES, fail_inject=True), target=target,
        )

    assert target == {}
    assert not secrets_env.exists()
    assert no_hooks["atexit"] == []
