"""Tests for active vault resolution."""

import json

import pytest

from labctl.core.errors import ConfigurationError, VaultResolutionError
from labctl.secrets.vaults import load_vaults_config, resolve_active_vault


@pytest.fixture
def vaults_file(tmp_path):
    path = tmp_path / "vaults.config.json"
    path.write_text(json.dumps({
        "vaults": {
            "lab": {"id": "lab", "name": "Lab", "description": "home"},
            "test": {"id": "test", "name": "Test"},
        },
        "active": "lab",
    }))
    return path


def test_load(vaults_file):
    config = load_vaults_config(vaults_file)

    assert config.active == "lab"
    assert [v.id for v in config.entries()] == ["lab", "test"]
    assert config.get("test").name == "Test"
    with pytest.raises(ConfigurationError):
        config.get("missing")


def test_load_missing_returns_none(tmp_path):
    assert load_vaults_config(tmp_path / "missing.json") is None


def test_load_invalid(tmp_path):
    path = tmp_path / "vaults.config.json"
    path.write_text("{not json")

    with pytest.raises(ConfigurationError, match="Invalid vaults config"):
        load_vaults_config(path)


def test_configured_active_wins_over_plain_env(vaults_file):
    assert resolve_active_vault(vaults_file, {"OP_VAULT": "env"}) == "lab"


@pytest.mark.parametrize("flag", ["1", "true", "YES", "on"])
def test_override_flag_prefers_env(vaults_file, flag):
    environ = {"OP_VAULT": "env", "OP_VAULT_OVERRIDE": flag}

    assert resolve_active_vault(vaults_file, environ) == "env"


def test_override_flag_false(vaults_file):
    environ = {"OP_VAULT": "env", "OP_VAULT_OVERRIDE": "0"}

    assert resolve_active_vault(vaults_file, environ) == "lab"


def test_env_is_fallback(tmp_path):
    missing = tmp_path / "missing.json"

    assert resolve_active_vault(missing, {"OP_VAULT": "env"}) == "env"


def test_nothing_configured(tmp_path):
    with pytest.raises(VaultResolutionError):
        resolve_active_vault(tmp_path / "missing.json", {})
