"""Tests for {config.*} and {platformdirs.*} substitution in State."""

from pathlib import Path

import platformdirs
import pytest

from labctl.core.config import State


@pytest.fixture
def state_in(tmp_path, monkeypatch):
    """Build State from a labctl.yaml in an isolated working directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("sys.argv", ["labctl"])
    monkeypatch.setattr(
        "labctl.core.yaml_settings.user_config_dir",
        lambda *a, **k: str(tmp_path / "no-user-config"),
    )

    def factory(text=""):
        (tmp_path / "labctl.yaml").write_text(text)
        return State()

    return factory


def test_defaults(state_in):
    config = state_in().config

    assert config.store_cli == "op"
    assert config.min_disk_gb == 50
    assert config.terraform_dir == Path("./terraform")
    assert config.logger.console.stream == "stderr"


def test_workdir_template(state_in, tmp_path):
    config = state_in(f"config:\n  workdir: {tmp_path}\n").config

    assert config.terraform_dir == tmp_path / "terraform"
    assert config.ansible_inventory == tmp_path / "ansible" / "inventory.ini"


def test_platformdirs_template(state_in):
    config = state_in().config

    assert config.log_root == Path(
        platformdirs.user_state_dir("labctl", appauthor=False)
    )


def test_runtime_placeholders_survive(state_in):
    config = state_in().config

    assert config.logger.file.path == "{log_root}/{run_name}/labctl.log"



def test_file_log_lands_under_substituted_root(state_in, tmp_path):
    config = state_in(
        f"config:\n"
        f"  workdir: {tmp_path}\n"
        f"  run_name: run-1\n"
        f"  log_root: \"{{config.workdir}}/logs\"\n"
        f"  logger:\n"
        f"    file:\n"
        f"      enabled: true\n"
    ).config

    try:
        assert config.log_root == tmp_path / "logs"
        assert (tmp_path / "logs" / "run-1" / "labctl.log").is_file()
        assert not list(tmp_path.glob("{*"))
    finally:
        config.close()
