"""Proxmox host, API and SSH checks."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from labctl.core.check import check
from labctl.core.errors import ConfigurationError, ExecutionError
from labctl.core.exec import capture_output, command_exists, execute
from labctl.core.result import CheckResult
from labctl.secrets.config import load_secrets_config
from labctl.secrets.store import SecretStore


@check("qm-version", "Proxmox qm CLI available", tags=("preflight", "proxmox"))
async def qm_version(ctx):
    try:
        output = await capture_output("qm", ["version"], env=ctx.env)
    except ExecutionError:
        return CheckResult.warned(
            "qm CLI not found on this host",
            details="qm only exists on Proxmox hosts; expected in dev.",
        )
    return CheckResult.passed(
        output.splitlines()[0] if output else "qm available"
    )


def api_version_url(endpoint: str) -> str:
    return endpoint.rstrip("/") + "/api2/json/version"


@check("proxmox-api", "Proxmox API reachable", tags=("preflight", "proxmox"))
async def proxmox_api(ctx):
    endpoint = ctx.settings.proxmox_endpoint
    if not endpoint:
        return CheckResult.failed("TF_VAR_proxmox_endpoint not configured")

    result = await execute(
        "curl",
        ["-kfsS", "--max-time", "10", api_version_url(endpoint)],
        env=ctx.env,
        throw_on_error=False,
    )
    if result.failed:
        return CheckResult.failed(
            "Proxmox API unreachable",
            details=(result.stderr or result.stdout).strip() or None,
        )
    return CheckResult.passed(endpoint)


def available_gb(df_output: str) -> int | None:
    """Available column of ``df -BG`` for the first filesystem."""
    lines = df_output.splitlines()
    if len(lines) < 2:
        return None
    columns = lines[1].split()
    if len(columns) < 4:
        return None
    try:
        return int(columns[3].rstrip("G"))
    except ValueError:
        return None


@check("disk-space", "Disk space available", tags=("preflight", "proxmox"))
async def disk_space(ctx):
    try:
        output = await capture_output("df", ["-BG", "/"], env=ctx.env)
    except ExecutionError as e:
        return CheckResult.warned("Could not check disk space", details=str(e))

    available = available_gb(output)
    if available is None:
        return CheckResult.warned("Could not parse disk output")

    needed = ctx.settings.min_disk_gb
    if available < needed:
        return CheckResult.warned(
            f"Only {available}GB available (need {needed}GB+)"
        )
    return CheckResult.passed(f"{available}GB available")


def _write_key(directory: Path, private_key: str) -> Path:
    key_path = directory / "id_ed25519"
    fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(private_key if private_key.endswith("\n") else private_key + "\n")
    return key_path


async def _ssh_attempt(ctx, target, host: str, private_key: str):
    """Run ``echo ok`` on the target; returns the error text or None."""
    with tempfile.TemporaryDirectory(prefix="proxmox-ssh-") as tmp:
        key_path = _write_key(Path(tmp), private_key)
        result = await execute(
            "ssh",
            [
                "-i", str(key_path),
                "-p", str(target.port),
                "-o", "BatchMode=yes",
                "-o", "StrictHostKeyChecking=no",
                "-o", "ConnectTimeout=5",
                f"{target.user}@{host}",
                "echo", "ok",
            ],
            env=ctx.env,
            throw_on_error=False,
        )
    if result.failed:
        return (result.stderr or result.stdout).strip() or "ssh failed"
    return None


@check(
    "proxmox-ssh",
    "Proxmox reachable over SSH (op keys + IPs)",
    tags=("preflight", "proxmox", "ssh"),
)
async def proxmox_ssh(ctx):
    if not command_exists(ctx.settings.store_cli):
        return CheckResult.failed(
            "op CLI not available",
            details="Install: https://developer.1password.com/docs/cli/get-started",
        )

    path = ctx.settings.secrets_config
    if not path.is_file():
        return CheckResult.skipped(f"No {path.name}")
    try:
        config = load_secrets_config(path, ctx.settings.vault)
    except ConfigurationError as e:
        return CheckResult.failed("Invalid secrets config", details=str(e))

    if not config.ssh_targets:
        return CheckResult.skipped(f"No sshTargets configured in {path.name}")

    store = SecretStore.for_context(ctx)
    missing_keys, failures = [], []
    for target in config.ssh_targets:
        key_spec = config.find(target.key_name)
        if key_spec is None:
            missing_keys.append(
                f"{target.name}: keyName {target.key_name} not found"
            )
            continue

        try:
            host = await store.read(target.host_op_path)
            private_key = await store.read(key_spec.op_path)
        except ExecutionError as e:
            failures.append(f"{target.name}: {e.stderr.strip() or 'op read failed'}")
            continue
        if not host:
            failures.append(f"{target.name}: empty host in {target.host_op_path}")
            continue
        if not private_key:
            failures.append(f"{target.name}: empty key in {key_spec.op_path}")
            continue

        if ctx.dry_run:
            continue

        error = await _ssh_attempt(ctx, target, host, private_key)
        if error:
            failures.append(f"{target.name}: {error}")

    if missing_keys:
        return CheckResult.failed(
            "SSH key references missing", details="\n".join(missing_keys)
        )
    if failures:
        return CheckResult.failed(
            f"{len(failures)} SSH target(s) failed",
            details="\n".join(failures),
        )
    if ctx.dry_run:
        return CheckResult.skipped(
            f"Dry run: {len(config.ssh_targets)} target(s) would be checked"
        )
    return CheckResult.passed(
        f"All {len(config.ssh_targets)} SSH target(s) reachable"
    )
