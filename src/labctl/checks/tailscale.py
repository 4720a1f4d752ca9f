"""Tailscale checks."""

from labctl.core.check import check
from labctl.core.errors import ExecutionError, ParseError
from labctl.core.exec import capture_json, capture_output
from labctl.core.result import CheckResult


async def _status(ctx) -> dict:
    return await capture_json("tailscale", ["status", "--json"], env=ctx.env)


def connected_ip(status: dict) -> str | None:
    """First Tailscale IP when the backend is running, else None."""
    if status.get("BackendState") != "Running":
        return None
    ips = (status.get("Self") or {}).get("TailscaleIPs") or []
    return ips[0] if ips else None


def parse_targets(value: str) -> dict[str, str]:
    """``"name=ip,name=ip"`` -> {name: ip}

    Raises:
        ParseError: A pair without '='
    """
    targets = {}
    for pair in value.split(","):
        if not pair.strip():
            continue
        name, sep, ip = pair.partition("=")
        if not sep or not name.strip() or not ip.strip():
            raise ParseError(f"Invalid target {pair.strip()!r}, expected name=ip")
        targets[name.strip()] = ip.strip()
    return targets


@check("tailscale-version", "Tailscale version", tags=("smoke", "tailscale"))
async def tailscale_version(ctx):
    try:
        output = await capture_output("tailscale", ["version"], env=ctx.env)
    except ExecutionError:
        return CheckResult.failed(
            "Tailscale CLI not found",
            details="Install Tailscale: https://tailscale.com/download",
        )
    return CheckResult.passed(output.splitlines()[0] if output else None)


@check("tailscale-up", "Tailscale is up", tags=("preflight", "tailscale"))
async def tailscale_up(ctx):
    try:
        status = await _status(ctx)
    except (ExecutionError, ParseError) as e:
        return CheckResult.failed(
            "Failed to check Tailscale status", details=str(e)
        )

    state = status.get("BackendState") or "unknown"
    if state != "Running":
        return CheckResult.failed(
            f"Tailscale not running: {state}", details="Run: tailscale up"
        )
    return CheckResult.passed(connected_ip(status) or "Connected")


@check(
    "tailscale-targets",
    "Tailscale targets reachable",
    tags=("preflight", "tailscale"),
)
async def tailscale_targets(ctx):
    raw = ctx.get("TAILSCALE_TARGETS")
    if not raw:
        return CheckResult.skipped("No tailscale targets configured")

    try:
        targets = parse_targets(raw)
        status = await _status(ctx)
    except (ExecutionError, ParseError) as e:
        return CheckResult.failed(
            "Failed to check Tailscale targets", details=str(e)
        )

    peers = list((status.get("Peer") or {}).values())
    missing, mismatch = [], []
    for name, expected in targets.items():
        peer = next(
            (p for p in peers if name in (p.get("HostName") or "")), None
        )
        if peer is None:
            missing.append(name)
            continue
        ips = peer.get("TailscaleIPs") or []
        if ips and expected not in ips:
            mismatch.append(f"{name}: expected {expected}, got {ips[0]}")

    if missing or mismatch:
        details = []
        if missing:
            details.append(f"Missing: {', '.join(missing)}")
        if mismatch:
            details.append("Mismatch:\n" + "\n".join(mismatch))
        return CheckResult.failed(
            f"{len(missing)} missing, {len(mismatch)} mismatched",
            details="\n".join(details),
        )
    return CheckResult.passed(f"All {len(targets)} target(s) reachable")
