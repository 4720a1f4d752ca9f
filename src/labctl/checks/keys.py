"""Local SSH key and Ansible inventory checks."""

import stat

from labctl.core.check import check
from labctl.core.result import CheckResult


@check("ssh-private-key", "SSH private key exists", tags=("preflight", "ssh"))
async def ssh_private_key(ctx):
    key_path = ctx.settings.ssh_key_path.expanduser()
    if not key_path.exists():
        return CheckResult.failed(
            "SSH private key not found", details=f"Expected at: {key_path}"
        )

    try:
        mode = stat.S_IMODE(key_path.stat().st_mode)
    except OSError as e:
        return CheckResult.warned(
            "Could not check SSH key permissions", details=str(e)
        )

    # Group or other bits set
    if mode & 0o077:
        return CheckResult.warned(
            "SSH private key has insecure permissions",
            details=f"Current mode: {mode:o}\nRun: chmod 600 {key_path}",
        )
    return CheckResult.passed("SSH private key OK")


@check(
    "ansible-inventory",
    "Ansible inventory file exists",
    tags=("preflight", "ansible"),
)
async def ansible_inventory(ctx):
    inventory = ctx.settings.ansible_inventory
    if not inventory.is_file():
        return CheckResult.failed(
            "Ansible inventory not found",
            details=(
                f"Expected at: {inventory}\n"
                "Run terraform to get the VM IPs, then create the inventory"
            ),
        )
    return CheckResult.passed("Ansible inventory exists")
