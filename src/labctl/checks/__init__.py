"""Built-in checks and the chains that group them."""

from labctl.checks.keys import ansible_inventory, ssh_private_key
from labctl.checks.op_cli import (
    op_account,
    op_installed,
    op_secrets_resolve,
    op_signed_in,
    op_vault,
)
from labctl.checks.proxmox import disk_space, proxmox_api, proxmox_ssh, qm_version
from labctl.checks.secret_values import secrets_exist, secrets_validate
from labctl.checks.tailscale import (
    tailscale_targets,
    tailscale_up,
    tailscale_version,
)
from labctl.checks.terraform import (
    terraform_fmt,
    terraform_init,
    terraform_validate,
    terraform_version,
)
from labctl.core.chain import Chain

# Tools present and the secret store reachable
SMOKE = Chain("smoke", (
    op_installed,
    op_account,
    op_signed_in,
    terraform_version,
    tailscale_version,
))

# Everything a provisioning run depends on
PREFLIGHT = Chain("preflight", (
    op_signed_in,
    op_vault,
    op_secrets_resolve,
    secrets_exist,
    secrets_validate,
    tailscale_up,
    tailscale_targets,
    qm_version,
    proxmox_api,
    disk_space,
    proxmox_ssh,
    ssh_private_key,
    ansible_inventory,
))

TERRAFORM = Chain("terraform", (
    terraform_fmt,
    terraform_init,
    terraform_validate,
))

CHAINS = {chain.name: chain for chain in (SMOKE, PREFLIGHT, TERRAFORM)}

__all__ = ["CHAINS", "PREFLIGHT", "SMOKE", "TERRAFORM"]
