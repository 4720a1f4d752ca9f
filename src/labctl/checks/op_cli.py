"""1Password CLI checks."""

from labctl.core.check import check
from labctl.core.errors import ConfigurationError, ExecutionError
from labctl.core.result import CheckResult
from labctl.secrets.config import load_secrets_config
from labctl.secrets.store import SecretStore

INSTALL_URL = "https://developer.1password.com/docs/cli/get-started"


@check("op-installed", "1Password CLI installed", tags=("smoke", "op"))
async def op_installed(ctx):
    try:
        version = await SecretStore.for_context(ctx).version()
    except ExecutionError:
        return CheckResult.failed(
            "op CLI not found", details=f"Install 1Password CLI: {INSTALL_URL}"
        )
    return CheckResult.passed(f"v{version}")


@check("op-account", "1Password account added", tags=("smoke", "op"))
async def op_account(ctx):
    try:
        count = await SecretStore.for_context(ctx).account_count()
    except ExecutionError:
        return CheckResult.failed(
            "Failed to list accounts", details="Run: op account add"
        )
    if count == 0:
        return CheckResult.failed(
            "No accounts added", details="Run: op account add"
        )
    return CheckResult.passed(f"{count} account(s)")


@check("op-signed-in", "1Password signed in", tags=("smoke", "op"))
async def op_signed_in(ctx):
    try:
        identity = await SecretStore.for_context(ctx).whoami()
    except ExecutionError:
        return CheckResult.failed(
            "Not signed in", details="Run: eval $(op signin)"
        )
    return CheckResult.passed(identity.splitlines()[0] if identity else None)


@check("op-vault", "1Password vault exists", tags=("preflight", "op"))
async def op_vault(ctx):
    vault = ctx.settings.vault
    if not vault:
        return CheckResult.failed("OP_VAULT not configured")
    if not await SecretStore.for_context(ctx).vault_exists(vault):
        return CheckResult.failed(
            f"Vault not found: {vault}", details="Run: op vault list"
        )
    return CheckResult.passed(vault)


@check(
    "op-secrets-resolve",
    "1Password secret references resolve",
    tags=("preflight", "op"),
)
async def op_secrets_resolve(ctx):
    path = ctx.settings.secrets_config
    if not path.is_file():
        return CheckResult.skipped(f"No {path.name}")
    try:
        refs = load_secrets_config(path, ctx.settings.vault).references()
    except ConfigurationError as e:
        return CheckResult.failed("Error validating secrets", details=str(e))

    if not refs:
        return CheckResult.warned("No secret references found in config")

    store = SecretStore.for_context(ctx)
    failed = []
    for ref in refs:
        try:
            value = await store.read(ref)
        except ExecutionError:
            failed.append(ref)
            continue
        if not value:
            failed.append(f"{ref} (empty)")

    if failed:
        return CheckResult.failed(
            f"{len(failed)} secret(s) failed to resolve",
            details="\n".join(failed),
        )
    return CheckResult.passed(f"{len(refs)} reference(s) resolved")
