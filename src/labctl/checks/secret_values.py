"""Checks on the secret values referenced by the template."""

from labctl.core.check import check
from labctl.core.errors import ConfigurationError, ExecutionError
from labctl.core.result import CheckResult
from labctl.secrets.store import SecretStore
from labctl.secrets.strategies import validate_format
from labctl.secrets.config import load_entries
from labctl.secrets.template import invalid_entries


@check(
    "secrets-exist",
    "Required secrets exist in 1Password",
    tags=("preflight", "secrets"),
)
async def secrets_exist(ctx):
    try:
        entries = load_entries(
            ctx.settings.secrets_template, ctx.settings.secrets_config
        )
    except ConfigurationError as e:
        return CheckResult.failed("Failed to check secrets", details=str(e))

    if not entries:
        return CheckResult.warned("No secrets defined in template")

    malformed = invalid_entries(entries)
    if malformed:
        return CheckResult.failed(
            f"{len(malformed)} reference(s) malformed",
            details="\n".join(
                f"line {e.line_number}: {e.name} -> {e.reference}"
                for e in malformed
            ),
        )

    store = SecretStore.for_context(ctx)
    missing, empty, present = [], [], []
    for entry in entries:
        try:
            value = await store.read(entry.reference)
        except ExecutionError:
            missing.append(f"{entry.name} ({entry.kind})")
            continue
        if not value:
            empty.append(f"{entry.name} ({entry.kind})")
        else:
            present.append(entry.name)

    if missing:
        return CheckResult.failed(
            f"{len(missing)} secret(s) not found",
            details=f"Missing: {', '.join(missing)}\nRun: labctl init",
        )
    if empty:
        return CheckResult.failed(
            f"{len(empty)} secret(s) are empty",
            details=f"Empty: {', '.join(empty)}\nRun: labctl init --force",
        )
    return CheckResult.passed(
        f"All {len(present)} secrets present", details=", ".join(present)
    )


@check(
    "secrets-validate",
    "Secret values match expected format",
    tags=("preflight", "secrets"),
)
async def secrets_validate(ctx):
    try:
        entries = load_entries(
            ctx.settings.secrets_template, ctx.settings.secrets_config
        )
    except ConfigurationError as e:
        return CheckResult.failed("Failed to validate secrets", details=str(e))

    store = SecretStore.for_context(ctx)
    invalid, valid = [], []
    for entry in entries:
        if not entry.is_valid:
            continue
        try:
            value = await store.read(entry.reference)
        except ExecutionError:
            # Reported by secrets-exist
            continue
        if not value:
            continue
        if validate_format(entry.kind, value):
            valid.append(entry.name)
        else:
            invalid.append(f"{entry.name} ({entry.kind})")

    if invalid:
        return CheckResult.warned(
            f"{len(invalid)} secret(s) may have invalid format",
            details=f"Check: {', '.join(invalid)}",
        )
    if not valid:
        return CheckResult.skipped("No secrets to validate")
    return CheckResult.passed(f"{len(valid)} secret(s) validated")
