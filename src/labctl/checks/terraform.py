"""Terraform checks.

terraform runs inside the configured terraform directory with the run's
environment overlay, so TF_VAR_* values loaded from the secrets file
reach it.
"""

from labctl.core.check import check
from labctl.core.errors import ExecutionError
from labctl.core.exec import capture_output, execute
from labctl.core.result import CheckResult


@check("terraform-version", "Terraform version", tags=("smoke", "terraform"))
async def terraform_version(ctx):
    try:
        output = await capture_output("terraform", ["version"], env=ctx.env)
    except ExecutionError:
        return CheckResult.failed(
            "Terraform CLI not found",
            details="Install Terraform: https://www.terraform.io/downloads",
        )
    return CheckResult.passed(output.splitlines()[0] if output else None)


@check("terraform-fmt", "Terraform format check", tags=("terraform",))
async def terraform_fmt(ctx):
    directory = ctx.settings.terraform_dir
    result = await execute(
        "terraform",
        ["fmt", "-check", "-recursive", str(directory)],
        env=ctx.env,
        throw_on_error=False,
    )
    if result.failed:
        return CheckResult.warned(
            "Terraform files not formatted",
            details=f"Run: terraform fmt -recursive {directory}",
        )
    return CheckResult.passed("Terraform format OK")


async def _in_terraform_dir(ctx, *args):
    return await execute(
        "terraform",
        list(args),
        cwd=ctx.settings.terraform_dir,
        env=ctx.env,
        throw_on_error=False,
    )


@check("terraform-init", "Terraform workspace initialized", tags=("terraform",))
async def terraform_init(ctx):
    result = await _in_terraform_dir(ctx, "init", "-input=false")
    if result.failed:
        return CheckResult.failed(
            "Terraform init failed",
            details=(result.stderr or result.stdout).strip() or None,
        )
    return CheckResult.passed("Terraform initialized")


@check(
    "terraform-validate", "Terraform configuration valid", tags=("terraform",)
)
async def terraform_validate(ctx):
    result = await _in_terraform_dir(ctx, "validate", "-no-color")
    if result.failed:
        return CheckResult.failed(
            "Terraform validation failed",
            details=(result.stderr or result.stdout).strip() or None,
        )
    return CheckResult.passed("Terraform configuration valid")
