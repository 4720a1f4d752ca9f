"""Async wrappers around Runner used by checks and the secret store.

Runner is blocking, so each call runs in a worker thread. From the
event loop's point of view every external command is one await, and
checks still execute one at a time because the chain engine awaits
them sequentially.
"""

from __future__ import annotations

import asyncio
import json
import shlex
import shutil
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from labctl.core.errors import ExecutionError, ParseError
from labctl.core.log import logger
from labctl.core.runner import Runner


class ExecutionResult(BaseModel):
    """Captured outcome of one external command."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    failed: bool = False


def command_line(command: str, args: Sequence[str] = ()) -> str:
    """Shell-quoted command line for Runner."""
    return " ".join(shlex.quote(str(part)) for part in (command, *args))


async def execute(
    command: str,
    args: Sequence[str] = (),
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    throw_on_error: bool = True,
    timeout: int | None = None,
) -> ExecutionResult:
    """Run an external program and capture its output.

    Args:
        command: Program name or path
        args: Arguments, quoted individually
        cwd: Working directory override
        env: Variables layered over the process environment
        throw_on_error: Raise ExecutionError on non-zero exit instead of
            returning a result with failed=True
        timeout: Seconds before the program is killed (exit code -1)

    Raises:
        ExecutionError: Non-zero exit and throw_on_error is set
    """
    line = command_line(command, args)
    # Arguments can carry secret values, so only the program is logged
    logger.debug(f"Running {command}", cwd=str(cwd) if cwd else None)

    result = await asyncio.to_thread(
        Runner().execute,
        line,
        cwd=cwd,
        timeout=timeout,
        check=False,
        env=dict(env) if env else None,
    )

    outcome = ExecutionResult(
        stdout=result.stdout or "",
        stderr=result.stderr or "",
        exit_code=result.exited,
        failed=result.exited != 0,
    )
    if outcome.failed:
        logger.debug(
            f"{command} exited {outcome.exit_code}",
            exit_code=outcome.exit_code,
        )
        if throw_on_error:
            raise ExecutionError(line, outcome.stderr, outcome.exit_code)
    return outcome


async def capture_output(
    command: str, args: Sequence[str] = (), **options: Any
) -> str:
    """Trimmed stdout of a command that must succeed."""
    options["throw_on_error"] = True
    result = await execute(command, args, **options)
    return result.stdout.strip()


async def capture_json(
    command: str, args: Sequence[str] = (), **options: Any
) -> Any:
    """Parsed JSON stdout of a command that must succeed.

    Raises:
        ExecutionError: The command failed
        ParseError: stdout is not valid JSON
    """
    output = await capture_output(command, args, **options)
    try:
        return json.loads(output)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON from {command}: {e}") from e


def command_exists(name: str) -> bool:
    """True if name resolves to an executable on PATH."""
    try:
        return shutil.which(name) is not None
    except OSError:
        return False
