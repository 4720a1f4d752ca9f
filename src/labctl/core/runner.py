"""Blocking command execution on top of invoke."""

from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut

from labctl.core.log import logger


class Runner(Context):
    """invoke.Context with a single execute() entry point.

    Every child process labctl starts goes through here. Output is
    always captured; nothing is echoed to the terminal directly.
    """

    def execute(
        self,
        command: str,
        cwd: Path | str | None = None,
        timeout: int | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
        log_level: str | None = None,
    ) -> Result:
        """Run a shell command line.

        Args:
            command: Fully quoted command line
            cwd: Working directory for the command
            timeout: Seconds before the command is killed
            check: Raise invoke.UnexpectedExit on non-zero exit
            env: Variables layered over os.environ for the child only
            log_level: Replay stdout/stderr lines at this log level

        Returns:
            invoke.Result; a timed out command reports exited == -1
        """
        kwargs = {
            "hide": True,
            "warn": not check,
            "in_stream": False,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if env:
            kwargs["env"] = env

        try:
            if cwd:
                with self.cd(str(cwd)):
                    result = self.run(command, **kwargs)
            else:
                result = self.run(command, **kwargs)
        except CommandTimedOut as e:
            result = e.result
            result.exited = -1

        if log_level:
            for line in (result.stdout + result.stderr).splitlines():
                getattr(logger, log_level)(line.rstrip())

        return result
