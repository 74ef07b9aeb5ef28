"""Command execution for artifacts that only exist inside a running network.

The topology processor queues command strings; a runner executes them as one
batch and returns a :class:`CommandResult` per command. Runners never raise
for a failing command: a non-zero exit, a missing executable or a timeout is
recorded on the result so the caller can report partial failure.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    command: str
    returncode: Optional[int]
    stdout: bytes = b""
    stderr: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.returncode == 0

    def describe(self) -> str:
        if self.ok:
            return f"ok: {self.command}"
        detail = self.error or self.stderr.strip() or f"exit status {self.returncode}"
        return f"failed: {self.command}: {detail}"


class CommandRunner:
    """Interface: execute an ordered batch of command strings."""

    def run(self, commands: Sequence[str]) -> List[CommandResult]:
        raise NotImplementedError


class ShellCommandRunner(CommandRunner):
    """Run each command with ``subprocess.run``, sequentially, no shell.

    Commands are split with ``shlex``, so quoting works as in a POSIX shell
    but redirections and pipes do not; stdout is captured as bytes.
    """

    def __init__(self, timeout: Optional[float] = 60, stop_on_error: bool = False):
        self.timeout = timeout
        self.stop_on_error = stop_on_error

    def _run_one(self, command: str) -> CommandResult:
        try:
            argv = shlex.split(command)
        except ValueError as ex:
            return CommandResult(command, None, error=f"cannot parse command: {ex}")
        if not argv:
            return CommandResult(command, None, error="empty command")

        try:
            proc = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError:
            return CommandResult(command, None, error=f"executable not found: {argv[0]}")
        except subprocess.TimeoutExpired:
            return CommandResult(command, None, error=f"timed out after {self.timeout}s")
        except OSError as ex:
            return CommandResult(command, None, error=str(ex))

        return CommandResult(
            command,
            proc.returncode,
            stdout=proc.stdout or b"",
            stderr=(proc.stderr or b"").decode("utf-8", errors="replace"),
        )

    def run(self, commands: Sequence[str]) -> List[CommandResult]:
        results: List[CommandResult] = []
        for command in commands:
            result = self._run_one(command)
            logger.debug(result.describe())
            results.append(result)
            if self.stop_on_error and not result.ok:
                break
        return results


def combined_output(results: Sequence[CommandResult]) -> str:
    """One line per command, for logging/reporting."""
    return "\n".join(r.describe() for r in results)
