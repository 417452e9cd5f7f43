"""
OS command execution for smtoolkit.

Provides a thin wrapper around subprocess.run that captures output and
returns a structured result. Installers (msiexec), disk image tooling
(hdiutil), provider registration and version checks all run through a
``CommandRunner`` so tests can substitute a fake.

Usage:
    runner = CommandRunner()
    result = runner.run("hdiutil", ["attach", dmg, "-mountpoint", volume])
    print(result.stdout)
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from smtoolkit.core.exceptions import SmToolkitError

logger = logging.getLogger(__name__)

Executable = Union[str, os.PathLike]


@dataclass(frozen=True)
class CommandResult:
    """
    Outcome of a finished command.

    Attributes:
        exit_code: Process exit code
        stdout: Captured standard output
        stderr: Captured standard error
    """

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandError(SmToolkitError):
    """Raised when a checked command exits with a non-zero code."""

    def __init__(self, command: Sequence[str], result: CommandResult):
        self.command = tuple(command)
        self.result = result
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        message = f"{cmd_str} failed (exit {result.exit_code})"
        if result.stderr.strip():
            message += f": {result.stderr.strip()}"
        super().__init__(message)

    @property
    def exit_code(self) -> int:
        return self.result.exit_code


class CommandRunner:
    """Runs executables and captures their output."""

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize command runner.

        Args:
            timeout: Maximum seconds to wait per command (None for no limit)
        """
        self.timeout = timeout

    def run(
        self, executable: Executable, args: Sequence[str] = (), check: bool = True
    ) -> CommandResult:
        """
        Execute a command and capture its output.

        Args:
            executable: Program to run
            args: Command-line arguments
            check: Raise CommandError on a non-zero exit code

        Returns:
            CommandResult with exit code and captured output

        Raises:
            CommandError: If check is True and the command fails
            OSError: If the executable cannot be launched
            subprocess.TimeoutExpired: If the command exceeds the timeout
        """
        command = [str(executable), *[str(arg) for arg in args]]
        logger.debug(f"Running: {' '.join(command)}")

        proc = subprocess.run(
            command,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=self.timeout,
            check=False,
        )
        result = CommandResult(
            exit_code=proc.returncode, stdout=proc.stdout or "", stderr=proc.stderr or ""
        )

        if result.stdout:
            logger.debug(result.stdout.rstrip())

        if check and not result.ok:
            raise CommandError(command, result)

        return result


__all__ = ["CommandResult", "CommandError", "CommandRunner"]
