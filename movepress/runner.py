"""Execution of external commands."""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Optional

from .commands import format_for_display
from .exceptions import CommandFailedError

logger = logging.getLogger(__name__)

# Database dumps and large file trees can take a long time
DEFAULT_TIMEOUT: float = 3600.0


@dataclass
class CommandResult:
    """Outcome of a finished command."""

    command: str
    """Command line that was run"""

    exit_code: int
    """Process exit status"""

    stdout: str = ""
    """Captured standard output"""

    stderr: str = ""
    """Captured standard error"""

    @property
    def succeeded(self) -> bool:
        """True if the command exited with status 0."""
        return self.exit_code == 0


def is_tool_available(name: str) -> bool:
    """Check whether an executable is on PATH."""
    return shutil.which(name) is not None


class CommandRunner:
    """Runs shell command lines and captures their output."""

    def __init__(self, timeout: Optional[float] = DEFAULT_TIMEOUT):
        """Initialize the runner.

        Args:
            timeout: Seconds before a command is killed (None for no limit)
        """
        self.timeout = timeout

    def run(
        self,
        command: str,
        timeout: Optional[float] = None,
        input_text: Optional[str] = None,
    ) -> CommandResult:
        """Run a command line through the shell and wait for it.

        Args:
            command: Fully quoted command line
            timeout: Overrides the runner's timeout for this call
            input_text: Text fed to the command's standard input

        Returns:
            CommandResult with exit code and captured output

        Raises:
            CommandFailedError: If the command times out or cannot be started
        """
        effective_timeout = timeout if timeout is not None else self.timeout
        logger.debug(f"Running: {format_for_display(command)}")
        try:
            completed = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                input=input_text,
                timeout=effective_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandFailedError(
                f"Command timed out after {effective_timeout:.0f}s",
                command=command,
            ) from e
        except OSError as e:
            raise CommandFailedError(
                f"Could not start command: {e}", command=command
            ) from e

        logger.debug(f"Exit code {completed.returncode}")
        return CommandResult(
            command=command,
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def run_checked(
        self, command: str, description: str, input_text: Optional[str] = None
    ) -> CommandResult:
        """Run a command and raise if it fails.

        Args:
            command: Fully quoted command line
            description: What the command does, used in the error message
            input_text: Text fed to the command's standard input

        Raises:
            CommandFailedError: If the exit status is not 0
        """
        result = self.run(command, input_text=input_text)
        if not result.succeeded:
            raise CommandFailedError(
                description,
                command=command,
                exit_code=result.exit_code,
                stderr=result.stderr,
            )
        return result
