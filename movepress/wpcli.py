"""Resolution of the wp-cli command."""

import logging
import os
import shlex
from dataclasses import dataclass
from typing import Optional

from .runner import is_tool_available

logger = logging.getLogger(__name__)

WP_CLI_ENV_VAR = "MOVEPRESS_WP_CLI"
DEFAULT_WP_CLI = "wp"


@dataclass(frozen=True)
class WpCli:
    """The wp-cli command, resolved once at startup."""

    argv: tuple[str, ...]
    """Command as an argument vector (e.g. ("wp",) or ("php", "wp-cli.phar"))"""

    @classmethod
    def from_string(cls, command: str) -> "WpCli":
        """Parse a wp-cli command line such as ``php /opt/wp-cli.phar``."""
        argv = tuple(shlex.split(command))
        if not argv:
            raise ValueError("wp-cli command is empty")
        return cls(argv=argv)

    @classmethod
    def discover(cls, command: Optional[str] = None) -> "WpCli":
        """Resolve the local wp-cli command.

        Args:
            command: Explicit command; falls back to $MOVEPRESS_WP_CLI and
                then to ``wp``

        Returns:
            WpCli instance
        """
        resolved = command or os.environ.get(WP_CLI_ENV_VAR) or DEFAULT_WP_CLI
        wp_cli = cls.from_string(resolved)
        logger.debug(f"Using wp-cli command: {wp_cli.display}")
        return wp_cli

    @property
    def display(self) -> str:
        """Return the command as a shell string."""
        return shlex.join(self.argv)

    def is_available(self) -> bool:
        """Check whether the executable is on PATH."""
        return is_tool_available(self.argv[0])
