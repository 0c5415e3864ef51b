"""Configuration validation and prerequisite checks."""

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from .commands import MYSQL_BINARY, MYSQLDUMP_BINARY, RSYNC_BINARY, RemoteShellRequest
from .config import ConfigLoader
from .exceptions import ConfigError, PrerequisiteError
from .models import Environment, RemoteAccess
from .output import OutputFormatter
from .runner import CommandRunner, is_tool_available
from .utils import expand_user_path

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("wordpress_path", "url", "database")
REQUIRED_DATABASE_FIELDS = ("name", "user", "host")

# Seconds allowed for an SSH connection test
CONNECTION_TEST_TIMEOUT = 15.0


@dataclass
class ValidationReport:
    """Result of validating every environment in a movefile."""

    errors: dict[str, list[str]] = field(default_factory=dict)
    """Errors keyed by environment name"""

    warnings: list[str] = field(default_factory=list)
    """Problems that do not prevent a sync"""

    @property
    def is_valid(self) -> bool:
        """True if no environment has errors."""
        return not any(self.errors.values())


def is_valid_url(url: str) -> bool:
    """Check that a URL has an http(s) scheme and a host."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_environment(data: dict[str, Any]) -> list[str]:
    """Return every problem found in one environment section.

    Unlike Environment.from_dict, which stops at the first problem, all
    problems are collected.
    """
    errors = []
    for key in REQUIRED_FIELDS:
        if not data.get(key):
            errors.append(f"Missing required field: {key}")

    database = data.get("database")
    if isinstance(database, dict):
        for key in REQUIRED_DATABASE_FIELDS:
            if not database.get(key):
                errors.append(f"Missing required database field: {key}")
    elif database is not None:
        errors.append("'database' must be a mapping")

    url = data.get("url")
    if url and not is_valid_url(str(url)):
        errors.append(f"Invalid URL: {url}")

    ssh = data.get("ssh")
    if ssh is not None:
        if not isinstance(ssh, dict):
            errors.append("'ssh' must be a mapping")
        else:
            if not ssh.get("host"):
                errors.append("SSH host not configured")
            if not ssh.get("user"):
                errors.append("SSH user not configured")
            key = ssh.get("key")
            if key and not Path(expand_user_path(str(key))).is_file():
                errors.append(f"SSH key file not found: {key}")

    exclude = data.get("exclude")
    if exclude is not None and not isinstance(exclude, list):
        errors.append("'exclude' must be a list")

    git = data.get("git")
    if git is not None and not isinstance(git, dict):
        errors.append("'git' must be a mapping")

    return errors


def validate_configuration(loader: ConfigLoader) -> ValidationReport:
    """Validate all environments of a movefile.

    Raises:
        ConfigError: If the movefile itself cannot be read
    """
    report = ValidationReport()
    urls: dict[str, list[str]] = {}

    try:
        loader.get_global_excludes()
    except ConfigError as e:
        report.errors["global"] = [str(e)]

    for name in loader.get_environments():
        try:
            data = loader.get_raw_environment(name)
        except ConfigError as e:
            report.errors[name] = [str(e)]
            continue

        report.errors[name] = validate_environment(data)

        url = data.get("url")
        if url:
            urls.setdefault(str(url).rstrip("/"), []).append(name)
        database = data.get("database")
        if isinstance(database, dict) and not database.get("password"):
            report.warnings.append(f"Environment '{name}' has no database password")

    for url, names in urls.items():
        if len(names) > 1:
            report.warnings.append(
                f"Environments {', '.join(names)} share the same URL: {url}"
            )

    return report


def destructive_warnings(
    destination: str, sync_db: bool, no_backup: bool, delete: bool
) -> list[str]:
    """Return warnings for operations that cannot be undone."""
    warnings = []
    if sync_db and no_backup:
        warnings.append(f"This operation will REPLACE the database in: {destination}")
        warnings.append(
            "All existing data in the destination database will be lost with no backup."
        )
    if delete:
        warnings.append(
            "This operation will DELETE files on the destination "
            "that are missing from the source."
        )
    return warnings


class PrerequisiteValidator:
    """Checks tools and connections before a sync starts."""

    def __init__(self, runner: CommandRunner, output: OutputFormatter):
        self.runner = runner
        self.output = output

    def validate(
        self,
        source: Environment,
        destination: Environment,
        sync_files: bool,
        sync_db: bool,
        dry_run: bool = False,
    ) -> None:
        """Check everything the requested sync needs.

        Raises:
            PrerequisiteError: On the first missing prerequisite
        """
        self.output.section("Validating prerequisites")

        if sync_files:
            self._require_tool(RSYNC_BINARY, "Please install rsync to sync files.")

        if sync_db:
            hint = "Please install MySQL client tools."
            self._require_tool(MYSQLDUMP_BINARY, hint)
            self._require_tool(MYSQL_BINARY, hint)
            self._check_root_path(destination)

        if not dry_run:
            for env, label in ((source, "source"), (destination, "destination")):
                if env.remote is not None:
                    self._check_connection(env.remote, label)

        self.output.success("All prerequisites validated")

    def test_connection(
        self, remote: RemoteAccess, timeout: float = CONNECTION_TEST_TIMEOUT
    ) -> bool:
        """Check that a remote host accepts an SSH connection."""
        command = RemoteShellRequest(remote, "exit 0").render()
        result = self.runner.run(command, timeout=timeout)
        if not result.succeeded:
            logger.debug(f"SSH test to {remote.host} failed: {result.stderr.strip()}")
        return result.succeeded

    def remote_directory_exists(self, remote: RemoteAccess, path: str) -> bool:
        """Check that a directory exists on a remote host."""
        command = RemoteShellRequest(remote, f"test -d {shlex.quote(path)}").render()
        return self.runner.run(command, timeout=CONNECTION_TEST_TIMEOUT).succeeded

    def _require_tool(self, name: str, hint: str) -> None:
        if not is_tool_available(name):
            raise PrerequisiteError(f"{name} is not available. {hint}")
        self.output.info(f"✓ {name} is available")

    def _check_root_path(self, env: Environment) -> None:
        if env.remote is None:
            if not Path(env.root_path).is_dir():
                raise PrerequisiteError(f"WordPress path not found: {env.root_path}")
            self.output.info("✓ Destination WordPress path is accessible")
            return
        if not self.remote_directory_exists(env.remote, env.root_path):
            raise PrerequisiteError(
                f"WordPress path not found at remote path: {env.root_path}"
            )
        self.output.info("✓ Destination WordPress path is accessible")

    def _check_connection(self, remote: RemoteAccess, label: str) -> None:
        if not self.test_connection(remote):
            raise PrerequisiteError(
                f"Failed to connect to {label} via SSH. "
                "Please check your SSH configuration."
            )
        self.output.info(f"✓ {label.capitalize()} SSH connection works")
