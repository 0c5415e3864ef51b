"""Command line construction for rsync, ssh, scp, mysqldump, mysql and wp-cli.

Every command is described by a frozen request dataclass. ``render()``
validates the request and returns a single shell command line in which every
value is quoted with :func:`shlex.quote`. Building a command never runs it.
"""

import re
import shlex
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .exceptions import MissingFieldError, PrerequisiteError
from .models import DEFAULT_SSH_PORT, DatabaseCredentials, RemoteAccess
from .sync.patterns import rsync_filter_rules
from .utils import expand_user_path

SSH_BINARY = "ssh"
SCP_BINARY = "scp"
RSYNC_BINARY = "rsync"
MYSQLDUMP_BINARY = "mysqldump"
MYSQL_BINARY = "mysql"

# One line per itemized change: CODE:SIZE:PATH
DRY_RUN_OUT_FORMAT = "%i:%l:%n%L"

PIPEFAIL_PREFIX = ("bash", "-o", "pipefail", "-c")


def _require(value: Optional[object], field_name: str) -> str:
    if value is None or str(value).strip() == "":
        raise MissingFieldError(field_name)
    return str(value)


def _join(parts: list[str]) -> str:
    return " ".join(shlex.quote(part) for part in parts)


def _pipefail(pipeline: str) -> str:
    return _join([*PIPEFAIL_PREFIX, pipeline])


def _validate_remote(remote: RemoteAccess) -> None:
    _require(remote.user, "ssh.user")
    _require(remote.host, "ssh.host")


def ssh_options(remote: RemoteAccess) -> list[str]:
    """Return the ssh flags for a remote (port, key, host key policy).

    The port flag is omitted for the default port.
    """
    options: list[str] = []
    if remote.port != DEFAULT_SSH_PORT:
        options.extend(["-p", str(remote.port)])
    if remote.key:
        options.extend(["-i", expand_user_path(remote.key)])
    options.extend(["-o", "StrictHostKeyChecking=no"])
    return options


def scp_options(remote: RemoteAccess) -> list[str]:
    """Return the scp flags for a remote; scp spells the port flag ``-P``."""
    return ["-P" if option == "-p" else option for option in ssh_options(remote)]


def _mysql_auth(credentials: DatabaseCredentials) -> list[str]:
    parts = [
        f"--user={_require(credentials.user, 'database.user')}",
        f"--host={_require(credentials.host, 'database.host')}",
    ]
    if credentials.port:
        parts.append(f"--port={credentials.port}")
    if credentials.password:
        parts.append(f"--password={credentials.password}")
    return parts


@dataclass(frozen=True)
class RsyncRequest:
    """A file transfer between two directories, at most one of them remote."""

    source: str
    """Source directory; a trailing slash is always added"""

    destination: str
    """Destination directory"""

    excludes: tuple[str, ...] = ()
    """Exclude patterns"""

    includes: tuple[str, ...] = ()
    """Include patterns; when non-empty everything else is excluded"""

    dry_run: bool = False
    """Simulate and itemize changes instead of transferring"""

    stats: bool = True
    """Ask rsync to print its statistics block"""

    delete: bool = False
    """Delete destination files missing from the source"""

    source_remote: Optional[RemoteAccess] = None
    """SSH access when the source is remote"""

    destination_remote: Optional[RemoteAccess] = None
    """SSH access when the destination is remote"""

    def render(self) -> str:
        """Build the rsync command line.

        Raises:
            MissingFieldError: If a path or a remote's user/host is empty
            PrerequisiteError: If both sides are remote
        """
        source = _require(self.source, "source")
        destination = _require(self.destination, "destination")
        if self.source_remote and self.destination_remote:
            raise PrerequisiteError(
                "Remote-to-remote file syncs are not supported; "
                "one side must be local"
            )
        remote = self.source_remote or self.destination_remote

        parts = [RSYNC_BINARY, "-a", "-v", "-z", "--omit-dir-times"]
        if self.stats:
            parts.append("--stats")
        if self.delete:
            parts.append("--delete")
        if self.dry_run:
            parts.extend(
                [
                    "--dry-run",
                    "--itemize-changes",
                    f"--out-format={DRY_RUN_OUT_FORMAT}",
                ]
            )
        for kind, rule in rsync_filter_rules(self.excludes, self.includes):
            parts.append(f"--{kind}={rule}")
        if self.includes:
            parts.append("--prune-empty-dirs")

        if remote is not None:
            _validate_remote(remote)
            parts.append("--protect-args")
            parts.extend(["-e", _join([SSH_BINARY, *ssh_options(remote)])])

        source = source.rstrip("/") + "/"
        if self.source_remote is not None:
            source = f"{self.source_remote.connection_string}:{source}"
        if self.destination_remote is not None:
            destination = f"{self.destination_remote.connection_string}:{destination}"
        parts.extend([source, destination])
        return _join(parts)


@dataclass(frozen=True)
class RemoteShellRequest:
    """A command executed on a remote host over ssh."""

    remote: RemoteAccess
    """SSH access"""

    command: str
    """Command to run remotely"""

    def render(self) -> str:
        """Build the ssh command line with the remote command as one argument."""
        _validate_remote(self.remote)
        parts = [
            SSH_BINARY,
            *ssh_options(self.remote),
            self.remote.connection_string,
            _require(self.command, "command"),
        ]
        return _join(parts)


class CopyDirection(str, Enum):
    """Direction of a single-file copy."""

    UPLOAD = "upload"
    DOWNLOAD = "download"


@dataclass(frozen=True)
class RemoteCopyRequest:
    """A single-file copy to or from a remote host."""

    remote: RemoteAccess
    """SSH access"""

    source: str
    """Source file (remote path for downloads)"""

    destination: str
    """Destination file (remote path for uploads)"""

    direction: CopyDirection = CopyDirection.DOWNLOAD
    """Which side is remote"""

    def render(self) -> str:
        """Build the scp command line."""
        _validate_remote(self.remote)
        source = _require(self.source, "source")
        destination = _require(self.destination, "destination")
        if self.direction == CopyDirection.DOWNLOAD:
            source = f"{self.remote.connection_string}:{source}"
        else:
            destination = f"{self.remote.connection_string}:{destination}"
        return _join([SCP_BINARY, *scp_options(self.remote), source, destination])


@dataclass(frozen=True)
class DatabaseExportRequest:
    """A mysqldump of one database into a file."""

    credentials: DatabaseCredentials
    """Database to export"""

    output_path: str
    """Dump file to write"""

    compress: bool = True
    """Pipe the dump through gzip"""

    def render(self) -> str:
        """Build the export command.

        The password flag is omitted entirely when no password is set.
        Compressed exports run under ``bash -o pipefail`` so a failing dump
        is not hidden by gzip's exit status.
        """
        name = _require(self.credentials.name, "database.name")
        output_path = _require(self.output_path, "output_path")
        dump = _join(
            [
                MYSQLDUMP_BINARY,
                *_mysql_auth(self.credentials),
                "--single-transaction",
                "--quick",
                "--lock-tables=false",
                name,
            ]
        )
        if self.compress:
            return _pipefail(f"{dump} | gzip > {shlex.quote(output_path)}")
        return f"{dump} > {shlex.quote(output_path)}"


@dataclass(frozen=True)
class DatabaseImportRequest:
    """Loading a dump file into one database."""

    credentials: DatabaseCredentials
    """Target database"""

    input_path: str
    """Dump file; ``.gz`` files are decompressed on the fly"""

    def render(self) -> str:
        """Build the import command."""
        name = _require(self.credentials.name, "database.name")
        input_path = _require(self.input_path, "input_path")
        client = _join([MYSQL_BINARY, *_mysql_auth(self.credentials), name])
        if input_path.endswith(".gz"):
            return _pipefail(f"gunzip < {shlex.quote(input_path)} | {client}")
        return f"{client} < {shlex.quote(input_path)}"


@dataclass(frozen=True)
class SearchReplaceRequest:
    """A wp-cli search-replace of one URL by another."""

    wp_cli: tuple[str, ...]
    """wp-cli command as an argument vector"""

    application_path: str
    """Path passed as --path"""

    old_value: str
    """Value to search for"""

    new_value: str
    """Replacement value"""

    skip_columns: tuple[str, ...] = field(default=("guid",))
    """Columns left untouched"""

    def render(self) -> str:
        """Build the search-replace command."""
        if not self.wp_cli:
            raise MissingFieldError("wp_cli")
        parts = [
            *self.wp_cli,
            "search-replace",
            _require(self.old_value, "old_value"),
            _require(self.new_value, "new_value"),
            f"--path={_require(self.application_path, 'application_path')}",
        ]
        if self.skip_columns:
            parts.append(f"--skip-columns={','.join(self.skip_columns)}")
        parts.append("--quiet")
        return _join(parts)


_PASSWORD_FLAG = re.compile(r"(--password=)(?:'[^']*'|\S+)")
_QUOTED_PASSWORD_FLAG = re.compile(r"'--password=[^']*'")


def format_for_display(command: str) -> str:
    """Return a command line suitable for showing to the user.

    The pipefail wrapper is unwrapped and passwords are masked. The result
    is for display only and is never executed.
    """
    display = command
    try:
        argv = shlex.split(command)
    except ValueError:
        argv = []
    if len(argv) == 5 and tuple(argv[:4]) == PIPEFAIL_PREFIX:
        display = argv[4]
    display = _QUOTED_PASSWORD_FLAG.sub("--password=****", display)
    return _PASSWORD_FLAG.sub(r"\1****", display)
