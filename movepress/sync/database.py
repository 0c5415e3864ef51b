"""Database export, import, backup and URL replacement."""

import logging
import shlex
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ..commands import (
    CopyDirection,
    DatabaseExportRequest,
    DatabaseImportRequest,
    RemoteCopyRequest,
    RemoteShellRequest,
    SearchReplaceRequest,
    format_for_display,
)
from ..exceptions import MovepressError
from ..models import Environment, RemoteAccess
from ..output import OutputFormatter
from ..runner import CommandRunner
from ..wpcli import DEFAULT_WP_CLI, WpCli

logger = logging.getLogger(__name__)

REMOTE_TEMP_DIR = "/tmp"
BACKUP_DIR_NAME = "backups"
BACKUP_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def backup_filename(database_name: str, now: Optional[datetime] = None) -> str:
    """Return the file name of a database backup.

    Examples:
        >>> backup_filename("wp", datetime(2024, 5, 1, 13, 30, 0))
        'backup_wp_2024-05-01_13-30-00.sql.gz'
    """
    timestamp = (now or datetime.now()).strftime(BACKUP_TIMESTAMP_FORMAT)
    return f"backup_{database_name}_{timestamp}.sql.gz"


def _remote_temp_path(kind: str) -> str:
    return f"{REMOTE_TEMP_DIR}/movepress_{kind}_{uuid.uuid4().hex}.sql.gz"


class DatabaseService:
    """Runs database commands against local or remote environments."""

    def __init__(self, runner: CommandRunner, wp_cli: WpCli):
        """Initialize the service.

        Args:
            runner: Executes commands
            wp_cli: Local wp-cli command, resolved once at startup
        """
        self.runner = runner
        self.wp_cli = wp_cli

    def export(self, env: Environment, output_path: Union[str, Path]) -> Path:
        """Dump an environment's database into a local gzip file.

        Remote databases are dumped into a temporary file on the remote
        host, downloaded and the remote file removed.

        Raises:
            CommandFailedError: If a step fails
        """
        output = Path(output_path)
        if env.remote is None:
            command = DatabaseExportRequest(env.database, str(output)).render()
            self.runner.run_checked(command, "Database export failed")
            return output

        remote_path = _remote_temp_path("export")
        export = DatabaseExportRequest(env.database, remote_path).render()
        try:
            self.runner.run_checked(
                RemoteShellRequest(env.remote, export).render(),
                f"Database export on {env.remote.host} failed",
            )
            self.runner.run_checked(
                RemoteCopyRequest(
                    env.remote, remote_path, str(output), CopyDirection.DOWNLOAD
                ).render(),
                "Downloading the database export failed",
            )
        finally:
            self._remove_remote_file(env.remote, remote_path)
        return output

    def import_dump(self, env: Environment, input_path: Union[str, Path]) -> None:
        """Load a local dump file into an environment's database.

        Raises:
            MovepressError: If the dump file does not exist
            CommandFailedError: If a step fails
        """
        source = Path(input_path)
        if not source.is_file():
            raise MovepressError(f"Import file not found: {source}")

        if env.remote is None:
            command = DatabaseImportRequest(env.database, str(source)).render()
            self.runner.run_checked(command, "Database import failed")
            return

        remote_path = _remote_temp_path("import")
        if not source.name.endswith(".gz"):
            remote_path = remote_path[: -len(".gz")]
        try:
            self.runner.run_checked(
                RemoteCopyRequest(
                    env.remote, str(source), remote_path, CopyDirection.UPLOAD
                ).render(),
                "Uploading the database dump failed",
            )
            self.runner.run_checked(
                RemoteShellRequest(
                    env.remote, DatabaseImportRequest(env.database, remote_path).render()
                ).render(),
                f"Database import on {env.remote.host} failed",
            )
        finally:
            self._remove_remote_file(env.remote, remote_path)

    def backup(
        self, env: Environment, backup_dir: Optional[Union[str, Path]] = None
    ) -> Path:
        """Write a timestamped backup of an environment's database.

        The directory is, in order: backup_dir, the environment's
        backup_path and <root>/backups for local environments, or
        ./backups for remote ones.

        Returns:
            Path of the backup file
        """
        directory = Path(backup_dir) if backup_dir else self.backup_directory(env)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MovepressError(
                f"Cannot create backup directory {directory}: {e}"
            ) from e

        path = directory / backup_filename(env.database.name)
        logger.debug(f"Backing up {env.name} database to {path}")
        return self.export(env, path)

    @staticmethod
    def backup_directory(env: Environment) -> Path:
        """Return the default backup directory of an environment."""
        if env.remote is not None:
            return Path.cwd() / BACKUP_DIR_NAME
        if env.backup_path:
            return Path(env.backup_path).expanduser()
        return Path(env.root_path) / BACKUP_DIR_NAME

    def search_replace(self, env: Environment, old_value: str, new_value: str) -> None:
        """Replace one URL by another throughout an environment's database."""
        if env.remote is None:
            argv = self.wp_cli.argv
        else:
            argv = WpCli.from_string(env.wp_cli or DEFAULT_WP_CLI).argv

        command = SearchReplaceRequest(
            wp_cli=argv,
            application_path=env.application_path,
            old_value=old_value,
            new_value=new_value,
        ).render()
        if env.remote is not None:
            command = RemoteShellRequest(env.remote, command).render()
        self.runner.run_checked(command, "Search-replace failed")

    def _remove_remote_file(self, remote: RemoteAccess, path: str) -> None:
        command = RemoteShellRequest(remote, f"rm -f {shlex.quote(path)}").render()
        result = self.runner.run(command)
        if not result.succeeded:
            logger.warning(
                f"Could not remove temporary file {path} on {remote.host}: "
                f"{result.stderr.strip()}"
            )


class DatabaseSyncController:
    """Moves a database from one environment to another.

    Steps: export the source, back up the destination, import, then
    replace the source URL with the destination URL.
    """

    def __init__(
        self,
        service: DatabaseService,
        output: OutputFormatter,
        dry_run: bool = False,
    ):
        self.service = service
        self.output = output
        self.dry_run = dry_run

    def sync(
        self, source: Environment, destination: Environment, backup: bool = True
    ) -> Optional[Path]:
        """Copy the source database over the destination database.

        Args:
            source: Environment to export from
            destination: Environment to import into
            backup: Back up the destination first

        Returns:
            Path of the destination backup, if one was written
        """
        if self.dry_run:
            self._describe(source, destination, backup)
            return None

        backup_path = None
        with tempfile.TemporaryDirectory(prefix="movepress_db_") as work_dir:
            dump = Path(work_dir) / f"{source.database.name}.sql.gz"

            self.output.info(f"Exporting database from {source.name}...")
            self.service.export(source, dump)

            if backup:
                self.output.info(f"Backing up {destination.name} database...")
                backup_path = self.service.backup(destination)
                self.output.success(f"Backup saved to {backup_path}")

            self.output.info(f"Importing database into {destination.name}...")
            self.service.import_dump(destination, dump)

        if source.url != destination.url:
            self.output.info(f"Replacing {source.url} with {destination.url}...")
            self.service.search_replace(destination, source.url, destination.url)

        self.output.success("Database sync completed")
        return backup_path

    def _describe(
        self, source: Environment, destination: Environment, backup: bool
    ) -> None:
        export = DatabaseExportRequest(source.database, "<dump>").render()
        self.output.info(f"Would export database '{source.database.name}' from {source.name}")
        self.output.command(format_for_display(export))
        if backup:
            self.output.info(
                f"Would back up database '{destination.database.name}' "
                f"on {destination.name}"
            )
        self.output.info(
            f"Would import into database '{destination.database.name}' "
            f"on {destination.name}"
        )
        if source.url != destination.url:
            self.output.info(
                f"Would replace '{source.url}' with '{destination.url}'"
            )
