"""Tests for database export, import and sync."""

import shlex
import tempfile
from datetime import datetime
from pathlib import Path
from unittest.mock import Mock, call

import pytest

from movepress.exceptions import CommandFailedError, MovepressError
from movepress.models import DatabaseCredentials, Environment, RemoteAccess
from movepress.output import OutputFormatter
from movepress.runner import CommandResult, CommandRunner
from movepress.sync.database import (
    DatabaseService,
    DatabaseSyncController,
    backup_filename,
)
from movepress.wpcli import WpCli


def make_env(name, root="/var/www", remote=None, url="http://local.test", **kwargs):
    """Build an environment for database tests."""
    return Environment(
        name=name,
        root_path=root,
        url=url,
        database=DatabaseCredentials(name=f"{name}_db", user="root", password="pw"),
        remote=remote,
        **kwargs,
    )


@pytest.fixture
def runner():
    """Runner where every command succeeds."""
    mock = Mock(spec=CommandRunner)
    mock.run.return_value = CommandResult("cmd", 0)
    mock.run_checked.return_value = CommandResult("cmd", 0)
    return mock


@pytest.fixture
def service(runner):
    return DatabaseService(runner, WpCli(("wp",)))


@pytest.fixture
def remote_env():
    return make_env(
        "production",
        root="/var/www/html",
        remote=RemoteAccess(host="example.com", user="deploy"),
        url="https://example.com",
    )


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestBackupFilename:
    """Tests for backup_filename."""

    def test_format(self):
        name = backup_filename("wp", datetime(2024, 5, 1, 13, 30, 0))
        assert name == "backup_wp_2024-05-01_13-30-00.sql.gz"


class TestDatabaseService:
    """Test DatabaseService functionality."""

    def test_local_export(self, service, runner):
        service.export(make_env("local"), "/tmp/out.sql.gz")

        runner.run_checked.assert_called_once()
        command = runner.run_checked.call_args[0][0]
        assert command.startswith("bash -o pipefail -c ")
        assert "gzip > /tmp/out.sql.gz" in command

    def test_remote_export(self, service, runner, remote_env):
        """Test that a remote export dumps, downloads and cleans up."""
        service.export(remote_env, "/tmp/out.sql.gz")

        dump_cmd, download_cmd = (c[0][0] for c in runner.run_checked.call_args_list)
        assert dump_cmd.startswith("ssh ")
        assert "mysqldump" in dump_cmd
        assert download_cmd.startswith("scp ")
        assert download_cmd.endswith(" /tmp/out.sql.gz")

        remote_file = shlex.split(download_cmd)[-2].split(":", 1)[1]
        assert remote_file.startswith("/tmp/movepress_export_")
        cleanup_cmd = runner.run.call_args[0][0]
        assert shlex.split(cleanup_cmd)[-1] == f"rm -f {remote_file}"

    def test_remote_file_removed_when_download_fails(self, service, runner, remote_env):
        runner.run_checked.side_effect = [
            CommandResult("ssh", 0),
            CommandFailedError("Downloading the database export failed", exit_code=1),
        ]

        with pytest.raises(CommandFailedError):
            service.export(remote_env, "/tmp/out.sql.gz")

        assert "rm -f" in runner.run.call_args[0][0]

    def test_failed_cleanup_is_only_logged(self, service, runner, remote_env):
        runner.run.return_value = CommandResult("ssh", 255, stderr="Connection closed")

        service.export(remote_env, "/tmp/out.sql.gz")

    def test_import_missing_file(self, service, runner, temp_dir):
        with pytest.raises(MovepressError, match="Import file not found"):
            service.import_dump(make_env("local"), temp_dir / "missing.sql.gz")
        runner.run_checked.assert_not_called()

    def test_local_import(self, service, runner, temp_dir):
        dump = temp_dir / "dump.sql.gz"
        dump.write_bytes(b"")

        service.import_dump(make_env("local"), dump)

        command = runner.run_checked.call_args[0][0]
        assert f"gunzip < {dump}" in shlex.split(command)[-1]

    def test_remote_import(self, service, runner, remote_env, temp_dir):
        """Test that a remote import uploads, imports and cleans up."""
        dump = temp_dir / "dump.sql"
        dump.write_text("SELECT 1;")

        service.import_dump(remote_env, dump)

        upload_cmd, import_cmd = (c[0][0] for c in runner.run_checked.call_args_list)
        assert upload_cmd.startswith("scp ")
        remote_file = shlex.split(upload_cmd)[-1].split(":", 1)[1]
        assert remote_file.endswith(".sql")
        assert import_cmd.startswith("ssh ")
        assert f"< {remote_file}" in shlex.split(import_cmd)[-1]
        assert remote_file in runner.run.call_args[0][0]

    def test_backup_uses_backup_path(self, service, runner, temp_dir):
        env = make_env("local", backup_path=str(temp_dir / "backups"))

        path = service.backup(env)

        assert path.parent == temp_dir / "backups"
        assert path.name.startswith("backup_local_db_")
        assert path.parent.is_dir()
        assert str(path) in runner.run_checked.call_args[0][0]

    def test_backup_explicit_directory(self, service, temp_dir):
        path = service.backup(make_env("local"), backup_dir=temp_dir)
        assert path.parent == temp_dir

    def test_default_backup_directories(self, remote_env):
        assert DatabaseService.backup_directory(make_env("local", root="/srv/site")) == (
            Path("/srv/site/backups")
        )
        assert DatabaseService.backup_directory(remote_env) == Path.cwd() / "backups"

    def test_local_search_replace_uses_local_wp_cli(self, runner):
        service = DatabaseService(runner, WpCli(("php", "/opt/wp-cli.phar")))

        service.search_replace(make_env("local"), "https://a.test", "http://b.test")

        command = runner.run_checked.call_args[0][0]
        assert command.startswith("php /opt/wp-cli.phar search-replace ")
        assert "--path=/var/www" in command

    def test_remote_search_replace_runs_over_ssh(self, service, runner):
        env = make_env(
            "production",
            remote=RemoteAccess(host="example.com", user="deploy"),
            core_path="/var/www/wp",
            wp_cli="/usr/local/bin/wp",
        )

        service.search_replace(env, "http://local.test", "https://example.com")

        command = runner.run_checked.call_args[0][0]
        inner = shlex.split(command)[-1]
        assert command.startswith("ssh ")
        assert inner.startswith("/usr/local/bin/wp search-replace ")
        assert "--path=/var/www/wp" in inner


class TestDatabaseSyncController:
    """Test DatabaseSyncController functionality."""

    @pytest.fixture
    def db_service(self):
        mock = Mock(spec=DatabaseService)
        mock.backup.return_value = Path("/backups/backup.sql.gz")
        return mock

    @pytest.fixture
    def output(self):
        return Mock(spec=OutputFormatter)

    def test_step_order(self, db_service, output, remote_env):
        """Test export, backup, import and search-replace run in order."""
        source = make_env("local")
        controller = DatabaseSyncController(db_service, output)

        backup_path = controller.sync(source, remote_env)

        assert [c[0] for c in db_service.method_calls] == [
            "export",
            "backup",
            "import_dump",
            "search_replace",
        ]
        assert backup_path == Path("/backups/backup.sql.gz")
        db_service.search_replace.assert_called_once_with(
            remote_env, "http://local.test", "https://example.com"
        )
        exported = db_service.export.call_args[0][1]
        assert db_service.import_dump.call_args == call(remote_env, exported)

    def test_no_backup(self, db_service, output, remote_env):
        controller = DatabaseSyncController(db_service, output)

        assert controller.sync(make_env("local"), remote_env, backup=False) is None
        db_service.backup.assert_not_called()
        db_service.import_dump.assert_called_once()

    def test_same_url_skips_search_replace(self, db_service, output):
        controller = DatabaseSyncController(db_service, output)

        controller.sync(make_env("local"), make_env("copy"))

        db_service.search_replace.assert_not_called()

    def test_dry_run_changes_nothing(self, db_service, output, remote_env):
        controller = DatabaseSyncController(db_service, output, dry_run=True)

        assert controller.sync(make_env("local"), remote_env) is None

        assert db_service.method_calls == []
        messages = [c[0][0] for c in output.info.call_args_list]
        assert "Would export database 'local_db' from local" in messages
        assert "Would replace 'http://local.test' with 'https://example.com'" in messages

    def test_failed_export_stops_sync(self, db_service, output, remote_env):
        db_service.export.side_effect = CommandFailedError("Database export failed")
        controller = DatabaseSyncController(db_service, output)

        with pytest.raises(CommandFailedError):
            controller.sync(make_env("local"), remote_env)

        db_service.import_dump.assert_not_called()
