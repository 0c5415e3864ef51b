"""Tests for command line construction."""

import shlex

import pytest

from movepress.commands import (
    CopyDirection,
    DatabaseExportRequest,
    DatabaseImportRequest,
    RemoteCopyRequest,
    RemoteShellRequest,
    RsyncRequest,
    SearchReplaceRequest,
    format_for_display,
    scp_options,
    ssh_options,
)
from movepress.exceptions import MissingFieldError, PrerequisiteError
from movepress.models import DatabaseCredentials, RemoteAccess


@pytest.fixture
def remote():
    """SSH access on the default port."""
    return RemoteAccess(host="example.com", user="deploy")


@pytest.fixture
def remote_custom_port():
    """SSH access on a custom port with a key."""
    return RemoteAccess(host="example.com", user="deploy", port=2222, key="/keys/id_rsa")


@pytest.fixture
def credentials():
    """Database credentials without a password."""
    return DatabaseCredentials(name="wp", user="root", host="localhost")


class TestSshOptions:
    """Tests for ssh and scp option lists."""

    def test_default_port_is_omitted(self, remote):
        assert ssh_options(remote) == ["-o", "StrictHostKeyChecking=no"]

    def test_custom_port_and_key(self, remote_custom_port):
        assert ssh_options(remote_custom_port) == [
            "-p",
            "2222",
            "-i",
            "/keys/id_rsa",
            "-o",
            "StrictHostKeyChecking=no",
        ]

    def test_scp_uses_uppercase_port_flag(self, remote_custom_port):
        options = scp_options(remote_custom_port)
        assert options[:2] == ["-P", "2222"]
        assert "-p" not in options

    def test_key_home_is_expanded(self, monkeypatch):
        monkeypatch.setenv("HOME", "/home/deploy")
        options = ssh_options(RemoteAccess(host="h", user="u", key="~/.ssh/id_rsa"))
        assert "/home/deploy/.ssh/id_rsa" in options


class TestRsyncRequest:
    """Tests for RsyncRequest."""

    def test_local_transfer(self):
        command = RsyncRequest(source="/src", destination="/dst").render()
        assert command == "rsync -a -v -z --omit-dir-times --stats /src/ /dst"

    def test_source_trailing_slash_is_not_doubled(self):
        command = RsyncRequest(source="/src/", destination="/dst").render()
        assert command.endswith(" /src/ /dst")

    def test_dry_run_itemizes_changes(self):
        command = RsyncRequest(source="/src", destination="/dst", dry_run=True).render()
        assert "--dry-run --itemize-changes --out-format=%i:%l:%n%L" in command

    def test_delete_flag(self):
        command = RsyncRequest(source="/src", destination="/dst", delete=True).render()
        assert "--delete" in shlex.split(command)

    def test_excludes_are_quoted(self):
        command = RsyncRequest(
            source="/src", destination="/dst", excludes=("*.log", "wp-content/cache/")
        ).render()
        assert "'--exclude=*.log'" in command
        assert "--exclude=/wp-content/cache/" in shlex.split(command)

    def test_includes_end_with_catch_all(self):
        command = RsyncRequest(
            source="/src", destination="/dst", includes=("wp-content/uploads/",)
        ).render()
        argv = shlex.split(command)
        assert "--include=/wp-content/" in argv
        assert "--include=/wp-content/uploads/***" in argv
        assert argv.index("--exclude=*") > argv.index("--include=/wp-content/uploads/")

    def test_remote_destination(self, remote_custom_port):
        command = RsyncRequest(
            source="/var/www/local",
            destination="/var/www/html",
            destination_remote=remote_custom_port,
        ).render()
        argv = shlex.split(command)
        assert argv[-2:] == ["/var/www/local/", "deploy@example.com:/var/www/html"]
        assert argv[argv.index("-e") + 1] == (
            "ssh -p 2222 -i /keys/id_rsa -o StrictHostKeyChecking=no"
        )
        assert "--protect-args" in argv

    def test_remote_source(self, remote):
        command = RsyncRequest(
            source="/var/www/html", destination="/tmp/site", source_remote=remote
        ).render()
        assert shlex.split(command)[-2:] == [
            "deploy@example.com:/var/www/html/",
            "/tmp/site",
        ]

    def test_paths_with_spaces_stay_single_arguments(self):
        command = RsyncRequest(source="/my site", destination="/their site").render()
        assert shlex.split(command)[-2:] == ["/my site/", "/their site"]

    def test_remote_to_remote_is_rejected(self, remote):
        request = RsyncRequest(
            source="/a", destination="/b", source_remote=remote, destination_remote=remote
        )
        with pytest.raises(PrerequisiteError):
            request.render()

    def test_missing_source(self):
        with pytest.raises(MissingFieldError) as exc_info:
            RsyncRequest(source="", destination="/dst").render()
        assert exc_info.value.field == "source"

    def test_missing_remote_user(self):
        request = RsyncRequest(
            source="/a", destination="/b", destination_remote=RemoteAccess("host", "")
        )
        with pytest.raises(MissingFieldError, match="ssh.user"):
            request.render()


class TestRemoteShellRequest:
    """Tests for RemoteShellRequest."""

    def test_inner_command_is_one_argument(self, remote):
        command = RemoteShellRequest(remote, "ls -la /var/www").render()
        assert command == (
            "ssh -o StrictHostKeyChecking=no deploy@example.com 'ls -la /var/www'"
        )

    def test_custom_port(self, remote_custom_port):
        command = RemoteShellRequest(remote_custom_port, "exit 0").render()
        assert command.startswith("ssh -p 2222 -i /keys/id_rsa ")

    def test_injection_is_quoted(self, remote):
        command = RemoteShellRequest(remote, "echo $(whoami); rm -rf /").render()
        assert shlex.split(command)[-1] == "echo $(whoami); rm -rf /"

    def test_missing_host(self):
        with pytest.raises(MissingFieldError) as exc_info:
            RemoteShellRequest(RemoteAccess(host="", user="deploy"), "ls").render()
        assert exc_info.value.field == "ssh.host"


class TestRemoteCopyRequest:
    """Tests for RemoteCopyRequest."""

    def test_download(self, remote_custom_port):
        command = RemoteCopyRequest(
            remote_custom_port, "/tmp/dump.sql.gz", "/local/dump.sql.gz"
        ).render()
        assert command == (
            "scp -P 2222 -i /keys/id_rsa -o StrictHostKeyChecking=no "
            "deploy@example.com:/tmp/dump.sql.gz /local/dump.sql.gz"
        )

    def test_upload(self, remote):
        command = RemoteCopyRequest(
            remote, "/local/dump.sql.gz", "/tmp/dump.sql.gz", CopyDirection.UPLOAD
        ).render()
        assert shlex.split(command)[-2:] == [
            "/local/dump.sql.gz",
            "deploy@example.com:/tmp/dump.sql.gz",
        ]


class TestDatabaseExportRequest:
    """Tests for DatabaseExportRequest."""

    def test_no_password_flag_without_password(self, credentials):
        command = DatabaseExportRequest(credentials, "/tmp/out.sql.gz").render()
        assert "--password" not in command
        assert "-p" not in shlex.split(shlex.split(command)[-1])

    def test_compressed_export(self, credentials):
        command = DatabaseExportRequest(credentials, "/tmp/out.sql.gz").render()
        argv = shlex.split(command)
        assert argv[:4] == ["bash", "-o", "pipefail", "-c"]
        assert argv[4] == (
            "mysqldump --user=root --host=localhost --single-transaction "
            "--quick --lock-tables=false wp | gzip > /tmp/out.sql.gz"
        )

    def test_uncompressed_export(self, credentials):
        command = DatabaseExportRequest(credentials, "/tmp/out.sql", compress=False).render()
        assert command == (
            "mysqldump --user=root --host=localhost --single-transaction "
            "--quick --lock-tables=false wp > /tmp/out.sql"
        )

    def test_password_and_port(self):
        credentials = DatabaseCredentials(
            name="wp", user="root", host="db", password="s3cret pass", port=3307
        )
        command = DatabaseExportRequest(credentials, "/tmp/o.sql", compress=False).render()
        argv = shlex.split(command)
        assert "--password=s3cret pass" in argv
        assert "--port=3307" in argv

    def test_missing_database_name(self):
        credentials = DatabaseCredentials(name="", user="root", host="localhost")
        with pytest.raises(MissingFieldError) as exc_info:
            DatabaseExportRequest(credentials, "/tmp/o.sql").render()
        assert exc_info.value.field == "database.name"

    def test_missing_output_path(self, credentials):
        with pytest.raises(MissingFieldError):
            DatabaseExportRequest(credentials, "").render()


class TestDatabaseImportRequest:
    """Tests for DatabaseImportRequest."""

    def test_gzip_input(self, credentials):
        command = DatabaseImportRequest(credentials, "/tmp/in.sql.gz").render()
        assert shlex.split(command)[4] == (
            "gunzip < /tmp/in.sql.gz | mysql --user=root --host=localhost wp"
        )

    def test_plain_input(self, credentials):
        command = DatabaseImportRequest(credentials, "/tmp/in.sql").render()
        assert command == "mysql --user=root --host=localhost wp < /tmp/in.sql"

    def test_missing_user(self):
        credentials = DatabaseCredentials(name="wp", user="", host="localhost")
        with pytest.raises(MissingFieldError, match="database.user"):
            DatabaseImportRequest(credentials, "/tmp/in.sql").render()


class TestSearchReplaceRequest:
    """Tests for SearchReplaceRequest."""

    def test_command(self):
        command = SearchReplaceRequest(
            wp_cli=("wp",),
            application_path="/var/www",
            old_value="https://old.test",
            new_value="https://new.test",
        ).render()
        assert command == (
            "wp search-replace https://old.test https://new.test "
            "--path=/var/www --skip-columns=guid --quiet"
        )

    def test_wp_cli_with_interpreter(self):
        command = SearchReplaceRequest(
            wp_cli=("php", "/opt/wp-cli.phar"),
            application_path="/var/www",
            old_value="a",
            new_value="b",
        ).render()
        assert command.startswith("php /opt/wp-cli.phar search-replace ")

    def test_missing_wp_cli(self):
        with pytest.raises(MissingFieldError):
            SearchReplaceRequest((), "/var/www", "a", "b").render()


class TestFormatForDisplay:
    """Tests for format_for_display."""

    def test_unwraps_pipefail(self, credentials):
        command = DatabaseExportRequest(credentials, "/tmp/out.sql.gz").render()
        display = format_for_display(command)
        assert not display.startswith("bash")
        assert display.startswith("mysqldump ")

    def test_masks_password(self):
        credentials = DatabaseCredentials(
            name="wp", user="root", host="db", password="s3cret"
        )
        display = format_for_display(
            DatabaseExportRequest(credentials, "/tmp/out.sql.gz").render()
        )
        assert "s3cret" not in display
        assert "--password=****" in display

    def test_masks_quoted_password(self):
        credentials = DatabaseCredentials(
            name="wp", user="root", host="db", password="two words"
        )
        display = format_for_display(
            DatabaseImportRequest(credentials, "/tmp/in.sql").render()
        )
        assert "two words" not in display

    def test_plain_command_unchanged(self):
        assert format_for_display("rsync -a /a/ /b") == "rsync -a /a/ /b"
