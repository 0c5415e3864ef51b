"""CLI interface for movepress."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import click

from . import __version__
from .config import (
    ENV_FILE_NAME,
    ENV_TEMPLATE,
    MOVEFILE_NAME,
    MOVEFILE_TEMPLATE,
    ConfigLoader,
)
from .exceptions import ConfigError, MovepressError
from .git import GitService, default_repo_path
from .output import OutputFormatter
from .runner import CommandRunner, is_tool_available
from .sync.database import DatabaseService, DatabaseSyncController
from .sync.files import FileSyncController
from .sync.selection import build_selection_rules
from .validation import (
    PrerequisiteValidator,
    destructive_warnings,
    validate_configuration,
)
from .wpcli import WpCli

logger = logging.getLogger(__name__)

STATUS_TOOLS = ("rsync", "ssh", "scp", "mysqldump", "mysql", "gzip", "git")

# Seconds allowed for the ssh command's connection test
SSH_TEST_TIMEOUT = 10.0


@dataclass(frozen=True)
class SyncFlags:
    """What a push or pull should do."""

    files: bool
    """Sync the file tree"""

    db: bool
    """Sync the database"""

    delete: bool = False
    """Delete destination files missing from the source"""

    dry_run: bool = False
    """Simulate only"""

    no_backup: bool = False
    """Skip the destination database backup"""

    tracked_only: bool = False
    """Push only git-tracked files"""

    @classmethod
    def from_options(
        cls,
        sync_files: bool,
        sync_db: bool,
        delete: bool = False,
        dry_run: bool = False,
        no_backup: bool = False,
        tracked_only: bool = False,
    ) -> "SyncFlags":
        """Build flags; with neither --files nor --db both are synced."""
        if not sync_files and not sync_db:
            sync_files = sync_db = True
        return cls(
            files=sync_files,
            db=sync_db,
            delete=delete,
            dry_run=dry_run,
            no_backup=no_backup,
            tracked_only=tracked_only,
        )

    def describe(self) -> str:
        """Return what is synced, e.g. "files, database"."""
        parts = []
        if self.files:
            parts.append("files (tracked only)" if self.tracked_only else "files")
        if self.db:
            parts.append("database")
        return ", ".join(parts)


def _loader(ctx: Any) -> ConfigLoader:
    return ConfigLoader(config_path=ctx.obj["config_path"])


def _confirm_file_sync() -> bool:
    return click.confirm("Proceed with file sync?", default=True)


def sync_options(func: Callable) -> Callable:
    """Options shared by push and pull."""
    options = [
        click.argument("source"),
        click.argument("destination"),
        click.option("--db", "sync_db", is_flag=True, help="Sync the database"),
        click.option("--files", "sync_files", is_flag=True, help="Sync files"),
        click.option(
            "--delete",
            is_flag=True,
            help="Delete destination files that do not exist in the source",
        ),
        click.option(
            "--dry-run", is_flag=True, help="Show what would be done without doing it"
        ),
        click.option(
            "--no-backup",
            is_flag=True,
            help="Skip the destination database backup",
        ),
        click.option(
            "--tracked-only",
            is_flag=True,
            help="Only push files tracked by git (local source)",
        ),
        click.option(
            "--path",
            "-p",
            "paths",
            multiple=True,
            help="Limit the file sync to this path (repeatable, dirs end with /)",
        ),
        click.option(
            "--yes",
            "-y",
            "--no-interaction",
            "assume_yes",
            is_flag=True,
            help="Do not ask for confirmation",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="MOVEPRESS_CONFIG",
    help=f"Path to {MOVEFILE_NAME} (default: ./{MOVEFILE_NAME})",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--wp-cli",
    envvar="MOVEPRESS_WP_CLI",
    help="wp-cli command to use locally (default: wp)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__, prog_name="movepress")
@click.pass_context
def main(
    ctx: Any,
    config_path: Optional[Path],
    quiet: bool,
    json: bool,
    wp_cli: Optional[str],
    verbose: bool,
) -> None:
    """Movepress - push and pull WordPress databases and files over SSH."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    ctx.obj["wp_cli"] = WpCli.discover(wp_cli)
    ctx.obj.setdefault("runner", CommandRunner())

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("movepress").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


def _run_sync(
    ctx: Any,
    direction: str,
    source: str,
    destination: str,
    flags: SyncFlags,
    paths: tuple[str, ...],
    assume_yes: bool,
) -> None:
    out: OutputFormatter = ctx.obj["out"]
    runner: CommandRunner = ctx.obj["runner"]

    try:
        if source == destination:
            raise MovepressError("Source and destination must be different environments")

        loader = _loader(ctx)
        source_env = loader.get_environment(source)
        destination_env = loader.get_environment(destination)
        excludes = loader.get_excludes(source)
        selection = build_selection_rules(paths)

        out.title(f"Movepress: {direction} {source} → {destination}")
        out.print_summary(
            "Configuration",
            [
                ("Source", f"{source} ({source_env.root_path})"),
                ("Destination", f"{destination} ({destination_env.root_path})"),
                ("Sync", flags.describe()),
                ("Paths", ", ".join(selection.includes) if selection.restrict else "all"),
                ("Mode", "dry run" if flags.dry_run else "live"),
            ],
        )
        if flags.dry_run:
            out.warning("Dry run: no changes will be made")

        PrerequisiteValidator(runner, out).validate(
            source_env, destination_env, flags.files, flags.db, flags.dry_run
        )

        warnings = destructive_warnings(
            destination, flags.db, flags.no_backup, flags.delete
        )
        if warnings and not flags.dry_run:
            for warning in warnings:
                out.warning(warning)
            if not assume_yes and not click.confirm(
                "Do you want to continue?", default=False
            ):
                out.warning("Operation cancelled")
                return

        if flags.files:
            out.section("Syncing files")
            confirm: Optional[Callable[[], bool]] = None
            if not assume_yes:
                confirm = _confirm_file_sync

            result = FileSyncController(runner, out, dry_run=flags.dry_run).sync(
                source_env,
                destination_env,
                excludes,
                delete=flags.delete,
                selection=selection,
                tracked_only=flags.tracked_only,
                confirm=confirm,
            )
            if result.cancelled:
                return

        if flags.db:
            out.section("Syncing database")
            service = DatabaseService(runner, ctx.obj["wp_cli"])
            DatabaseSyncController(service, out, dry_run=flags.dry_run).sync(
                source_env, destination_env, backup=not flags.no_backup
            )

        if flags.dry_run:
            out.success("Dry run complete, nothing was changed")
        else:
            out.success(f"{direction.capitalize()} from {source} to {destination} completed")

    except MovepressError as e:
        out.error(str(e))
        ctx.exit(1)
    except KeyboardInterrupt:
        out.warning("\nOperation cancelled by user")
        ctx.exit(130)  # Standard exit code for SIGINT


@main.command()
@sync_options
@click.pass_context
def push(
    ctx: Any,
    source: str,
    destination: str,
    sync_db: bool,
    sync_files: bool,
    delete: bool,
    dry_run: bool,
    no_backup: bool,
    tracked_only: bool,
    paths: tuple[str, ...],
    assume_yes: bool,
) -> None:
    """Push files and/or database from SOURCE to DESTINATION.

    Examples:
        movepress push local production --files --dry-run
        movepress push local staging --db --no-backup -y
    """
    flags = SyncFlags.from_options(
        sync_files, sync_db, delete, dry_run, no_backup, tracked_only
    )
    _run_sync(ctx, "push", source, destination, flags, paths, assume_yes)


@main.command()
@sync_options
@click.pass_context
def pull(
    ctx: Any,
    source: str,
    destination: str,
    sync_db: bool,
    sync_files: bool,
    delete: bool,
    dry_run: bool,
    no_backup: bool,
    tracked_only: bool,
    paths: tuple[str, ...],
    assume_yes: bool,
) -> None:
    """Pull files and/or database from SOURCE into DESTINATION.

    Examples:
        movepress pull production local --db
        movepress pull staging local --files -p wp-content/uploads/
    """
    flags = SyncFlags.from_options(
        sync_files, sync_db, delete, dry_run, no_backup, tracked_only
    )
    _run_sync(ctx, "pull", source, destination, flags, paths, assume_yes)


@main.command()
@click.argument("environment", required=False)
@click.pass_context
def status(ctx: Any, environment: Optional[str]) -> None:
    """Show available tools and configured environments."""
    out: OutputFormatter = ctx.obj["out"]
    wp_cli: WpCli = ctx.obj["wp_cli"]

    tools = [
        {"tool": name, "status": "available" if is_tool_available(name) else "missing"}
        for name in STATUS_TOOLS
    ]
    tools.append(
        {
            "tool": f"wp-cli ({wp_cli.display})",
            "status": "available" if wp_cli.is_available() else "missing",
        }
    )

    try:
        loader = _loader(ctx)
        if environment:
            env = loader.get_environment(environment)
            details = [
                ("Name", env.name),
                ("Type", "remote" if env.is_remote else "local"),
                ("WordPress path", env.root_path),
                ("URL", env.url),
                ("Database", f"{env.database.name} on {env.database.host}"),
                ("Database user", env.database.user),
                ("Database password", "Set" if env.database.password else "Not set"),
                ("Excludes", ", ".join(loader.get_excludes(environment)) or "none"),
            ]
            if env.remote is not None:
                details.insert(2, ("SSH", f"{env.remote.connection_string}:{env.remote.port}"))
            if env.backup_path:
                details.append(("Backup path", env.backup_path))
            out.print_summary(f"Environment: {env.name}", details)
            return

        rows = []
        for name in loader.get_environments():
            try:
                env = loader.get_environment(name)
            except ConfigError as e:
                rows.append({"name": name, "type": "invalid", "url": str(e), "path": ""})
                continue
            rows.append(
                {
                    "name": name,
                    "type": f"remote ({env.remote.host})" if env.remote else "local",
                    "url": env.url,
                    "path": env.root_path,
                }
            )
    except MovepressError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json({"tools": tools, "environments": rows})
        return

    out.output_table(tools, ["tool", "status"], {"tool": "Tool", "status": "Status"})
    out.output_table(
        rows,
        ["name", "type", "url", "path"],
        {"name": "Environment", "type": "Type", "url": "URL", "path": "WordPress path"},
    )


@main.command()
@click.pass_context
def validate(ctx: Any) -> None:
    """Validate the movefile configuration."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        report = validate_configuration(_loader(ctx))
    except MovepressError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(
            {"valid": report.is_valid, "errors": report.errors, "warnings": report.warnings}
        )
    else:
        for name, errors in report.errors.items():
            if errors:
                out.section(f"Environment: {name}")
                for error in errors:
                    out.error(error)
            else:
                out.success(f"Environment '{name}' is valid")
        for warning in report.warnings:
            out.warning(warning)

    if not report.is_valid:
        ctx.exit(1)
    out.success("Configuration is valid")


@main.command()
@click.argument("environment")
@click.option(
    "--output",
    "-o",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for the backup file",
)
@click.pass_context
def backup(ctx: Any, environment: str, output_dir: Optional[Path]) -> None:
    """Back up the database of ENVIRONMENT."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        env = _loader(ctx).get_environment(environment)
        service = DatabaseService(ctx.obj["runner"], ctx.obj["wp_cli"])
        out.info(f"Backing up {env.name} database '{env.database.name}'...")
        path = service.backup(env, output_dir)
    except MovepressError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    except KeyboardInterrupt:
        out.warning("\nBackup cancelled by user")
        ctx.exit(130)
        return

    size = path.stat().st_size if path.exists() else None
    if out.json_output:
        out.output_json({"path": str(path), "size": size})
        return
    out.success(f"Backup saved to {path} ({out.format_size(size)})")


@main.command()
@click.option("--force", "-f", is_flag=True, help="Overwrite existing files")
@click.pass_context
def init(ctx: Any, force: bool) -> None:
    """Create movefile.yml and .env templates in the current directory."""
    out: OutputFormatter = ctx.obj["out"]
    config_path: Optional[Path] = ctx.obj["config_path"]
    target_dir = config_path.parent if config_path else Path.cwd()
    movefile = config_path or target_dir / MOVEFILE_NAME

    for path, template in (
        (movefile, MOVEFILE_TEMPLATE),
        (target_dir / ENV_FILE_NAME, ENV_TEMPLATE),
    ):
        if path.exists() and not force:
            if not click.confirm(f"{path.name} already exists. Overwrite?", default=False):
                out.info(f"Skipped {path.name}")
                continue
        try:
            path.write_text(template, encoding="utf-8")
        except OSError as e:
            out.error(f"Failed to write {path}: {e}")
            ctx.exit(1)
            return
        out.success(f"Created {path}")

    out.print("")
    out.info("Next steps:")
    out.listing(
        [
            f"Edit {movefile.name} with your environments",
            f"Fill in the credentials in {ENV_FILE_NAME}",
            f"Add {ENV_FILE_NAME} to .gitignore",
            "Run 'movepress validate'",
        ]
    )


@main.command()
@click.argument("environment")
@click.pass_context
def ssh(ctx: Any, environment: str) -> None:
    """Test the SSH connection to ENVIRONMENT."""
    out: OutputFormatter = ctx.obj["out"]
    runner: CommandRunner = ctx.obj["runner"]

    out.title(f"Testing SSH Connection: {environment}")
    try:
        env = _loader(ctx).get_environment(environment)
    except MovepressError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if env.remote is None:
        out.error(
            f"Environment '{environment}' is not configured for SSH (local environment)"
        )
        ctx.exit(1)
        return

    remote = env.remote
    out.output_table(
        [
            {"setting": "Host", "value": remote.host},
            {"setting": "User", "value": remote.user},
            {"setting": "Port", "value": remote.port},
            {"setting": "Key", "value": remote.key or "None (password auth)"},
        ],
        ["setting", "value"],
        {"setting": "Setting", "value": "Value"},
    )

    out.info("Testing connection...")
    try:
        connected = PrerequisiteValidator(runner, out).test_connection(
            remote, timeout=SSH_TEST_TIMEOUT
        )
    except MovepressError as e:
        logger.debug(f"SSH test to {remote.host} did not complete: {e}")
        connected = False

    if connected:
        out.success(f"Successfully connected to {environment}")
        return

    out.error(f"Failed to connect to {environment}")
    out.info("Possible issues:")
    out.listing(
        [
            "SSH host is unreachable",
            "SSH credentials are incorrect",
            "SSH key file is incorrect or not readable",
            "Firewall is blocking the connection",
            "SSH service is not running on the remote host",
        ]
    )
    ctx.exit(1)


@main.command("git-setup")
@click.argument("environment")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def git_setup(ctx: Any, environment: str, assume_yes: bool) -> None:
    """Set up push-to-deploy with a bare Git repository on ENVIRONMENT.

    The repository gets a post-receive hook that checks pushed branches out
    into the WordPress path. The local repository gains a remote named
    after the environment.
    """
    out: OutputFormatter = ctx.obj["out"]
    git = GitService(ctx.obj["runner"])

    out.title(f"Git Deployment Setup: {environment}")
    if not git.is_available():
        out.error("Git is not installed or not available in PATH")
        ctx.exit(1)
        return

    try:
        env = _loader(ctx).get_environment(environment)
    except MovepressError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if env.remote is None:
        out.error(
            f"Environment '{environment}' does not have SSH configuration. "
            "Git deployment is only for remote environments."
        )
        ctx.exit(1)
        return

    repo_path = env.git_repo_path or default_repo_path(env.root_path)
    out.print_summary(
        "Configuration",
        [
            ("Environment", environment),
            ("SSH Host", env.remote.host),
            ("SSH User", env.remote.user),
            ("WordPress Path", env.root_path),
            ("Git Repository", repo_path),
        ],
    )
    out.note(
        [
            f"A bare Git repository will be created at {repo_path}",
            "Its post-receive hook deploys pushed branches to the WordPress path",
        ]
    )

    if not assume_yes and not click.confirm("Proceed with Git setup?", default=True):
        out.info("Operation cancelled.")
        return

    local_repo = Path.cwd()
    if not git.is_git_repo(local_repo):
        out.error("Current directory is not a Git repository. Please run 'git init' first.")
        ctx.exit(1)
        return

    try:
        out.section("Setting up remote repository")
        git.setup_remote_repo(env.remote, repo_path, env.root_path)
        out.success("Remote Git repository configured successfully")

        out.section("Configuring local Git remote")
        url = git.build_remote_url(env.remote, repo_path)
        updated = git.add_remote(environment, url, local_repo)
        out.info(f"{'Updated' if updated else 'Added'} remote '{environment}': {url}")
        out.success(f"Git remote '{environment}' configured successfully")
    except MovepressError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    except KeyboardInterrupt:
        out.warning("\nGit setup cancelled by user")
        ctx.exit(130)
        return

    out.section("Next steps")
    out.listing(
        [
            f"Deploy code: git push {environment} master",
            f"Sync the database: movepress push local {environment} --db",
            "Sync untracked files such as uploads: "
            f"movepress push local {environment} --files -p wp-content/uploads/",
        ]
    )


if __name__ == "__main__":
    main()
