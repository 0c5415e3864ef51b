"""Git integration: tracked-file pushes and push-to-deploy setup."""

import logging
import posixpath
import shlex
from pathlib import Path
from typing import Union

from .commands import RemoteShellRequest
from .exceptions import PrerequisiteError
from .models import DEFAULT_SSH_PORT, RemoteAccess
from .runner import CommandRunner, is_tool_available

logger = logging.getLogger(__name__)

# Parent directory of bare repositories without a configured git.repo_path
DEFAULT_REPO_ROOT = "/var/repos"

POST_RECEIVE_HOOK = """\
#!/bin/bash
# movepress post-receive hook
# Checks out pushed branches into the WordPress directory

GIT_DIR=$(pwd)
TARGET_DIR={target}

echo "Deploying to $TARGET_DIR..."

mkdir -p "$TARGET_DIR"

while read oldrev newrev refname; do
    branch=$(echo "$refname" | sed 's|refs/heads/||')

    if [ "$newrev" = "0000000000000000000000000000000000000000" ]; then
        echo "Branch $branch deleted, skipping deployment."
        continue
    fi

    echo "Deploying branch: $branch"
    git --work-tree="$TARGET_DIR" --git-dir="$GIT_DIR" checkout -f "$branch"
    echo "Deployment complete!"
done
"""


def default_repo_path(wordpress_path: str) -> str:
    """Return the bare repository path used when none is configured.

    Examples:
        >>> default_repo_path("/var/www/example.com/public/")
        '/var/repos/public.git'
    """
    name = posixpath.basename(wordpress_path.rstrip("/")) or "wordpress"
    return f"{DEFAULT_REPO_ROOT}/{name}.git"


def post_receive_hook(wordpress_path: str) -> str:
    """Return the post-receive hook that deploys into ``wordpress_path``."""
    return POST_RECEIVE_HOOK.format(target=shlex.quote(wordpress_path))


class GitService:
    """Runs git locally and, for push-to-deploy, on remote hosts."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    @staticmethod
    def is_available() -> bool:
        """Check whether git is installed."""
        return is_tool_available("git")

    def is_git_repo(self, path: Union[str, Path]) -> bool:
        """Check whether a directory is inside a git working tree."""
        command = f"git -C {shlex.quote(str(path))} rev-parse --is-inside-work-tree"
        result = self.runner.run(command)
        return result.succeeded and result.stdout.strip() == "true"

    def list_tracked_files(self, path: Union[str, Path]) -> list[str]:
        """Return tracked files relative to ``path``.

        Args:
            path: Root of the working tree

        Returns:
            Relative paths in git's order

        Raises:
            PrerequisiteError: If git is missing or path is not a repository
            CommandFailedError: If git ls-files fails
        """
        if not self.is_available():
            raise PrerequisiteError("git is not installed")
        if not self.is_git_repo(path):
            raise PrerequisiteError(f"Not a git repository: {path}")

        result = self.runner.run_checked(
            f"git -C {shlex.quote(str(path))} ls-files -z",
            "Could not list tracked files",
        )
        files = [name for name in result.stdout.split("\0") if name]
        logger.debug(f"git reports {len(files)} tracked files in {path}")
        return files

    def setup_remote_repo(
        self, remote: RemoteAccess, repo_path: str, wordpress_path: str
    ) -> None:
        """Create a bare repository with a deploying post-receive hook.

        Re-running is safe: ``git init --bare`` keeps an existing repository
        and the hook is overwritten.

        Args:
            remote: SSH access to the server
            repo_path: Bare repository directory on the server
            wordpress_path: Directory the hook checks pushed branches out to

        Raises:
            CommandFailedError: If any remote step fails
        """
        repo = shlex.quote(repo_path)
        hook = shlex.quote(posixpath.join(repo_path.rstrip("/"), "hooks", "post-receive"))

        logger.info(f"Creating bare repository {repo_path} on {remote.host}")
        self.runner.run_checked(
            RemoteShellRequest(remote, f"mkdir -p {repo}").render(),
            "Could not create the remote repository directory",
        )
        self.runner.run_checked(
            RemoteShellRequest(remote, f"cd {repo} && git init --bare").render(),
            "Could not initialize the bare Git repository",
        )
        self.runner.run_checked(
            RemoteShellRequest(remote, f"cat > {hook} && chmod +x {hook}").render(),
            "Could not create the post-receive hook",
            input_text=post_receive_hook(wordpress_path),
        )

    @staticmethod
    def build_remote_url(remote: RemoteAccess, repo_path: str) -> str:
        """Return the URL git pushes to.

        scp-like syntax cannot carry a port, so a non-default SSH port
        uses the ``ssh://`` form.
        """
        if remote.port == DEFAULT_SSH_PORT:
            return f"{remote.connection_string}:{repo_path}"
        path = repo_path if repo_path.startswith("/") else f"/~/{repo_path}"
        return f"ssh://{remote.connection_string}:{remote.port}{path}"

    def add_remote(self, name: str, url: str, path: Union[str, Path]) -> bool:
        """Point the git remote ``name`` of a local repository at ``url``.

        Returns:
            True if an existing remote was updated, False if it was added

        Raises:
            CommandFailedError: If git cannot add or update the remote
        """
        repo = shlex.quote(str(path))
        quoted_name = shlex.quote(name)
        exists = self.runner.run(f"git -C {repo} remote get-url {quoted_name}").succeeded

        if exists:
            self.runner.run_checked(
                f"git -C {repo} remote set-url {quoted_name} {shlex.quote(url)}",
                f"Could not update Git remote '{name}'",
            )
        else:
            self.runner.run_checked(
                f"git -C {repo} remote add {quoted_name} {shlex.quote(url)}",
                f"Could not add Git remote '{name}'",
            )
        logger.debug(f"Git remote {name} -> {url}")
        return exists
