"""Data models for configured environments."""

from dataclasses import dataclass, field
from typing import Any, Optional

from .exceptions import ConfigError, MissingFieldError

DEFAULT_SSH_PORT = 22


def _require_text(data: dict[str, Any], key: str, field_name: str, context: str) -> str:
    value = data.get(key)
    if value is None or str(value).strip() == "":
        raise MissingFieldError(field_name, context)
    return str(value)


def _optional_text(data: dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or str(value) == "":
        return None
    return str(value)


def _parse_port(value: Any, field_name: str, context: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{context}: '{field_name}' must be a number, got {value!r}")
    if not 0 < port < 65536:
        raise ConfigError(f"{context}: '{field_name}' is out of range: {port}")
    return port


@dataclass(frozen=True)
class RemoteAccess:
    """SSH access details for a remote environment."""

    host: str
    """Hostname or IP address"""

    user: str
    """Login user"""

    port: int = DEFAULT_SSH_PORT
    """SSH port"""

    key: Optional[str] = None
    """Path to a private key file (may start with ~)"""

    @property
    def connection_string(self) -> str:
        """Return the user@host form used by ssh, scp and rsync."""
        return f"{self.user}@{self.host}"

    @classmethod
    def from_dict(cls, data: dict[str, Any], context: str = "ssh") -> "RemoteAccess":
        """Create RemoteAccess from the ``ssh`` section of an environment.

        Args:
            data: Mapping with host, user and optional port and key
            context: Label used in error messages

        Returns:
            RemoteAccess instance

        Raises:
            MissingFieldError: If host or user is missing
            ConfigError: If the port is not a valid number
        """
        if not isinstance(data, dict):
            raise ConfigError(f"{context}: 'ssh' must be a mapping")
        host = _require_text(data, "host", "ssh.host", context)
        user = _require_text(data, "user", "ssh.user", context)
        port = DEFAULT_SSH_PORT
        if data.get("port") not in (None, ""):
            port = _parse_port(data["port"], "ssh.port", context)
        return cls(host=host, user=user, port=port, key=_optional_text(data, "key"))


@dataclass(frozen=True)
class DatabaseCredentials:
    """Database connection settings for one environment."""

    name: str
    """Database name"""

    user: str
    """Database user"""

    host: str = "localhost"
    """Database host"""

    password: Optional[str] = None
    """Password, None when the account has no password"""

    port: Optional[int] = None
    """Port, None for the client default"""

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], context: str = "database"
    ) -> "DatabaseCredentials":
        """Create DatabaseCredentials from the ``database`` section.

        Raises:
            MissingFieldError: If name, user or host is missing
        """
        if not isinstance(data, dict):
            raise ConfigError(f"{context}: 'database' must be a mapping")
        port = None
        if data.get("port") not in (None, ""):
            port = _parse_port(data["port"], "database.port", context)
        return cls(
            name=_require_text(data, "name", "database.name", context),
            user=_require_text(data, "user", "database.user", context),
            host=_require_text(data, "host", "database.host", context),
            password=_optional_text(data, "password"),
            port=port,
        )


@dataclass(frozen=True)
class Environment:
    """A named deployment target (local, staging, production, ...)."""

    name: str
    """Environment name as used on the command line"""

    root_path: str
    """Application root directory (``wordpress_path``)"""

    url: str
    """Public site URL, used for database search-replace"""

    database: DatabaseCredentials
    """Database connection settings"""

    remote: Optional[RemoteAccess] = None
    """SSH access, None for a local environment"""

    core_path: Optional[str] = None
    """Application core directory if it differs from the root"""

    exclude: tuple[str, ...] = field(default_factory=tuple)
    """Environment-specific exclude patterns"""

    backup_path: Optional[str] = None
    """Directory for database backups"""

    wp_cli: Optional[str] = None
    """wp-cli command to use on this environment (remote environments only)"""

    git_repo_path: Optional[str] = None
    """Bare repository used by git-setup (``git.repo_path``)"""

    @property
    def is_remote(self) -> bool:
        """Return True if the environment is reached over SSH."""
        return self.remote is not None

    @property
    def application_path(self) -> str:
        """Return the path passed to wp-cli as ``--path``."""
        return self.core_path or self.root_path

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "Environment":
        """Create a validated Environment from its movefile section.

        Args:
            name: Environment name
            data: Mapping from the movefile

        Returns:
            Environment instance

        Raises:
            MissingFieldError: If a required field is missing
            ConfigError: If a section has the wrong shape
        """
        context = f"Environment '{name}'"
        if not isinstance(data, dict):
            raise ConfigError(f"{context} must be a mapping")

        root_path = _require_text(data, "wordpress_path", "wordpress_path", context)
        url = _require_text(data, "url", "url", context)
        if "database" not in data:
            raise MissingFieldError("database", context)
        database = DatabaseCredentials.from_dict(data["database"] or {}, context)

        remote = None
        if data.get("ssh"):
            remote = RemoteAccess.from_dict(data["ssh"], context)

        exclude = data.get("exclude") or []
        if not isinstance(exclude, list):
            raise ConfigError(f"{context}: 'exclude' must be a list")

        git = data.get("git") or {}
        if not isinstance(git, dict):
            raise ConfigError(f"{context}: 'git' must be a mapping")

        return cls(
            name=name,
            root_path=root_path,
            url=url,
            database=database,
            remote=remote,
            core_path=_optional_text(data, "core_path"),
            exclude=tuple(str(pattern) for pattern in exclude),
            backup_path=_optional_text(data, "backup_path"),
            wp_cli=_optional_text(data, "wp_cli"),
            git_repo_path=_optional_text(git, "repo_path"),
        )
