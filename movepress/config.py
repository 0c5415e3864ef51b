"""Configuration loading for movepress.

Environments are defined in ``movefile.yml``. String values may reference
environment variables as ``${NAME}``; variables are read from the process
environment and from a ``.env`` file next to the movefile.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from .exceptions import (
    ConfigError,
    EnvironmentNotFoundError,
    UnresolvedVariableError,
)
from .models import Environment

logger = logging.getLogger(__name__)

MOVEFILE_NAME = "movefile.yml"
ENV_FILE_NAME = ".env"
GLOBAL_SECTION = "global"

VARIABLE_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")


def interpolate(value: Any) -> Any:
    """Replace ``${NAME}`` references in strings, lists and mappings.

    Args:
        value: Parsed YAML value

    Returns:
        The value with every reference replaced by the variable's value

    Raises:
        UnresolvedVariableError: If a referenced variable is not set
    """
    if isinstance(value, dict):
        return {key: interpolate(item) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate(item) for item in value]
    if isinstance(value, str):

        def replace(match: "re.Match[str]") -> str:
            name = match.group(1)
            resolved = os.environ.get(name)
            if resolved is None:
                raise UnresolvedVariableError(name)
            return resolved

        return VARIABLE_PATTERN.sub(replace, value)
    return value


class ConfigLoader:
    """Loads and validates the movefile for a project directory."""

    def __init__(
        self,
        working_dir: Optional[Path] = None,
        config_path: Optional[Path] = None,
    ):
        """Initialize the loader.

        Args:
            working_dir: Directory holding movefile.yml (defaults to cwd)
            config_path: Explicit movefile path, overrides working_dir
        """
        self.working_dir = Path(working_dir) if working_dir else Path.cwd()
        self.config_path = (
            Path(config_path) if config_path else self.working_dir / MOVEFILE_NAME
        )
        self._data: Optional[dict[str, Any]] = None

    @property
    def env_path(self) -> Path:
        """Path of the .env file read alongside the movefile."""
        return self.config_path.parent / ENV_FILE_NAME

    def load(self) -> dict[str, Any]:
        """Read and parse the movefile (once).

        Returns:
            Raw configuration mapping, variables not yet interpolated

        Raises:
            ConfigError: If the file is missing or not valid YAML
        """
        if self._data is not None:
            return self._data

        if not self.config_path.is_file():
            raise ConfigError(
                f"Configuration file not found: {self.config_path}\n"
                f"Run 'movepress init' to create one."
            )

        if self.env_path.is_file():
            logger.debug(f"Loading environment variables from {self.env_path}")
            load_dotenv(self.env_path, override=False)

        try:
            with open(self.config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                raise ConfigError(
                    f"Error parsing {self.config_path.name} at line "
                    f"{mark.line + 1}, column {mark.column + 1}: {e}"
                ) from e
            raise ConfigError(f"Error parsing {self.config_path.name}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read {self.config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(
                f"{self.config_path.name} must contain a mapping of environments, "
                f"got {type(data).__name__}"
            )

        logger.debug(f"Loaded configuration from {self.config_path}")
        self._data = data
        return data

    def get_environments(self) -> list[str]:
        """Return the names of all configured environments."""
        return [str(name) for name in self.load() if name != GLOBAL_SECTION]

    def get_raw_environment(self, name: str) -> dict[str, Any]:
        """Return an environment section with variables interpolated.

        Raises:
            EnvironmentNotFoundError: If the environment is not defined
            UnresolvedVariableError: If a referenced variable is not set
        """
        data = self.load()
        if name == GLOBAL_SECTION or name not in data:
            raise EnvironmentNotFoundError(name, self.get_environments())
        section = data[name]
        if not isinstance(section, dict):
            raise ConfigError(f"Environment '{name}' must be a mapping")
        return interpolate(section)

    def get_environment(self, name: str) -> Environment:
        """Return a validated environment.

        Args:
            name: Environment name

        Returns:
            Environment instance

        Raises:
            ConfigError: If the environment is missing or invalid
        """
        return Environment.from_dict(name, self.get_raw_environment(name))

    def get_global_excludes(self) -> list[str]:
        """Return the exclude patterns shared by all environments."""
        section = self.load().get(GLOBAL_SECTION) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"'{GLOBAL_SECTION}' must be a mapping")
        excludes = interpolate(section.get("exclude") or [])
        if not isinstance(excludes, list):
            raise ConfigError(f"'{GLOBAL_SECTION}.exclude' must be a list")
        return [str(pattern) for pattern in excludes]

    def get_excludes(self, name: str) -> list[str]:
        """Return global and environment excludes, de-duplicated in order."""
        excludes = self.get_global_excludes()
        excludes.extend(self.get_environment(name).exclude)
        return list(dict.fromkeys(excludes))


MOVEFILE_TEMPLATE = """\
# Movepress configuration
# Each top-level key except "global" is an environment.

global:
  # Patterns excluded from every file sync
  exclude:
    - ".git/"
    - ".gitignore"
    - "node_modules/"
    - ".DS_Store"
    - "*.log"
    - "*.sql"
    - "*.sql.gz"
    - ".env*"
    - "wp-config-local.php"

local:
  wordpress_path: "/path/to/local/wordpress"
  url: "http://local.test"
  database:
    name: "${DB_NAME}"
    user: "${DB_USER}"
    password: "${DB_PASSWORD}"
    host: "${DB_HOST}"
  exclude:
    - ".env.local"

staging:
  wordpress_path: "/var/www/staging.example.com/public"
  url: "https://staging.example.com"
  database:
    name: "${STAGING_DB_NAME}"
    user: "${STAGING_DB_USER}"
    password: "${STAGING_DB_PASSWORD}"
    host: "localhost"
  ssh:
    host: "${STAGING_HOST}"
    user: "${STAGING_USER}"
    port: 22

production:
  wordpress_path: "/var/www/example.com/public"
  url: "https://example.com"
  database:
    name: "${PROD_DB_NAME}"
    user: "${PROD_DB_USER}"
    password: "${PROD_DB_PASSWORD}"
    host: "localhost"
  ssh:
    host: "${PROD_HOST}"
    user: "${PROD_USER}"
    port: 22
    key: "~/.ssh/id_rsa"
  backup_path: "/var/backups/wordpress"
  # Bare repository created by 'movepress git-setup production'
  git:
    repo_path: "/var/repos/example.com.git"
"""

ENV_TEMPLATE = """\
# Local database
DB_NAME=local_db
DB_USER=root
DB_PASSWORD=root
DB_HOST=localhost

# Staging
STAGING_HOST=staging.example.com
STAGING_USER=deployuser
STAGING_DB_NAME=staging_db
STAGING_DB_USER=staging_user
STAGING_DB_PASSWORD=staging_password

# Production
PROD_HOST=example.com
PROD_USER=deployuser
PROD_DB_NAME=prod_db
PROD_DB_USER=prod_user
PROD_DB_PASSWORD=prod_password
"""
