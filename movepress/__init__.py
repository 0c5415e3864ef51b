"""Movepress - push and pull WordPress databases and files between environments."""

from .exceptions import (
    CommandFailedError,
    ConfigError,
    EnvironmentNotFoundError,
    MissingFieldError,
    MovepressError,
    PrerequisiteError,
    StagingError,
    UnresolvedVariableError,
)
from .utils import format_size

__version__ = "0.4.0"

__all__ = [
    "CommandFailedError",
    "ConfigError",
    "EnvironmentNotFoundError",
    "MissingFieldError",
    "MovepressError",
    "PrerequisiteError",
    "StagingError",
    "UnresolvedVariableError",
    "format_size",
    "__version__",
]
