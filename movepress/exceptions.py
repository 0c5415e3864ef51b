"""Custom exceptions for movepress."""

from typing import Optional


class MovepressError(Exception):
    """Base exception for movepress errors."""

    pass


class ConfigError(MovepressError):
    """Raised when the movefile is missing, unreadable or invalid."""

    pass


class MissingFieldError(ConfigError):
    """Raised when a required configuration or command field is empty."""

    def __init__(self, field: str, context: Optional[str] = None):
        self.field = field
        self.context = context
        if context:
            message = f"{context}: missing required field '{field}'"
        else:
            message = f"Missing required field: {field}"
        super().__init__(message)


class UnresolvedVariableError(ConfigError):
    """Raised when a ${VAR} reference has no value in the environment."""

    def __init__(self, variable: str):
        self.variable = variable
        super().__init__(
            f"Environment variable '{variable}' is not set. Check your .env file."
        )


class EnvironmentNotFoundError(ConfigError):
    """Raised when an environment name is not defined in the movefile."""

    def __init__(self, name: str, available: Optional[list[str]] = None):
        self.name = name
        message = f"Environment '{name}' not found in configuration"
        if available:
            message += f" (available: {', '.join(available)})"
        super().__init__(message)


class StagingError(MovepressError):
    """Raised when the local staging directory cannot be populated."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class PrerequisiteError(MovepressError):
    """Raised when a required tool or connection is not available."""

    pass


class CommandFailedError(MovepressError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(
        self,
        description: str,
        command: str = "",
        exit_code: Optional[int] = None,
        stderr: str = "",
    ):
        self.description = description
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        message = description
        if exit_code is not None:
            message += f" (exit code {exit_code})"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message)
