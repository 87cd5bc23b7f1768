"""Exception hierarchy and process exit codes for oc-cli."""

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes shared by all commands."""

    OK = 0
    ERROR = 1  # session-reported error, not found, bad input
    TIMEOUT = 2
    CONNECTION = 3


class OcCliError(Exception):
    """Base class for oc-cli errors."""


class ConfigError(OcCliError):
    """Raised when no usable profile can be resolved."""


class ApiError(OcCliError):
    """Raised when the server rejects a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ApiConnectionError(ApiError):
    """Raised when the server cannot be reached at all."""


class NotFoundError(ApiError):
    """Raised when the requested resource does not exist (HTTP 404)."""
