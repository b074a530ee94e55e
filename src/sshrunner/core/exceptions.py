"""Exception hierarchy with error codes for SSH Runner.

Every failure kind an operation can end in has its own exception type and
error code, so tool results and audit records can report it without parsing
messages.
"""

from dataclasses import dataclass, field
from typing import Any

# Standard error codes reported in tool results
E_NOT_FOUND = "E_NOT_FOUND"
E_VALIDATION = "E_VALIDATION"
E_PERMISSIONS = "E_PERMISSIONS"
E_TIMEOUT = "E_TIMEOUT"
E_UNSAFE = "E_UNSAFE"
E_RATE_LIMIT = "E_RATE_LIMIT"
E_CONNECTION = "E_CONNECTION"
E_EXEC = "E_EXEC"
E_TOOL_UNKNOWN = "E_TOOL_UNKNOWN"


@dataclass
class SSHRunnerException(Exception):  # noqa: N818
    """Base exception for all SSH Runner errors.

    Provides structured error handling with error codes and metadata for
    consistent error reporting across the system.
    """

    message: str
    error_code: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Return human-readable error message."""
        return self.message

    def __post_init__(self) -> None:
        """Initialize the exception with the message."""
        super().__init__(self.message)


@dataclass
class InvalidCommandError(SSHRunnerException):
    """Command rejected by the command policy (empty, too long, forbidden pattern)."""

    command: str = ""
    pattern: str | None = None

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_VALIDATION if self.pattern is None else E_UNSAFE
        if self.pattern:
            self.metadata["pattern"] = self.pattern
        super().__post_init__()


@dataclass
class RateLimitExceededError(SSHRunnerException):
    """Admission denied by the request-rate limiter.

    Carries the configured budget so callers can tell how long to back off.
    """

    max_requests: int = 0
    window_ms: int = 0

    def __post_init__(self) -> None:
        """Initialize with rate budget metadata."""
        if not self.error_code:
            self.error_code = E_RATE_LIMIT
        self.metadata["max_requests"] = self.max_requests
        self.metadata["window_ms"] = self.window_ms
        super().__post_init__()


@dataclass
class SSHConnectionError(SSHRunnerException):
    """Session creation failed, or the transport failed mid-operation."""

    host: str = ""

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_CONNECTION
        if self.host:
            self.metadata["host"] = self.host
        super().__post_init__()


@dataclass
class RemoteExecutionError(SSHRunnerException):
    """Remote command finished with a non-zero exit status."""

    exit_code: int | None = None
    output: str = ""

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_EXEC
        if self.exit_code is not None:
            self.metadata["exit_code"] = self.exit_code
        super().__post_init__()


@dataclass
class CommandTimeoutError(SSHRunnerException):
    """Command exceeded its deadline.

    Distinct from RemoteExecutionError: the command never reported an exit
    status, and a best-effort remote abort was started for it.
    """

    timeout_ms: int = 0

    def __post_init__(self) -> None:
        if not self.error_code:
            self.error_code = E_TIMEOUT
        self.metadata["timeout_ms"] = self.timeout_ms
        super().__post_init__()


@dataclass
class PathValidationError(SSHRunnerException):
    """Pre-flight path check failed.

    Carries a suggestion string the caller can act on, e.g. a directory
    creation hint.
    """

    path: str = ""
    suggestion: str = ""

    def __post_init__(self) -> None:
        """Initialize with path metadata."""
        if not self.error_code:
            self.error_code = E_NOT_FOUND
        if self.path:
            self.metadata["path"] = self.path
        if self.suggestion:
            self.metadata["suggestion"] = self.suggestion
        super().__post_init__()


@dataclass
class LocalPathError(PathValidationError):
    """Local source or destination path is unusable."""


@dataclass
class RemotePathError(PathValidationError):
    """Remote path is missing, of the wrong type, or not accessible."""


@dataclass
class ConfigurationError(SSHRunnerException):
    """Error in system configuration.

    Raised for invalid config values, missing required settings,
    or configuration file problems.
    """

    key: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Initialize with configuration-specific metadata."""
        if not self.error_code:
            self.error_code = E_VALIDATION
        if self.key:
            self.metadata["config_key"] = self.key
        if self.reason:
            self.metadata["reason"] = self.reason
        super().__post_init__()


def format_error_for_user(exception: SSHRunnerException) -> str:
    """Format exception for user-friendly display.

    Args:
        exception: The SSH Runner exception to format

    Returns:
        Human-readable error message without internal details
    """
    if isinstance(exception, PathValidationError):
        if exception.suggestion:
            return f"{exception.message}\nSuggestion: {exception.suggestion}"
        return exception.message

    if isinstance(exception, ConfigurationError):
        if exception.key:
            return f"Configuration error '{exception.key}': {exception.message}"
        return f"Configuration error: {exception.message}"

    return str(exception.message)


def format_error_for_log(exception: SSHRunnerException) -> dict[str, Any]:
    """Format exception for structured logging.

    Args:
        exception: The SSH Runner exception to format

    Returns:
        Dictionary with structured error information for logs
    """
    log_data: dict[str, Any] = {
        "error_type": type(exception).__name__,
        "message": exception.message,
        "error_code": exception.error_code,
    }

    if exception.metadata:
        log_data["metadata"] = exception.metadata

    if isinstance(exception, RemoteExecutionError) and exception.exit_code is not None:
        log_data["exit_code"] = exception.exit_code
    elif isinstance(exception, PathValidationError) and exception.path:
        log_data["path"] = exception.path
    elif isinstance(exception, SSHConnectionError) and exception.host:
        log_data["host"] = exception.host

    return log_data
