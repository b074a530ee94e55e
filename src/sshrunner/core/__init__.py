"""Core modules for SSH Runner.

This package contains the building blocks shared by the execution engine:
exceptions, configuration, logging, the transport abstraction, the admission
controller, the session pool and the audit sinks.
"""

from .audit import AuditSink, OperationKind, OutcomeRecord, OutcomeStatus
from .exceptions import (
    # Error codes
    E_CONNECTION,
    E_EXEC,
    E_NOT_FOUND,
    E_PERMISSIONS,
    E_RATE_LIMIT,
    E_TIMEOUT,
    E_TOOL_UNKNOWN,
    E_UNSAFE,
    E_VALIDATION,
    ConfigurationError,
    SSHRunnerException,
    format_error_for_log,
    format_error_for_user,
)
from .pool import SessionPool
from .rate_limiter import RateLimiter
from .tool_protocol import ToolDefinition
from .transport import Session, Target, Transport

__all__ = [
    # Error codes
    "E_CONNECTION",
    "E_EXEC",
    "E_NOT_FOUND",
    "E_PERMISSIONS",
    "E_RATE_LIMIT",
    "E_TIMEOUT",
    "E_TOOL_UNKNOWN",
    "E_UNSAFE",
    "E_VALIDATION",
    # Exception classes
    "SSHRunnerException",
    "ConfigurationError",
    # Admission, pooling, audit
    "AuditSink",
    "OperationKind",
    "OutcomeRecord",
    "OutcomeStatus",
    "RateLimiter",
    "SessionPool",
    # Transport
    "Session",
    "Target",
    "Transport",
    "ToolDefinition",
    # Error formatting utilities
    "format_error_for_log",
    "format_error_for_user",
]
