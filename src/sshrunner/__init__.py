"""
SSH Runner

Remote command execution and SFTP file transfer for automated callers, with
request rate limiting, session pooling, command deadlines and audit records.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from sshrunner.core.config import SSHConfig, load_config
from sshrunner.core.engine import ExecutionEngine
from sshrunner.core.exceptions import (
    CommandTimeoutError,
    ConfigurationError,
    InvalidCommandError,
    LocalPathError,
    RateLimitExceededError,
    RemoteExecutionError,
    RemotePathError,
    SSHConnectionError,
    SSHRunnerException,
)
from sshrunner.core.factory import create_engine, create_tool_registry

__all__ = [
    # Version
    "__version__",
    # Core
    "ExecutionEngine",
    "SSHConfig",
    "create_engine",
    "create_tool_registry",
    "load_config",
    # Exceptions
    "SSHRunnerException",
    "CommandTimeoutError",
    "ConfigurationError",
    "InvalidCommandError",
    "LocalPathError",
    "RateLimitExceededError",
    "RemoteExecutionError",
    "RemotePathError",
    "SSHConnectionError",
]
