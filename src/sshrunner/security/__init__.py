"""Security components for SSH Runner.

Provides command policy checks and local/remote path validation.
"""

from sshrunner.security.command_policy import (
    CommandInfo,
    CommandPolicy,
    build_abort_command,
    escape_for_single_quotes,
)
from sshrunner.security.paths import (
    PathValidation,
    expand_remote_home,
    validate_download_target,
    validate_upload_source,
)

__all__ = [
    "CommandInfo",
    "CommandPolicy",
    "PathValidation",
    "build_abort_command",
    "escape_for_single_quotes",
    "expand_remote_home",
    "validate_download_target",
    "validate_upload_source",
]
