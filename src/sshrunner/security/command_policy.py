"""Command policy for remote execution.

Rejects empty and oversized commands and, in strict mode, commands that
chain or substitute other commands.
"""

import re
from dataclasses import dataclass, field
from typing import ClassVar

from sshrunner.core.config import SSHConfig
from sshrunner.core.exceptions import InvalidCommandError


@dataclass
class CommandInfo:
    """Policy verdict for one command."""

    command: str
    is_allowed: bool
    warnings: list[str] = field(default_factory=list)
    matched_pattern: str | None = None


class CommandPolicy:
    """Validates commands before they are sent to the remote host."""

    # Command chaining and substitution, blocked in strict mode
    DANGEROUS_PATTERNS: ClassVar[list[str]] = [
        r";",  # Command separator
        r"&&",  # Logical AND
        r"\|\|",  # Logical OR
        r"\|",  # Pipe
        r"`",  # Command substitution
        r"\$\(",  # Command substitution
        r">\s*&",  # Redirect stderr to stdout
        r"&\s*>",  # Background with redirect
    ]

    def __init__(self, max_chars: int | None = 1000, strict_mode: bool = False) -> None:
        """Initialize command policy.

        Args:
            max_chars: Maximum command length after trimming (None = unlimited)
            strict_mode: If True, reject chaining and substitution patterns
        """
        self.max_chars = max_chars
        self.strict_mode = strict_mode
        self._compiled = [re.compile(p) for p in self.DANGEROUS_PATTERNS]

    @classmethod
    def from_config(cls, config: SSHConfig) -> "CommandPolicy":
        return cls(max_chars=config.max_chars, strict_mode=config.strict_mode)

    def check(self, command: object) -> CommandInfo:
        """Evaluate a command without raising."""
        if not isinstance(command, str):
            return CommandInfo(command=str(command), is_allowed=False, warnings=["Command must be a string"])

        trimmed = command.strip()
        if not trimmed:
            return CommandInfo(command=trimmed, is_allowed=False, warnings=["Command cannot be empty"])

        if self.max_chars is not None and len(trimmed) > self.max_chars:
            return CommandInfo(
                command=trimmed,
                is_allowed=False,
                warnings=[f"Command is too long (max {self.max_chars} characters)"],
            )

        if self.strict_mode:
            for pattern in self._compiled:
                if pattern.search(trimmed):
                    return CommandInfo(
                        command=trimmed,
                        is_allowed=False,
                        warnings=[
                            "Command contains potentially dangerous pattern "
                            f"(strict mode enabled): {pattern.pattern}"
                        ],
                        matched_pattern=pattern.pattern,
                    )

        return CommandInfo(command=trimmed, is_allowed=True)

    def sanitize(self, command: object) -> str:
        """Return the trimmed command or reject it.

        Raises:
            InvalidCommandError: If the command is empty, too long or matches a
                forbidden pattern in strict mode
        """
        info = self.check(command)
        if not info.is_allowed:
            raise InvalidCommandError(
                info.warnings[0], command=info.command, pattern=info.matched_pattern
            )
        return info.command


def escape_for_single_quotes(command: str) -> str:
    """Escape a string for embedding inside a single-quoted shell word."""
    return command.replace("'", "'\"'\"'")


def build_abort_command(command: str) -> str:
    """Command that kills remote processes whose command line matches `command`.

    Pattern based: the remote process id is not known to the caller.
    """
    return f"timeout 3s pkill -f '{escape_for_single_quotes(command)}' 2>/dev/null || true"
