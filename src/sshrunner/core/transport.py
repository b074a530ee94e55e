"""Transport abstraction for remote sessions.

Provides a pluggable interface for opening authenticated sessions to a remote
target, running commands on them and moving files over them, so the pool
and the execution engine stay agnostic of the SSH library underneath.

Implementations live in sshrunner.core.transports.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from sshrunner.core.config import SSHConfig


@dataclass(frozen=True)
class Target:
    """Where and as whom to connect.

    The credential is referenced, not embedded in logs: password and key
    are excluded from repr.
    """

    host: str
    port: int = 22
    user: str = ""
    password: str | None = field(default=None, repr=False)
    key_path: str | None = field(default=None, repr=False)
    known_hosts: str | None = None

    @classmethod
    def from_config(cls, config: SSHConfig) -> "Target":
        config.require_connection()
        return cls(
            host=config.host or "",
            port=config.port,
            user=config.user or "",
            password=config.password,
            key_path=None if config.password else config.key,
            known_hosts=config.known_hosts,
        )

    def describe(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"


@dataclass
class CommandCompletion:
    """What a remote command reported when its output stream closed.

    Attributes:
        stdout: Accumulated standard output text
        stderr: Accumulated standard error text
        exit_status: Exit code, or None if the process was killed by a signal
        exit_signal: Signal name if the process was killed by one
    """

    stdout: str
    stderr: str
    exit_status: int | None
    exit_signal: str | None = None


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "dir"
    OTHER = "other"


@dataclass(frozen=True)
class RemoteStat:
    kind: EntryKind
    size: int
    mtime: float


@dataclass(frozen=True)
class RemoteEntry:
    """One directory listing entry."""

    name: str
    kind: EntryKind
    size: int
    mtime: float


class CommandStream(ABC):
    """A dispatched remote command."""

    @abstractmethod
    async def wait(self) -> CommandCompletion:
        """Wait until the remote process closes its output and report the result."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Stop reading and close the channel. Does not signal the remote process."""
        ...


class FileChannel(ABC):
    """File-transfer channel opened on a session.

    Errors for a missing path surface as FileNotFoundError and for a denied
    one as PermissionError; other protocol failures surface as OSError.
    """

    @abstractmethod
    async def put(self, local_path: str, remote_path: str) -> None: ...

    @abstractmethod
    async def get(self, remote_path: str, local_path: str) -> None: ...

    @abstractmethod
    async def stat(self, remote_path: str) -> RemoteStat: ...

    @abstractmethod
    async def list(self, remote_path: str) -> list[RemoteEntry]: ...

    @abstractmethod
    async def resolve_path(self, path: str) -> str:
        """Resolve a path on the remote side, including '.' to the home directory."""
        ...

    @abstractmethod
    async def close(self) -> None: ...

    async def __aenter__(self) -> "FileChannel":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


class Session(ABC):
    """One authenticated, live connection to a remote target.

    Owned by the pool while idle and lent to exactly one operation at a time.
    """

    def __init__(self, target: Target) -> None:
        self.target = target
        self.created_at = time.monotonic()
        self.last_used = self.created_at
        self.alive = True

    @abstractmethod
    async def exec(self, command: str) -> CommandStream:
        """Dispatch a command and return its stream without waiting for it."""
        ...

    @abstractmethod
    async def open_file_channel(self) -> FileChannel: ...

    @abstractmethod
    async def _close(self) -> None: ...

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if not self.alive:
            return
        self.alive = False
        await self._close()

    def touch(self, now: float | None = None) -> None:
        self.last_used = time.monotonic() if now is None else now


class Transport(ABC):
    """Factory for sessions."""

    @abstractmethod
    async def connect(self, target: Target) -> Session:
        """Connect, authenticate and wait until the session is ready.

        Raises:
            SSHConnectionError: If the handshake, authentication or network fails
        """
        ...

    @abstractmethod
    def get_name(self) -> str:
        """Get transport name for logging/debugging."""
        ...
