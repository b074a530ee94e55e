"""Shared fixtures: an in-memory transport standing in for a remote SSH host."""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import pytest

from sshrunner.core.audit import MemoryAuditSink
from sshrunner.core.config import SSHConfig
from sshrunner.core.engine import ExecutionEngine
from sshrunner.core.logger import SSHRunnerLogger
from sshrunner.core.transport import (
    CommandCompletion,
    CommandStream,
    EntryKind,
    FileChannel,
    RemoteEntry,
    RemoteStat,
    Session,
    Target,
    Transport,
)

ABORT_PREFIX = "timeout 3s pkill -f "


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class Script:
    """How the fake host answers one command."""

    stdout: str = ""
    stderr: str = ""
    exit_status: int | None = 0
    exit_signal: str | None = None
    delay: float = 0.0
    hang: bool = False
    error: Exception | None = None


class FakeStream(CommandStream):
    def __init__(self, script: Script) -> None:
        self.script = script
        self.closed = False

    async def wait(self) -> CommandCompletion:
        if self.script.hang:
            await asyncio.Event().wait()
        if self.script.delay:
            await asyncio.sleep(self.script.delay)
        if self.script.error:
            raise self.script.error
        return CommandCompletion(
            stdout=self.script.stdout,
            stderr=self.script.stderr,
            exit_status=self.script.exit_status,
            exit_signal=self.script.exit_signal,
        )

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeRemoteFS:
    home: str = "/home/tester"
    files: dict[str, bytes] = field(default_factory=dict)
    dirs: set[str] = field(default_factory=lambda: {"/", "/home", "/home/tester", "/tmp"})
    denied: set[str] = field(default_factory=set)
    specials: set[str] = field(default_factory=set)
    home_error: Exception | None = None
    mtime: float = 0.0

    def _check(self, path: str) -> None:
        if path in self.denied:
            raise PermissionError(f"Permission denied: {path}")


class FakeFileChannel(FileChannel):
    def __init__(self, fs: FakeRemoteFS) -> None:
        self.fs = fs
        self.closed = False

    async def put(self, local_path: str, remote_path: str) -> None:
        self.fs._check(remote_path)
        if str(PurePosixPath(remote_path).parent) not in self.fs.dirs:
            raise FileNotFoundError(f"No such file: {remote_path}")
        self.fs.files[remote_path] = Path(local_path).read_bytes()

    async def get(self, remote_path: str, local_path: str) -> None:
        self.fs._check(remote_path)
        if remote_path not in self.fs.files:
            raise FileNotFoundError(f"No such file: {remote_path}")
        Path(local_path).write_bytes(self.fs.files[remote_path])

    async def stat(self, remote_path: str) -> RemoteStat:
        self.fs._check(remote_path)
        if remote_path in self.fs.dirs:
            return RemoteStat(kind=EntryKind.DIRECTORY, size=4096, mtime=self.fs.mtime)
        if remote_path in self.fs.specials:
            return RemoteStat(kind=EntryKind.OTHER, size=0, mtime=self.fs.mtime)
        if remote_path in self.fs.files:
            size = len(self.fs.files[remote_path])
            return RemoteStat(kind=EntryKind.FILE, size=size, mtime=self.fs.mtime)
        raise FileNotFoundError(f"No such file: {remote_path}")

    async def list(self, remote_path: str) -> list[RemoteEntry]:
        self.fs._check(remote_path)
        if remote_path not in self.fs.dirs:
            raise FileNotFoundError(f"No such file: {remote_path}")

        entries = []
        for d in sorted(self.fs.dirs):
            if d != remote_path and str(PurePosixPath(d).parent) == remote_path:
                entries.append(
                    RemoteEntry(PurePosixPath(d).name, EntryKind.DIRECTORY, 4096, self.fs.mtime)
                )
        for path, data in sorted(self.fs.files.items()):
            if str(PurePosixPath(path).parent) == remote_path:
                entries.append(
                    RemoteEntry(PurePosixPath(path).name, EntryKind.FILE, len(data), self.fs.mtime)
                )
        return entries

    async def resolve_path(self, path: str) -> str:
        if self.fs.home_error:
            raise self.fs.home_error
        return self.fs.home if path == "." else path

    async def close(self) -> None:
        self.closed = True


class FakeSession(Session):
    def __init__(self, target: Target, transport: "FakeTransport") -> None:
        super().__init__(target)
        self.transport = transport
        self.commands: list[str] = []
        self.close_calls = 0

    async def exec(self, command: str) -> CommandStream:
        self.commands.append(command)
        self.transport.commands.append(command)
        if self.transport.exec_error:
            raise self.transport.exec_error
        return FakeStream(self.transport.script_for(command))

    async def open_file_channel(self) -> FileChannel:
        if self.transport.sftp_error:
            raise self.transport.sftp_error
        return FakeFileChannel(self.transport.fs)

    async def _close(self) -> None:
        self.close_calls += 1


class FakeTransport(Transport):
    """Scriptable stand-in for an SSH host.

    Unscripted commands succeed with empty output; abort commands succeed
    immediately unless `abort_script` says otherwise.
    """

    def __init__(self) -> None:
        self.scripts: dict[str, Script] = {}
        self.abort_script = Script()
        self.commands: list[str] = []
        self.sessions: list[FakeSession] = []
        self.fs = FakeRemoteFS()
        self.connect_error: Exception | None = None
        self.exec_error: Exception | None = None
        self.sftp_error: Exception | None = None

    @property
    def connections_created(self) -> int:
        return len(self.sessions)

    def on(self, command: str, **kwargs) -> Script:
        script = Script(**kwargs)
        self.scripts[command] = script
        return script

    def script_for(self, command: str) -> Script:
        if command.startswith(ABORT_PREFIX):
            return self.abort_script
        return self.scripts.get(command, Script())

    def abort_commands(self) -> list[str]:
        return [c for c in self.commands if c.startswith(ABORT_PREFIX)]

    async def connect(self, target: Target) -> Session:
        if self.connect_error:
            raise self.connect_error
        session = FakeSession(target, self)
        self.sessions.append(session)
        return session

    def get_name(self) -> str:
        return "fake"


@pytest.fixture
def logger(tmp_path, monkeypatch):
    monkeypatch.delenv("SSHRUNNER_DISABLE_FILE_LOGGING", raising=False)
    return SSHRunnerLogger(log_dir=str(tmp_path / "logs"), level="DEBUG")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def target():
    return Target(host="example.com", port=22, user="tester", password="secret")


@pytest.fixture
def make_engine(transport, logger):
    """Build an engine over the fake transport; keyword args become config settings."""

    def _make(abort_timeout_s: float | None = None, **settings) -> ExecutionEngine:
        config = SSHConfig(host="example.com", user="tester", password="secret", **settings)
        engine = ExecutionEngine.from_config(
            config, transport=transport, logger=logger, audit_sink=MemoryAuditSink()
        )
        if abort_timeout_s is not None:
            engine.abort_timeout_s = abort_timeout_s
        return engine

    return _make


@pytest.fixture
def clock():
    return FakeClock()
