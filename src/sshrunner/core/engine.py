"""Execution engine for remote operations.

Every operation follows the same path:

    admission -> validation -> acquire session -> run -> release/discard -> audit

Command execution additionally runs under a deadline:

    Pending -> Connected -> Running -> Completed | TimedOut | Failed

The deadline starts when the command is dispatched; time spent waiting for
a session is not charged against it. Exactly one terminal transition
happens per request: the command's completion future and the deadline race
in a single asyncio.wait, and whichever wins decides the outcome.

Session policy: a session goes back to the pool only when the operation left
it verifiably idle (the command channel closed with an exit status, or a
remote pre-check rejected the request). Transport errors, timeouts and
failed transfers discard it.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

from sshrunner.core.audit import (
    AuditSink,
    NullAuditSink,
    OperationKind,
    OutcomeRecord,
    OutcomeStatus,
)
from sshrunner.core.config import ABORT_TIMEOUT_S, SSHConfig
from sshrunner.core.exceptions import (
    E_PERMISSIONS,
    CommandTimeoutError,
    RemoteExecutionError,
    RemotePathError,
    SSHConnectionError,
    SSHRunnerException,
)
from sshrunner.core.logger import SSHRunnerLogger
from sshrunner.core.pool import SessionPool
from sshrunner.core.rate_limiter import RateLimiter
from sshrunner.core.teardown import AbortTeardown
from sshrunner.core.transport import (
    CommandCompletion,
    CommandStream,
    EntryKind,
    FileChannel,
    RemoteEntry,
    Session,
    Target,
    Transport,
)
from sshrunner.security.command_policy import CommandPolicy
from sshrunner.security.paths import (
    expand_remote_home,
    validate_download_target,
    validate_upload_source,
)


@dataclass
class OperationRequest:
    """One unit of work. Created per call, never persisted."""

    kind: OperationKind
    command: str | None = None
    local_path: str | None = None
    remote_path: str | None = None
    timeout_ms: int | None = None
    started_at: float = field(default_factory=time.monotonic)

    def describe(self) -> str:
        if self.kind is OperationKind.EXECUTE:
            return self.command or ""
        if self.kind is OperationKind.UPLOAD:
            return f"upload {self.local_path} -> {self.remote_path}"
        if self.kind is OperationKind.DOWNLOAD:
            return f"download {self.remote_path} -> {self.local_path}"
        return f"listFiles {self.remote_path}"

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


@dataclass
class TransferResult:
    local_path: str
    remote_path: str
    size: int | None = None


TransferBody = Callable[[FileChannel, OperationRequest], Awaitable[Any]]


class ExecutionEngine:
    """Runs remote operations against pooled sessions."""

    def __init__(
        self,
        target: Target,
        pool: SessionPool,
        rate_limiter: RateLimiter,
        policy: CommandPolicy,
        logger: SSHRunnerLogger,
        audit_sink: AuditSink | None = None,
        timeout_ms: int = 60000,
        abort_timeout_s: float = ABORT_TIMEOUT_S,
    ) -> None:
        """Initialize execution engine.

        Args:
            target: Remote target every operation runs against
            pool: Session pool to borrow sessions from
            rate_limiter: Admission controller checked before anything else
            policy: Command policy applied to exec requests
            logger: Structured logger
            audit_sink: Receives one OutcomeRecord per admitted operation
            timeout_ms: Default command deadline
            abort_timeout_s: Secondary deadline for the remote abort after a timeout
        """
        self.target = target
        self.pool = pool
        self.rate_limiter = rate_limiter
        self.policy = policy
        self.logger = logger
        self.audit_sink = audit_sink or NullAuditSink()
        self.timeout_ms = timeout_ms
        self.abort_timeout_s = abort_timeout_s
        self._teardowns: set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls,
        config: SSHConfig,
        transport: Transport,
        logger: SSHRunnerLogger,
        audit_sink: AuditSink | None = None,
    ) -> "ExecutionEngine":
        """Wire an engine and its collaborators from one configuration."""
        return cls(
            target=Target.from_config(config),
            pool=SessionPool.from_config(config, transport, logger),
            rate_limiter=RateLimiter.from_config(config),
            policy=CommandPolicy.from_config(config),
            logger=logger,
            audit_sink=audit_sink,
            timeout_ms=config.timeout_ms,
        )

    # Command execution

    async def execute(self, command: str, timeout_ms: int | None = None) -> OutcomeRecord:
        """Run a command and return its stdout.

        Raises:
            RateLimitExceededError: Admission denied
            InvalidCommandError: Command rejected by policy
            SSHConnectionError: Session could not be created or the transport failed
            RemoteExecutionError: Command exited with a non-zero status
            CommandTimeoutError: Command missed its deadline
        """
        self.logger.debug("Received exec request", command=command[:100] if isinstance(command, str) else None)
        self.rate_limiter.check_limit()
        sanitized = self.policy.sanitize(command)

        request = OperationRequest(
            kind=OperationKind.EXECUTE,
            command=sanitized,
            timeout_ms=timeout_ms or self.timeout_ms,
        )

        session = await self._acquire(request)

        try:
            stream = await session.exec(sanitized)
        except asyncio.CancelledError:
            await self.pool.discard(session, reason="cancelled")
            raise
        except Exception as e:
            await self.pool.discard(session, reason="exec_error")
            raise self._fail(request, self._as_connection_error(e, "SSH exec error")) from e

        completion_task = asyncio.ensure_future(stream.wait())
        try:
            done, _ = await asyncio.wait({completion_task}, timeout=request.timeout_ms / 1000)
        except asyncio.CancelledError:
            completion_task.cancel()
            self._start_teardown(session, stream, sanitized)
            raise

        if not done:
            completion_task.cancel()
            self._start_teardown(session, stream, sanitized)
            raise self._fail(
                request,
                CommandTimeoutError(
                    f"Command execution timed out after {request.timeout_ms}ms",
                    timeout_ms=request.timeout_ms,
                ),
                status=OutcomeStatus.TIMEOUT,
            )

        try:
            completion = completion_task.result()
        except Exception as e:
            stream.close()
            await self.pool.discard(session, reason="exec_error")
            raise self._fail(request, self._as_connection_error(e, "SSH exec error")) from e

        stream.close()
        await self.pool.release(session)
        return self._complete_command(request, completion)

    def _complete_command(
        self, request: OperationRequest, completion: CommandCompletion
    ) -> OutcomeRecord:
        if completion.exit_status == 0:
            return self._succeed(request, payload=completion.stdout, exit_code=0)

        # Many commands write informational output to stderr even on success,
        # so stderr only matters once the exit status says the command failed.
        output = completion.stderr or completion.stdout or "Command failed"
        if completion.exit_status is None:
            reason = f"signal {completion.exit_signal}" if completion.exit_signal else "no exit status"
            message = f"Command failed ({reason}):\n{output}"
        else:
            message = f"Command failed (exit code {completion.exit_status}):\n{output}"

        raise self._fail(
            request,
            RemoteExecutionError(message, exit_code=completion.exit_status, output=output),
            exit_code=completion.exit_status,
        )

    def _start_teardown(self, session: Session, stream: CommandStream, command: str) -> None:
        teardown = AbortTeardown(
            session=session,
            stream=stream,
            command=command,
            pool=self.pool,
            logger=self.logger,
            abort_timeout_s=self.abort_timeout_s,
        )
        task = asyncio.create_task(teardown.run())
        self._teardowns.add(task)
        task.add_done_callback(self._teardowns.discard)

    @property
    def pending_teardowns(self) -> int:
        return len(self._teardowns)

    async def wait_for_teardown(self) -> None:
        """Wait until every timed-out command has been aborted and discarded."""
        while self._teardowns:
            await asyncio.gather(*list(self._teardowns), return_exceptions=True)

    # File transfer and listing

    async def upload(self, local_path: str, remote_path: str) -> OutcomeRecord:
        """Copy a local file to the remote host.

        Raises:
            RateLimitExceededError: Admission denied
            LocalPathError: Local source missing, not a file, or unreadable
            RemotePathError: Remote destination directory missing or not writable
            SSHConnectionError: Session or transfer failed
        """
        self.logger.debug("Received upload request", local_path=local_path, remote_path=remote_path)
        self.rate_limiter.check_limit()
        source = validate_upload_source(local_path).raise_for_error()

        request = OperationRequest(
            kind=OperationKind.UPLOAD, local_path=source, remote_path=remote_path
        )
        return await self._run_transfer(request, self._upload_body)

    async def download(self, remote_path: str, local_path: str) -> OutcomeRecord:
        """Copy a remote file to the local machine.

        Order of checks: local destination, then remote existence and type,
        then the transfer itself.

        Raises:
            RateLimitExceededError: Admission denied
            LocalPathError: Local destination directory missing or not writable
            RemotePathError: Remote path missing, a directory, or not accessible
            SSHConnectionError: Session or transfer failed
        """
        self.logger.debug("Received download request", remote_path=remote_path, local_path=local_path)
        self.rate_limiter.check_limit()
        destination = validate_download_target(local_path).raise_for_error()

        request = OperationRequest(
            kind=OperationKind.DOWNLOAD, local_path=destination, remote_path=remote_path
        )
        return await self._run_transfer(request, self._download_body)

    async def list_files(self, remote_path: str) -> OutcomeRecord:
        """List one remote directory, non-recursively.

        Raises:
            RateLimitExceededError: Admission denied
            RemotePathError: Directory missing or not readable
            SSHConnectionError: Session or listing failed
        """
        self.logger.debug("Received listFiles request", remote_path=remote_path)
        self.rate_limiter.check_limit()

        request = OperationRequest(kind=OperationKind.LIST, remote_path=remote_path)
        return await self._run_transfer(request, self._list_body)

    async def _run_transfer(self, request: OperationRequest, body: TransferBody) -> OutcomeRecord:
        session = await self._acquire(request)

        try:
            channel = await session.open_file_channel()
        except asyncio.CancelledError:
            await self.pool.discard(session, reason="cancelled")
            raise
        except Exception as e:
            await self.pool.discard(session, reason="sftp_error")
            raise self._fail(request, self._as_connection_error(e, "SFTP session error")) from e

        try:
            with self.logger.operation(f"sftp_{request.kind.value}", target=self.target.describe()):
                payload = await body(channel, request)
        except RemotePathError as e:
            # Rejected by a remote pre-check; the session did no work and is idle
            await self._close_channel(channel)
            await self.pool.release(session)
            raise self._fail(request, e) from None
        except asyncio.CancelledError:
            await self.pool.discard(session, reason="cancelled")
            raise
        except Exception as e:
            await self.pool.discard(session, reason="transfer_error")
            raise self._fail(request, self._transfer_error(request, e)) from e

        await self._close_channel(channel)
        await self.pool.release(session)
        return self._succeed(request, payload=payload, exit_code=0)

    async def _upload_body(self, channel: FileChannel, request: OperationRequest) -> TransferResult:
        remote = await expand_remote_home(channel, request.remote_path or "", self.logger)
        request.remote_path = remote
        await channel.put(request.local_path or "", remote)
        return TransferResult(local_path=request.local_path or "", remote_path=remote)

    async def _download_body(self, channel: FileChannel, request: OperationRequest) -> TransferResult:
        remote = await expand_remote_home(channel, request.remote_path or "", self.logger)
        request.remote_path = remote

        try:
            stat = await channel.stat(remote)
        except FileNotFoundError:
            raise RemotePathError(
                f"Remote file does not exist: {remote}",
                path=remote,
                suggestion=f"List the parent directory to check the name: {_remote_parent(remote)}",
            ) from None
        except PermissionError:
            raise RemotePathError(
                f"Remote file is not accessible: {remote}",
                error_code=E_PERMISSIONS,
                path=remote,
                suggestion="Check the remote permissions, e.g. run: ls -l " + remote,
            ) from None

        if stat.kind is EntryKind.DIRECTORY:
            raise RemotePathError(
                f"Remote path is a directory, not a file: {remote}",
                path=remote,
                suggestion="Download files one at a time, or archive the directory first (tar czf)",
            )
        if stat.kind is not EntryKind.FILE:
            raise RemotePathError(
                f"Remote path is not a regular file: {remote}",
                path=remote,
                suggestion="Only regular files can be downloaded",
            )

        await channel.get(remote, request.local_path or "")
        return TransferResult(local_path=request.local_path or "", remote_path=remote, size=stat.size)

    async def _list_body(self, channel: FileChannel, request: OperationRequest) -> list[RemoteEntry]:
        remote = await expand_remote_home(channel, request.remote_path or "", self.logger)
        request.remote_path = remote

        try:
            return await channel.list(remote)
        except FileNotFoundError:
            raise RemotePathError(
                f"Remote directory does not exist: {remote}",
                path=remote,
                suggestion=f"List the parent directory to check the name: {_remote_parent(remote)}",
            ) from None
        except PermissionError:
            raise RemotePathError(
                f"Remote directory is not readable: {remote}",
                error_code=E_PERMISSIONS,
                path=remote,
                suggestion="Check the remote permissions, e.g. run: ls -ld " + remote,
            ) from None

    def _transfer_error(self, request: OperationRequest, error: Exception) -> SSHRunnerException:
        label = {
            OperationKind.UPLOAD: "Upload failed",
            OperationKind.DOWNLOAD: "Download failed",
            OperationKind.LIST: "List files failed",
        }.get(request.kind, "Operation failed")

        if isinstance(error, SSHRunnerException):
            return error
        if request.kind is OperationKind.UPLOAD and isinstance(
            error, FileNotFoundError | PermissionError
        ):
            parent = _remote_parent(request.remote_path or "")
            return RemotePathError(
                f"{label}: {error}",
                path=request.remote_path or "",
                suggestion=f"Make sure the remote directory exists and is writable: mkdir -p {parent}",
            )
        if isinstance(error, FileNotFoundError | PermissionError) and request.kind is OperationKind.DOWNLOAD:
            return RemotePathError(f"{label}: {error}", path=request.remote_path or "")
        return self._as_connection_error(error, label)

    # Plumbing

    async def _acquire(self, request: OperationRequest) -> Session:
        try:
            session = await self.pool.acquire(self.target)
        except SSHConnectionError as e:
            raise self._fail(request, e) from None
        except Exception as e:
            raise self._fail(request, self._as_connection_error(e, "SSH connection error")) from e
        self.logger.debug("Session acquired", operation=request.kind.value, target=self.target.describe())
        return session

    async def _close_channel(self, channel: FileChannel) -> None:
        try:
            await channel.close()
        except Exception as e:  # noqa: BLE001 - the operation already succeeded
            self.logger.warn("Failed to close file channel", error=str(e))

    def _as_connection_error(self, error: Exception, label: str) -> SSHConnectionError:
        if isinstance(error, SSHConnectionError):
            return error
        return SSHConnectionError(f"{label}: {error}", host=self.target.host)

    def _succeed(self, request: OperationRequest, payload: Any, exit_code: int | None) -> OutcomeRecord:
        record = OutcomeRecord(
            kind=request.kind,
            descriptor=request.describe(),
            status=OutcomeStatus.SUCCESS,
            duration_ms=request.elapsed_ms(),
            exit_code=exit_code,
            payload=payload,
        )
        self._emit(record)
        return record

    def _fail(
        self,
        request: OperationRequest,
        error: SSHRunnerException,
        status: OutcomeStatus = OutcomeStatus.FAILURE,
        exit_code: int | None = None,
    ) -> SSHRunnerException:
        duration_ms = request.elapsed_ms()
        error.metadata.setdefault("duration_ms", duration_ms)
        self._emit(
            OutcomeRecord(
                kind=request.kind,
                descriptor=request.describe(),
                status=status,
                duration_ms=duration_ms,
                exit_code=exit_code,
                error=error.message,
            )
        )
        return error

    def _emit(self, record: OutcomeRecord) -> None:
        try:
            self.audit_sink.record(record)
        except Exception as e:  # noqa: BLE001 - audit must never fail an operation
            self.logger.warn("Audit sink failed", error=str(e), operation=record.kind.value)

    async def shutdown(self) -> None:
        """Finish pending teardowns and close every pooled session. Idempotent."""
        await self.wait_for_teardown()
        await self.pool.shutdown()


def _remote_parent(path: str) -> str:
    return str(PurePosixPath(path).parent) if path else "."
