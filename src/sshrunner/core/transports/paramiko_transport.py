"""paramiko-based transport.

paramiko is blocking, so every call that touches the network runs in a
worker thread via asyncio.to_thread. Library errors are translated at this
boundary so the rest of the package only sees SSHConnectionError and the
builtin OSError family.
"""

import asyncio
import os
import stat
import time
from collections.abc import Callable
from typing import Any, TypeVar

import paramiko

from sshrunner.core.exceptions import SSHConnectionError
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

CONNECT_TIMEOUT_S = 20.0
BUFFER_SIZE = 65536
POLL_INTERVAL_S = 0.02

T = TypeVar("T")


def _entry_kind(mode: int | None) -> EntryKind:
    if mode is None:
        return EntryKind.OTHER
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat.S_ISREG(mode):
        return EntryKind.FILE
    return EntryKind.OTHER


class ParamikoCommandStream(CommandStream):
    def __init__(self, channel: paramiko.Channel) -> None:
        self._channel = channel

    async def wait(self) -> CommandCompletion:
        return await asyncio.to_thread(self._collect)

    def _collect(self) -> CommandCompletion:
        # Both streams are drained as data arrives so neither can stall the
        # shared flow-control window. Closing the channel ends the loop.
        channel = self._channel
        stdout: list[bytes] = []
        stderr: list[bytes] = []

        try:
            while True:
                received = False
                if channel.recv_ready():
                    stdout.append(channel.recv(BUFFER_SIZE))
                    received = True
                if channel.recv_stderr_ready():
                    stderr.append(channel.recv_stderr(BUFFER_SIZE))
                    received = True

                if channel.exit_status_ready():
                    while channel.recv_ready():
                        stdout.append(channel.recv(BUFFER_SIZE))
                    while channel.recv_stderr_ready():
                        stderr.append(channel.recv_stderr(BUFFER_SIZE))
                    break

                if not received:
                    time.sleep(POLL_INTERVAL_S)

            status = channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            raise SSHConnectionError(f"SSH exec error: {e}") from e

        return CommandCompletion(
            stdout=b"".join(stdout).decode("utf-8", errors="replace"),
            stderr=b"".join(stderr).decode("utf-8", errors="replace"),
            # paramiko reports -1 when the server sent no exit status
            exit_status=None if status == -1 else status,
        )

    def close(self) -> None:
        self._channel.close()


class ParamikoFileChannel(FileChannel):
    def __init__(self, sftp: paramiko.SFTPClient) -> None:
        self._sftp = sftp

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        # paramiko raises IOError(errno.ENOENT/EACCES, ...), which Python
        # already maps to FileNotFoundError/PermissionError
        try:
            return await asyncio.to_thread(func, *args)
        except paramiko.SSHException as e:
            raise OSError(f"SFTP error: {e}") from e

    async def put(self, local_path: str, remote_path: str) -> None:
        await self._call(self._sftp.put, local_path, remote_path)

    async def get(self, remote_path: str, local_path: str) -> None:
        await self._call(self._sftp.get, remote_path, local_path)

    async def stat(self, remote_path: str) -> RemoteStat:
        attrs = await self._call(self._sftp.stat, remote_path)
        return RemoteStat(
            kind=_entry_kind(attrs.st_mode),
            size=attrs.st_size or 0,
            mtime=attrs.st_mtime or 0,
        )

    async def list(self, remote_path: str) -> list[RemoteEntry]:
        items = await self._call(self._sftp.listdir_attr, remote_path)
        return [
            RemoteEntry(
                name=item.filename,
                kind=_entry_kind(item.st_mode),
                size=item.st_size or 0,
                mtime=item.st_mtime or 0,
            )
            for item in items
            if item.filename not in (".", "..")
        ]

    async def resolve_path(self, path: str) -> str:
        return await self._call(self._sftp.normalize, path)

    async def close(self) -> None:
        await asyncio.to_thread(self._sftp.close)


class ParamikoSession(Session):
    def __init__(self, target: Target, client: paramiko.SSHClient) -> None:
        super().__init__(target)
        self._client = client

    def _active_transport(self) -> paramiko.Transport:
        transport = self._client.get_transport()
        if transport is None or not transport.is_active():
            raise SSHConnectionError("SSH transport is not active", host=self.target.host)
        return transport

    def _open_command(self, command: str) -> paramiko.Channel:
        channel = self._active_transport().open_session()
        channel.exec_command(command)
        return channel

    async def exec(self, command: str) -> CommandStream:
        try:
            channel = await asyncio.to_thread(self._open_command, command)
        except (paramiko.SSHException, OSError) as e:
            raise SSHConnectionError(f"SSH exec error: {e}", host=self.target.host) from e
        return ParamikoCommandStream(channel)

    async def open_file_channel(self) -> FileChannel:
        try:
            sftp = await asyncio.to_thread(self._client.open_sftp)
        except (paramiko.SSHException, OSError) as e:
            raise SSHConnectionError(f"SFTP session error: {e}", host=self.target.host) from e
        return ParamikoFileChannel(sftp)

    async def _close(self) -> None:
        await asyncio.to_thread(self._client.close)


class ParamikoTransport(Transport):
    """Open SSH sessions with paramiko.

    Without a known_hosts file the host key is accepted unverified.
    """

    def __init__(self, connect_timeout: float = CONNECT_TIMEOUT_S) -> None:
        self.connect_timeout = connect_timeout

    def get_name(self) -> str:
        return "paramiko"

    def connect_kwargs(self, target: Target) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "hostname": target.host,
            "port": target.port,
            "username": target.user,
            "timeout": self.connect_timeout,
            "auth_timeout": self.connect_timeout,
            "banner_timeout": self.connect_timeout,
            "look_for_keys": False,
            "allow_agent": False,
        }
        if target.password:
            kwargs["password"] = target.password
        elif target.key_path:
            kwargs["key_filename"] = os.path.expanduser(target.key_path)
        return kwargs

    def _connect(self, target: Target) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        if target.known_hosts:
            client.load_host_keys(os.path.expanduser(target.known_hosts))
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            client.connect(**self.connect_kwargs(target))
        except paramiko.AuthenticationException as e:
            client.close()
            raise SSHConnectionError(
                f"SSH authentication failed for {target.describe()}: {e}", host=target.host
            ) from e
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise SSHConnectionError(f"SSH connection error: {e}", host=target.host) from e
        return client

    async def connect(self, target: Target) -> Session:
        # The handshake thread cannot be interrupted; if the caller is
        # cancelled, the client it eventually returns is closed instead.
        handshake = asyncio.ensure_future(asyncio.to_thread(self._connect, target))
        try:
            client = await asyncio.shield(handshake)
        except asyncio.CancelledError:
            handshake.add_done_callback(_close_abandoned_client)
            raise
        return ParamikoSession(target, client)


def _close_abandoned_client(handshake: "asyncio.Future[paramiko.SSHClient]") -> None:
    if handshake.cancelled() or handshake.exception() is not None:
        return
    handshake.result().close()
