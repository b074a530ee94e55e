"""SFTP file tools: upload, download, listFiles.

Remote paths may start with "~", which is expanded to the remote home
directory.
"""

from datetime import UTC, datetime

from sshrunner.core.engine import TransferResult
from sshrunner.core.tool_protocol import ToolCall, ToolDefinition, ToolResult
from sshrunner.core.transport import EntryKind, RemoteEntry
from sshrunner.tools.base import BaseTool, ToolContext, require_string


def format_entry(entry: RemoteEntry) -> str:
    kind = "dir" if entry.kind is EntryKind.DIRECTORY else "file"
    modified = datetime.fromtimestamp(entry.mtime, tz=UTC).isoformat(timespec="milliseconds")
    modified = modified.replace("+00:00", "Z")
    return f"[{kind}] {entry.name} ({entry.size} bytes, modified: {modified})"


def format_listing(remote_path: str, entries: list[RemoteEntry]) -> str:
    return f"Files in {remote_path}:\n" + "\n".join(format_entry(e) for e in entries)


class UploadTool(BaseTool):
    """Upload a local file to the remote server."""

    async def run(self, call: ToolCall, context: ToolContext) -> ToolResult:
        local_path = require_string(call, "localPath")
        if isinstance(local_path, ToolResult):
            return local_path
        remote_path = require_string(call, "remotePath")
        if isinstance(remote_path, ToolResult):
            return remote_path

        outcome = await context.engine.upload(local_path, remote_path)
        result: TransferResult = outcome.payload
        return ToolResult(
            success=True,
            output=(
                f"File uploaded successfully: {local_path} -> {remote_path} "
                f"({outcome.duration_ms}ms)"
            ),
            data={
                "local_path": result.local_path,
                "remote_path": result.remote_path,
                "duration_ms": outcome.duration_ms,
            },
        )

    def get_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="upload",
            description=(
                "Upload files from the local machine to the remote SSH server via SFTP. "
                "Use this to transfer configuration files, scripts, data files, or backups "
                "TO the remote server. Example: upload '/tmp/config.json' to "
                "'/home/user/app/config.json'"
            ),
            parameters={
                "type": "object",
                "properties": {
                    "localPath": {
                        "type": "string",
                        "description": "Absolute path to the local file to upload. File must exist and be readable",
                    },
                    "remotePath": {
                        "type": "string",
                        "description": (
                            "Destination path on the remote server, e.g. '/var/www/html/index.html' "
                            "or '~/Desktop/file.txt'. Parent directory must exist"
                        ),
                    },
                },
                "required": ["localPath", "remotePath"],
            },
            annotations={"destructiveHint": True},
        )


class DownloadTool(BaseTool):
    """Download a remote file to the local machine."""

    async def run(self, call: ToolCall, context: ToolContext) -> ToolResult:
        remote_path = require_string(call, "remotePath")
        if isinstance(remote_path, ToolResult):
            return remote_path
        local_path = require_string(call, "localPath")
        if isinstance(local_path, ToolResult):
            return local_path

        outcome = await context.engine.download(remote_path, local_path)
        result: TransferResult = outcome.payload
        return ToolResult(
            success=True,
            output=(
                f"File downloaded successfully: {remote_path} -> {local_path} "
                f"({outcome.duration_ms}ms)"
            ),
            data={
                "local_path": result.local_path,
                "remote_path": result.remote_path,
                "size": result.size,
                "duration_ms": outcome.duration_ms,
            },
        )

    def get_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="download",
            description=(
                "Download files from the remote SSH server to the local machine via SFTP. "
                "Use this to retrieve logs, backups, configurations, or any files FROM the "
                "remote server. Example: download '/var/log/nginx/error.log' to '/tmp/error.log'"
            ),
            parameters={
                "type": "object",
                "properties": {
                    "remotePath": {
                        "type": "string",
                        "description": (
                            "Path to the file on the remote server, e.g. '/var/log/syslog' or "
                            "'~/Documents/report.pdf'. File must exist and be readable"
                        ),
                    },
                    "localPath": {
                        "type": "string",
                        "description": "Absolute path where the file will be saved. Local directory must exist and be writable",
                    },
                },
                "required": ["remotePath", "localPath"],
            },
        )


class ListFilesTool(BaseTool):
    """List a remote directory."""

    async def run(self, call: ToolCall, context: ToolContext) -> ToolResult:
        remote_path = require_string(call, "remotePath")
        if isinstance(remote_path, ToolResult):
            return remote_path

        outcome = await context.engine.list_files(remote_path)
        entries: list[RemoteEntry] = outcome.payload
        return ToolResult(
            success=True,
            output=format_listing(remote_path, entries),
            data={"count": len(entries), "duration_ms": outcome.duration_ms},
        )

    def get_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="listFiles",
            description=(
                "List all files and directories in a remote directory via SFTP. Returns the "
                "type (file/dir), size in bytes, and last modified timestamp of each entry. "
                "Example: list '/home/user/Documents' or '/var/www/html'"
            ),
            parameters={
                "type": "object",
                "properties": {
                    "remotePath": {
                        "type": "string",
                        "description": (
                            "Path to the remote directory to list, e.g. '/var/log' or '~/Desktop'. "
                            "Directory must exist and be readable"
                        ),
                    },
                },
                "required": ["remotePath"],
            },
            annotations={"readOnlyHint": True},
        )
