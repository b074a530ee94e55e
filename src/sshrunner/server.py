"""MCP stdio server exposing the remote tools.

Each MCP tool forwards to the tool registry; a failed ToolResult becomes an
MCP tool error so the client sees an error result with the failure message.
"""

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from sshrunner import __version__
from sshrunner.core.config import SSHConfig
from sshrunner.core.engine import ExecutionEngine
from sshrunner.core.factory import create_engine, create_tool_registry
from sshrunner.core.tool_protocol import ToolCall
from sshrunner.core.transport import Transport
from sshrunner.tools.base import ToolRegistry

SERVER_NAME = "SSH MCP Server"


async def call_tool(registry: ToolRegistry, name: str, arguments: dict[str, Any]) -> str:
    """Run one tool and return its text, raising ToolError on failure."""
    result = await registry.execute(ToolCall(id=uuid.uuid4().hex, name=name, arguments=arguments))
    if not result.success:
        raise ToolError(result.text)
    return result.text


def build_server(
    config: SSHConfig,
    transport: Transport | None = None,
    engine: ExecutionEngine | None = None,
) -> FastMCP:
    """Create the MCP server with exec, upload, download and listFiles tools.

    The pool is shut down when the server's lifespan ends.
    """
    engine = engine or create_engine(config, transport=transport)
    registry = create_tool_registry(engine)

    @asynccontextmanager
    async def lifespan(_server: FastMCP) -> AsyncIterator[None]:
        engine.logger.info(
            "SSH MCP Server running on stdio",
            version=__version__,
            target=engine.target.describe(),
        )
        try:
            yield
        finally:
            await engine.shutdown()

    mcp = FastMCP(SERVER_NAME, lifespan=lifespan)

    def description(name: str) -> str:
        tool = registry.get(name)
        return tool.get_description() if tool else ""

    @mcp.tool(name="exec", description=description("exec"))
    async def exec_command(command: str) -> str:
        return await call_tool(registry, "exec", {"command": command})

    @mcp.tool(name="upload", description=description("upload"))
    async def upload(localPath: str, remotePath: str) -> str:  # noqa: N803
        return await call_tool(
            registry, "upload", {"localPath": localPath, "remotePath": remotePath}
        )

    @mcp.tool(name="download", description=description("download"))
    async def download(remotePath: str, localPath: str) -> str:  # noqa: N803
        return await call_tool(
            registry, "download", {"remotePath": remotePath, "localPath": localPath}
        )

    @mcp.tool(name="listFiles", description=description("listFiles"))
    async def list_files(remotePath: str) -> str:  # noqa: N803
        return await call_tool(registry, "listFiles", {"remotePath": remotePath})

    return mcp


def run_stdio(config: SSHConfig) -> None:
    """Serve over stdio until the client disconnects."""
    build_server(config).run(transport="stdio")
