"""Tool implementations exposed to MCP clients and the CLI.

Provides remote command execution and SFTP upload, download and listing.
"""

from sshrunner.tools.base import BaseTool, ToolContext, ToolRegistry, create_default_registry
from sshrunner.tools.exec import ExecTool
from sshrunner.tools.sftp import DownloadTool, ListFilesTool, UploadTool

__all__ = [
    # Base classes
    "BaseTool",
    "ToolContext",
    "ToolRegistry",
    "create_default_registry",
    # Tools
    "DownloadTool",
    "ExecTool",
    "ListFilesTool",
    "UploadTool",
]
