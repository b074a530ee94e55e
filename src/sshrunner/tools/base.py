"""Base tool framework and registry.

Defines the abstract interface for all tools and the registry for managing them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from sshrunner.core.engine import ExecutionEngine
from sshrunner.core.exceptions import (
    E_TOOL_UNKNOWN,
    E_VALIDATION,
    SSHRunnerException,
    format_error_for_log,
    format_error_for_user,
)
from sshrunner.core.logger import SSHRunnerLogger
from sshrunner.core.tool_protocol import ToolCall, ToolDefinition, ToolResult


@dataclass
class ToolContext:
    """Context provided to tools during execution."""

    engine: ExecutionEngine
    logger: SSHRunnerLogger


class BaseTool(ABC):
    """Abstract base class for all tools.

    To create a new tool:
    1. Subclass BaseTool
    2. Implement run() against the execution engine
    3. Implement get_definition() to return ToolDefinition
    4. Register with ToolRegistry
    """

    async def execute(self, call: ToolCall, context: ToolContext) -> ToolResult:
        """Execute the tool, turning SSH Runner errors into failed results.

        Args:
            call: Tool call with name and arguments
            context: Execution context (engine, logger)

        Returns:
            ToolResult with success status and output/error
        """
        try:
            return await self.run(call, context)
        except SSHRunnerException as e:
            context.logger.warn("Tool failed", tool_name=call.name, error=format_error_for_log(e))
            return ToolResult(
                success=False,
                error=format_error_for_user(e),
                error_code=e.error_code,
                data=dict(e.metadata),
            )

    @abstractmethod
    async def run(self, call: ToolCall, context: ToolContext) -> ToolResult:
        """Perform the operation. May raise SSHRunnerException subclasses."""
        raise NotImplementedError

    @abstractmethod
    def get_definition(self) -> ToolDefinition:
        """Get the tool's definition.

        Returns:
            ToolDefinition with name, description, and JSON Schema
        """
        raise NotImplementedError

    def get_name(self) -> str:
        return self.get_definition().name

    def get_description(self) -> str:
        return self.get_definition().description


def require_string(call: ToolCall, name: str) -> str | ToolResult:
    """Fetch a required string argument, or a failed result describing the problem."""
    value = call.arguments.get(name)
    if value is None or value == "":
        return ToolResult(success=False, error=f"{name} is required", error_code=E_VALIDATION)
    if not isinstance(value, str):
        return ToolResult(success=False, error=f"{name} must be a string", error_code=E_VALIDATION)
    return value


class ToolRegistry:
    """Registry for managing and executing tools."""

    def __init__(self, context: ToolContext) -> None:
        """Initialize tool registry.

        Args:
            context: Tool execution context
        """
        self.context = context
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool.

        Raises:
            ValueError: If tool with same name already registered
        """
        name = tool.get_name()
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")

        self._tools[name] = tool
        self.context.logger.debug("Tool registered", tool_name=name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    async def execute(self, call: ToolCall) -> ToolResult:
        """Execute a tool call.

        Args:
            call: Tool call to execute

        Returns:
            ToolResult from tool execution
        """
        if not self.has(call.name):
            self.context.logger.warn("Unknown tool requested", tool_name=call.name)
            return ToolResult(
                success=False,
                error=f"Unknown tool: {call.name}",
                error_code=E_TOOL_UNKNOWN,
            )

        tool = self._tools[call.name]
        self.context.logger.debug("Executing tool", tool_name=call.name)
        result = await tool.execute(call, self.context)
        self.context.logger.info("Tool executed", tool_name=call.name, success=result.success)
        return result

    def get_definitions(self) -> list[ToolDefinition]:
        return [tool.get_definition() for tool in self._tools.values()]

    def list_tools(self) -> list[str]:
        return list(self._tools.keys())


def create_default_registry(context: ToolContext) -> ToolRegistry:
    """Registry with the exec, upload, download and listFiles tools."""
    from sshrunner.tools.exec import ExecTool
    from sshrunner.tools.sftp import DownloadTool, ListFilesTool, UploadTool

    registry = ToolRegistry(context)
    for tool in (ExecTool(), UploadTool(), DownloadTool(), ListFilesTool()):
        registry.register(tool)
    return registry
