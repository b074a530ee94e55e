"""Tool protocol core types and helpers."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolCall:
    """Represents a tool call request from an agent."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class ToolResult:
    """Result from tool execution."""

    success: bool
    output: str | None = None
    error: str | None = None
    error_code: str | None = None
    data: dict[str, Any] | None = None

    @property
    def text(self) -> str:
        """Text shown to the caller: output on success, error otherwise."""
        if self.success:
            return self.output or ""
        return self.error or "Unknown error"


@dataclass
class ToolDefinition:
    """Tool definition with JSON Schema."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema
    annotations: dict[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate tool definition structure."""
        if not isinstance(self.parameters, dict):
            raise ValueError("Tool parameters must be a dictionary")
        if "type" not in self.parameters:
            raise ValueError("Tool parameters must specify 'type'")


def validate_tool_schema(tool_def: ToolDefinition) -> bool:
    """Validate tool definition JSON Schema.

    Args:
        tool_def: ToolDefinition to validate

    Returns:
        True if valid, False otherwise
    """
    try:
        params = tool_def.parameters

        if not isinstance(params.get("type"), str):
            return False

        if params["type"] == "object":
            if "properties" not in params:
                return False
            if not isinstance(params["properties"], dict):
                return False
            if "required" in params and not isinstance(params["required"], list):
                return False

        if "properties" in params:
            for _prop_name, prop_def in params["properties"].items():
                if not isinstance(prop_def, dict):
                    return False
                if "type" not in prop_def:
                    return False

        return True

    except (KeyError, TypeError, AttributeError):
        return False
