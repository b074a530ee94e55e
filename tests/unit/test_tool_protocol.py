"""Unit tests for tool_protocol module.

Uses real code with no mocks since this module does pure data transformations.
"""

import pytest

from sshrunner.core.exceptions import E_EXEC
from sshrunner.core.tool_protocol import (
    ToolCall,
    ToolDefinition,
    ToolResult,
    validate_tool_schema,
)


class TestToolCall:
    def test_tool_call_creation(self):
        tool_call = ToolCall(id="call_123", name="exec", arguments={"command": "uptime"})

        assert tool_call.id == "call_123"
        assert tool_call.name == "exec"
        assert tool_call.arguments == {"command": "uptime"}


class TestToolResult:
    """Test ToolResult dataclass."""

    def test_tool_result_success(self):
        result = ToolResult(success=True, output=" 10:00 up 3 days", data={"exit_code": 0})

        assert result.success is True
        assert result.error is None
        assert result.text == " 10:00 up 3 days"

    def test_tool_result_failure(self):
        result = ToolResult(success=False, error="Command failed (exit code 1):\nboom", error_code=E_EXEC)

        assert result.output is None
        assert result.text == "Command failed (exit code 1):\nboom"

    def test_text_defaults(self):
        assert ToolResult(success=True).text == ""
        assert ToolResult(success=False).text == "Unknown error"


class TestToolDefinition:
    def test_tool_definition_creation(self):
        parameters = {
            "type": "object",
            "properties": {"command": {"type": "string"}},
            "required": ["command"],
        }

        tool_def = ToolDefinition(
            name="exec",
            description="Run a command",
            parameters=parameters,
            annotations={"destructiveHint": True},
        )

        assert tool_def.parameters == parameters
        assert tool_def.annotations == {"destructiveHint": True}

    def test_default_annotations(self):
        tool_def = ToolDefinition(name="t", description="d", parameters={"type": "object", "properties": {}})
        assert tool_def.annotations == {}

    def test_tool_definition_invalid_parameters(self):
        with pytest.raises(ValueError, match="Tool parameters must be a dictionary"):
            ToolDefinition(name="bad_tool", description="Bad tool", parameters="not a dict")

        with pytest.raises(ValueError, match="Tool parameters must specify 'type'"):
            ToolDefinition(name="bad_tool", description="Bad tool", parameters={"properties": {}})


class TestValidateToolSchema:
    def test_valid_schema(self):
        tool_def = ToolDefinition(
            name="listFiles",
            description="List",
            parameters={
                "type": "object",
                "properties": {"remotePath": {"type": "string"}},
                "required": ["remotePath"],
            },
        )
        assert validate_tool_schema(tool_def) is True

    def test_object_without_properties(self):
        tool_def = ToolDefinition(name="t", description="d", parameters={"type": "object"})
        assert validate_tool_schema(tool_def) is False

    def test_property_without_type(self):
        tool_def = ToolDefinition(
            name="t",
            description="d",
            parameters={"type": "object", "properties": {"x": {"description": "no type"}}},
        )
        assert validate_tool_schema(tool_def) is False

    def test_required_not_list(self):
        tool_def = ToolDefinition(
            name="t",
            description="d",
            parameters={"type": "object", "properties": {}, "required": "x"},
        )
        assert validate_tool_schema(tool_def) is False
