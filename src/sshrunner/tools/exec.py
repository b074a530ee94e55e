"""Remote command execution tool.

Runs one shell command on the configured SSH host and returns its stdout.
Stderr is only surfaced when the command fails.
"""

from sshrunner.core.exceptions import E_VALIDATION
from sshrunner.core.tool_protocol import ToolCall, ToolDefinition, ToolResult
from sshrunner.tools.base import BaseTool, ToolContext, require_string

MAX_TIMEOUT_MS = 3_600_000


class ExecTool(BaseTool):
    """Execute shell commands on the remote SSH server."""

    async def run(self, call: ToolCall, context: ToolContext) -> ToolResult:
        """Run the command through the execution engine.

        Unknown arguments are ignored; the ones used are validated.
        """
        command = require_string(call, "command")
        if isinstance(command, ToolResult):
            return command

        timeout_ms = call.arguments.get("timeout")
        if timeout_ms is not None and (
            isinstance(timeout_ms, bool)
            or not isinstance(timeout_ms, int)
            or not 0 < timeout_ms <= MAX_TIMEOUT_MS
        ):
            return ToolResult(
                success=False,
                error=f"timeout must be between 1 and {MAX_TIMEOUT_MS} milliseconds",
                error_code=E_VALIDATION,
            )

        outcome = await context.engine.execute(command, timeout_ms=timeout_ms)

        context.logger.debug(
            "Remote command completed",
            command=outcome.descriptor[:100],
            duration_ms=outcome.duration_ms,
        )

        return ToolResult(
            success=True,
            output=outcome.payload,
            data={"exit_code": outcome.exit_code, "duration_ms": outcome.duration_ms},
        )

    def get_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="exec",
            description=(
                "Execute shell commands on the remote SSH server. Use this for system "
                "operations, file management, process control, and running scripts. "
                "Returns stdout on success. Common uses: checking system status "
                "(uptime, df -h), managing files (ls, cat, find), running services "
                "(systemctl status nginx). Example: 'ls -la /var/log' or 'ps aux | grep node'"
            ),
            parameters={
                "type": "object",
                "properties": {
                    "command": {
                        "type": "string",
                        "description": (
                            "Shell command to execute. Examples: 'whoami', 'ls -la /home', "
                            "'cat /etc/hosts', 'df -h'. Supports pipes and redirects unless "
                            "strict mode is enabled. Max length: 1000 chars by default "
                            "(configurable via --maxChars)"
                        ),
                    },
                    "timeout": {
                        "type": "integer",
                        "description": "Optional deadline in milliseconds (defaults to the server timeout)",
                    },
                },
                "required": ["command"],
            },
            annotations={"destructiveHint": True, "openWorldHint": True},
        )
