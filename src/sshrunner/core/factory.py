"""Factory for wiring an execution engine and its tools from configuration.

Central entry point used by the CLI and the MCP server.
"""

from sshrunner.core.audit import AuditSink, LoggerAuditSink, NullAuditSink
from sshrunner.core.config import SSHConfig
from sshrunner.core.engine import ExecutionEngine
from sshrunner.core.logger import SSHRunnerLogger
from sshrunner.core.transport import Transport
from sshrunner.tools.base import ToolContext, ToolRegistry, create_default_registry


def create_logger(config: SSHConfig) -> SSHRunnerLogger:
    """Create the process logger; debug mode forces DEBUG level."""
    return SSHRunnerLogger(level="DEBUG" if config.debug else None)


def create_audit_sink(config: SSHConfig) -> AuditSink:
    """Create the audit sink.

    Audit lines are written at INFO through their own logger so they appear
    regardless of the process log level.
    """
    if not config.audit_log:
        return NullAuditSink()
    return LoggerAuditSink(SSHRunnerLogger(level="INFO", name="sshrunner.audit"))


def create_transport() -> Transport:
    from sshrunner.core.transports.paramiko_transport import ParamikoTransport

    return ParamikoTransport()


def create_engine(
    config: SSHConfig,
    transport: Transport | None = None,
    logger: SSHRunnerLogger | None = None,
    audit_sink: AuditSink | None = None,
) -> ExecutionEngine:
    """Create a configured execution engine.

    Args:
        config: Validated configuration; a connection target is required
        transport: Session provider (default: paramiko)
        logger: Structured logger (default: created from config)
        audit_sink: Outcome sink (default: created from config)

    Raises:
        ConfigurationError: If host or user is missing
    """
    config.require_connection()
    logger = logger or create_logger(config)
    return ExecutionEngine.from_config(
        config,
        transport=transport or create_transport(),
        logger=logger,
        audit_sink=audit_sink if audit_sink is not None else create_audit_sink(config),
    )


def create_tool_registry(engine: ExecutionEngine) -> ToolRegistry:
    """Registry with every remote tool bound to `engine`."""
    return create_default_registry(ToolContext(engine=engine, logger=engine.logger))
