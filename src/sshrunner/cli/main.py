"""CLI entry points for SSH Runner.

Implements click-based CLI
"""

import asyncio
import functools
import sys
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sshrunner import __version__
from sshrunner.core.config import SSHConfig, load_config, parse_setting
from sshrunner.core.exceptions import ConfigurationError, SSHRunnerException, format_error_for_user
from sshrunner.core.factory import create_engine, create_tool_registry
from sshrunner.core.tool_protocol import ToolCall, ToolResult

# Load .env file from current directory or parent directories
load_dotenv()

console = Console()
err_console = Console(stderr=True)


def connection_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the shared connection and limit options to a command.

    Each option accepts the original camelCase flag as an alias, so
    `--rateLimitMax=3` and `--rate-limit-max 3` are equivalent.
    """
    options = [
        click.option("--profile", "-p", default="default", help="Configuration profile"),
        click.option("--host", default=None, help="Remote host"),
        click.option("--port", type=int, default=None, help="SSH port (default: 22)"),
        click.option("--user", default=None, help="Remote user"),
        click.option("--password", default=None, help="Password authentication"),
        click.option("--key", default=None, help="Private key file (used when no password)"),
        click.option("--known-hosts", "--knownHosts", "known_hosts", default=None,
                     help="known_hosts file (default: host key not verified)"),
        click.option("--timeout", "timeout_ms", type=int, default=None,
                     help="Command timeout in milliseconds (default: 60000)"),
        click.option("--rate-limit", "--rateLimit", "rate_limit", type=click.BOOL, default=None,
                     help="Enable request rate limiting (default: true)"),
        click.option("--rate-limit-max", "--rateLimitMax", "rate_limit_max", type=int,
                     default=None, help="Requests per window (default: 10)"),
        click.option("--rate-limit-window", "--rateLimitWindow", "rate_limit_window_ms",
                     type=int, default=None, help="Window in milliseconds (default: 60000)"),
        click.option("--pool", "pool", type=click.BOOL, default=None,
                     help="Enable session pooling (default: true)"),
        click.option("--pool-max-size", "--poolMaxSize", "pool_max_size", type=int,
                     default=None, help="Idle sessions kept (default: 3)"),
        click.option("--pool-ttl", "--poolTtl", "pool_ttl_ms", type=int, default=None,
                     help="Idle session TTL in milliseconds (default: 300000)"),
        click.option("--audit-log", "--auditLog", "audit_log", type=click.BOOL, default=None,
                     help="Write one audit line per operation"),
        click.option("--debug", "debug", type=click.BOOL, default=None, help="Debug logging"),
        click.option("--max-chars", "--maxChars", "max_chars", default=None,
                     help="Maximum command length; 'none' or 0 for unlimited (default: 1000)"),
        click.option("--strict-mode", "--strictMode", "strict_mode", type=click.BOOL,
                     default=None, help="Reject command chaining and substitution"),
    ]

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        profile = kwargs.pop("profile")
        overrides = {name: kwargs.pop(name) for name in list(kwargs) if name in SSHConfig.__dataclass_fields__}
        if overrides.get("max_chars") is not None:
            overrides["max_chars"] = parse_setting("max_chars", overrides["max_chars"])
        try:
            config = load_config(profile, Path.cwd(), overrides)
        except ConfigurationError as e:
            err_console.print(f"[bold red]{escape(format_error_for_user(e))}[/bold red]")
            sys.exit(1)
        return func(*args, config=config, **kwargs)

    for option in reversed(options):
        wrapper = option(wrapper)
    return wrapper


def run_tool(config: SSHConfig, name: str, arguments: dict[str, Any]) -> ToolResult:
    """Run one tool call on a fresh engine and shut it down afterwards."""

    async def _run() -> ToolResult:
        engine = create_engine(config)
        registry = create_tool_registry(engine)
        try:
            return await registry.execute(
                ToolCall(id=uuid.uuid4().hex, name=name, arguments=arguments)
            )
        finally:
            await engine.shutdown()

    try:
        return asyncio.run(_run())
    except SSHRunnerException as e:
        err_console.print(f"[bold red]Error:[/bold red] {escape(format_error_for_user(e))}")
        sys.exit(1)


def report(result: ToolResult, raw: bool = False) -> None:
    """Print a tool result; exit with status 1 on failure."""
    if not result.success:
        err_console.print(f"[bold red]Error:[/bold red] {escape(result.error or '')}", highlight=False)
        sys.exit(1)
    if raw:
        click.echo(result.output or "", nl=False)
    else:
        console.print(result.output or "", markup=False, highlight=False)


@click.group()
@click.version_option(version=__version__, prog_name="sshrunner")
def cli() -> None:
    """SSH Runner.

    Remote command execution and SFTP file transfer for agents, over a
    pooled, rate-limited SSH connection.
    """


@cli.command()
@connection_options
def serve(config: SSHConfig) -> None:
    """Run the MCP server on stdio.

    Examples:
        sshrunner serve --host=1.2.3.4 --user=root --password=pass
        sshrunner serve --host=1.2.3.4 --user=root --key=~/.ssh/id_ed25519 --timeout=5000
    """
    from sshrunner.server import run_stdio

    try:
        config.require_connection()
    except ConfigurationError as e:
        err_console.print(f"[bold red]Configuration error:[/bold red]\n{escape(str(e))}")
        sys.exit(1)

    run_stdio(config)


@cli.command("exec")
@click.argument("command")
@connection_options
def exec_command(command: str, config: SSHConfig) -> None:
    """Execute COMMAND on the remote host and print its stdout.

    Examples:
        sshrunner exec "df -h" --host=1.2.3.4 --user=root
    """
    report(run_tool(config, "exec", {"command": command}), raw=True)


@cli.command()
@click.argument("local_path")
@click.argument("remote_path")
@connection_options
def upload(local_path: str, remote_path: str, config: SSHConfig) -> None:
    """Upload LOCAL_PATH to REMOTE_PATH over SFTP."""
    report(run_tool(config, "upload", {"localPath": local_path, "remotePath": remote_path}))


@cli.command()
@click.argument("remote_path")
@click.argument("local_path")
@connection_options
def download(remote_path: str, local_path: str, config: SSHConfig) -> None:
    """Download REMOTE_PATH to LOCAL_PATH over SFTP."""
    report(run_tool(config, "download", {"remotePath": remote_path, "localPath": local_path}))


@cli.command("ls")
@click.argument("remote_path", default="~")
@connection_options
def list_files(remote_path: str, config: SSHConfig) -> None:
    """List REMOTE_PATH (default: the remote home directory)."""
    report(run_tool(config, "listFiles", {"remotePath": remote_path}))


@cli.group()
def config() -> None:
    """Inspect configuration."""


@config.command("show")
@connection_options
def config_show(config: SSHConfig) -> None:
    """Show the merged configuration (password masked)."""
    table = Table(title="SSH Runner configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in config.to_safe_dict().items():
        table.add_row(key, "" if value is None else escape(str(value)))
    console.print(table)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
