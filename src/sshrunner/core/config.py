"""Configuration system for SSH Runner.

Provides configuration loading, merging, and validation with precedence:
1. Explicit overrides (CLI options, highest)
2. Environment variables (SSH_MCP_*)
3. Project config (.sshrunner/config.json)
4. User profile (~/.sshrunner/profiles/<name>.json)
5. Defaults (lowest)

The resulting SSHConfig is built once at startup and handed to the rate
limiter, session pool and execution engine; nothing in core reads the
environment on its own.
"""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from sshrunner.core.exceptions import ConfigurationError

# Secondary deadline for the best-effort remote abort after a timeout
ABORT_TIMEOUT_S = 5.0

DEFAULT_MAX_CHARS = 1000

ENV_PREFIX = "SSH_MCP_"

# Config field -> original flag name; the env var is SSH_MCP_<FLAG upper>
FLAG_NAMES: dict[str, str] = {
    "host": "host",
    "port": "port",
    "user": "user",
    "password": "password",
    "key": "key",
    "known_hosts": "knownHosts",
    "timeout_ms": "timeout",
    "rate_limit": "rateLimit",
    "rate_limit_max": "rateLimitMax",
    "rate_limit_window_ms": "rateLimitWindow",
    "pool": "pool",
    "pool_max_size": "poolMaxSize",
    "pool_ttl_ms": "poolTtl",
    "audit_log": "auditLog",
    "debug": "debug",
    "max_chars": "maxChars",
    "strict_mode": "strictMode",
}

_INT_FIELDS = {
    "port",
    "timeout_ms",
    "rate_limit_max",
    "rate_limit_window_ms",
    "pool_max_size",
    "pool_ttl_ms",
}
# Enabled unless the value is literally "false"
_DEFAULT_ON_FLAGS = {"rate_limit", "pool"}
# Disabled unless the value is literally "true"
_DEFAULT_OFF_FLAGS = {"audit_log", "debug", "strict_mode"}


@dataclass
class SSHConfig:
    """Connection target and operating limits for one SSH Runner process."""

    host: str | None = None
    port: int = 22
    user: str | None = None
    password: str | None = None
    key: str | None = None
    known_hosts: str | None = None
    timeout_ms: int = 60000
    rate_limit: bool = True
    rate_limit_max: int = 10
    rate_limit_window_ms: int = 60000
    pool: bool = True
    pool_max_size: int = 3
    pool_ttl_ms: int = 300000
    audit_log: bool = False
    debug: bool = False
    max_chars: int | None = DEFAULT_MAX_CHARS  # None = unlimited
    strict_mode: bool = False

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not 1 <= self.port <= 65535:
            raise ConfigurationError(f"port must be in 1..65535, got {self.port}", key="port")
        if self.timeout_ms < 1:
            raise ConfigurationError(
                f"timeout_ms must be >= 1, got {self.timeout_ms}", key="timeout_ms"
            )
        if self.rate_limit_max < 1:
            raise ConfigurationError(
                f"rate_limit_max must be >= 1, got {self.rate_limit_max}", key="rate_limit_max"
            )
        if self.rate_limit_window_ms < 1:
            raise ConfigurationError(
                f"rate_limit_window_ms must be >= 1, got {self.rate_limit_window_ms}",
                key="rate_limit_window_ms",
            )
        if self.pool_max_size < 1:
            raise ConfigurationError(
                f"pool_max_size must be >= 1, got {self.pool_max_size}", key="pool_max_size"
            )
        if self.pool_ttl_ms < 1:
            raise ConfigurationError(
                f"pool_ttl_ms must be >= 1, got {self.pool_ttl_ms}", key="pool_ttl_ms"
            )
        if self.max_chars is not None and self.max_chars <= 0:
            self.max_chars = None

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000

    def require_connection(self) -> None:
        """Check that a connection target is configured.

        Raises:
            ConfigurationError: Listing every missing required setting
        """
        errors = []
        if not self.host:
            errors.append("Missing required host")
        if not self.user:
            errors.append("Missing required user")
        if errors:
            raise ConfigurationError("\n".join(errors), reason="missing_connection")

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    def to_safe_dict(self) -> dict[str, Any]:
        """Convert config to dictionary with the password masked."""
        data = self.to_dict()
        if data.get("password"):
            data["password"] = "********"
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SSHConfig":
        """Create config from dictionary, ignoring unknown keys."""
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)


def parse_max_chars(raw: str | None) -> int | None:
    """Parse a max-chars setting.

    "none" (any case), zero and negative values disable the limit. Anything
    unparseable falls back to the default.
    """
    if raw is None:
        return DEFAULT_MAX_CHARS
    if raw.strip().lower() == "none":
        return None
    try:
        parsed = int(raw)
    except ValueError:
        return DEFAULT_MAX_CHARS
    return parsed if parsed > 0 else None


def parse_setting(name: str, raw: str) -> Any:
    """Convert a raw string setting to the type of the named config field.

    Raises:
        ConfigurationError: If an integer field cannot be parsed
    """
    if name in _INT_FIELDS:
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid {ENV_PREFIX}{FLAG_NAMES[name].upper()}: {raw}", key=name
            ) from e
    if name in _DEFAULT_ON_FLAGS:
        return raw.strip().lower() != "false"
    if name in _DEFAULT_OFF_FLAGS:
        return raw.strip().lower() == "true"
    if name == "max_chars":
        # None would be skipped when layers merge; SSHConfig reads 0 as unlimited
        return parse_max_chars(raw) or 0
    return raw


def _load_json_config(path: Path, label: str) -> dict[str, Any]:
    try:
        with path.open() as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {label}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to load {label}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{label} must contain a JSON object")
    return data


def load_user_config(profile_name: str = "default") -> dict[str, Any]:
    """Load user configuration from ~/.sshrunner/profiles/<name>.json.

    Args:
        profile_name: Name of profile to load (default: "default")

    Returns:
        Settings from the profile, or an empty dict if it does not exist

    Raises:
        ConfigurationError: If profile file is invalid JSON
    """
    profile_path = Path.home() / ".sshrunner" / "profiles" / f"{profile_name}.json"
    if not profile_path.exists():
        return {}
    return _load_json_config(profile_path, f"profile {profile_name}")


def load_project_config(project_root: Path | None = None) -> dict[str, Any]:
    """Load project-specific configuration from .sshrunner/config.json.

    Args:
        project_root: Directory containing .sshrunner/ (default: current directory)

    Returns:
        Settings from the project file, or an empty dict if it does not exist

    Raises:
        ConfigurationError: If config file is invalid JSON
    """
    if project_root is None:
        project_root = Path.cwd()

    config_path = project_root / ".sshrunner" / "config.json"
    if not config_path.exists():
        return {}
    return _load_json_config(config_path, "project config")


def load_env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Load configuration overrides from SSH_MCP_* environment variables.

    The variable name is the original flag name upper-cased, e.g.
    SSH_MCP_HOST, SSH_MCP_RATELIMITMAX, SSH_MCP_POOLTTL.

    Returns:
        Dictionary of configuration overrides
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    for name, flag in FLAG_NAMES.items():
        raw = env.get(f"{ENV_PREFIX}{flag.upper()}")
        if raw:
            overrides[name] = parse_setting(name, raw)

    return overrides


def merge_configs(*layers: dict[str, Any] | None) -> SSHConfig:
    """Merge setting layers, later layers winning.

    None values inside a layer do not override earlier layers, so unset CLI
    options fall through to the environment and files.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            if value is not None:
                merged[key] = value
    return SSHConfig.from_dict(merged)


def load_config(
    profile_name: str = "default",
    project_root: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> SSHConfig:
    """Load and merge all configuration sources.

    Args:
        profile_name: User profile to load (default: "default")
        project_root: Project root directory (default: current directory)
        overrides: Explicit settings such as CLI options (highest precedence)

    Returns:
        Merged configuration

    Raises:
        ConfigurationError: If any config source is invalid
    """
    return merge_configs(
        load_user_config(profile_name),
        load_project_config(project_root),
        load_env_overrides(),
        overrides,
    )
