"""Pre-flight path checks for file transfers.

Local paths are validated before any network call so misconfiguration is
reported as such and never as an opaque transfer error.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from sshrunner.core.exceptions import LocalPathError
from sshrunner.core.logger import SSHRunnerLogger
from sshrunner.core.transport import FileChannel

HOME_MARKER = "~"


@dataclass
class PathValidation:
    ok: bool
    normalized_path: str
    error: str | None = None
    suggestion: str | None = None

    def raise_for_error(self) -> str:
        """Return the normalized path, or raise LocalPathError if validation failed."""
        if not self.ok:
            raise LocalPathError(
                self.error or "Invalid local path",
                path=self.normalized_path,
                suggestion=self.suggestion or "",
            )
        return self.normalized_path


def normalize_local_path(path: str) -> str:
    return str(Path(path).expanduser().resolve(strict=False))


def validate_upload_source(path: str) -> PathValidation:
    """Check that a local upload source is an existing, readable regular file."""
    if not path or not path.strip():
        return PathValidation(
            ok=False,
            normalized_path=path,
            error="Local path cannot be empty",
            suggestion="Provide an absolute path to the file to upload",
        )

    normalized = normalize_local_path(path.strip())
    source = Path(normalized)

    if not source.exists():
        return PathValidation(
            ok=False,
            normalized_path=normalized,
            error=f"Local file does not exist: {normalized}",
            suggestion="Check the path, or list the directory to find the file",
        )
    if source.is_dir():
        return PathValidation(
            ok=False,
            normalized_path=normalized,
            error=f"Local path is a directory, not a file: {normalized}",
            suggestion="Upload files one at a time, or archive the directory first (tar czf)",
        )
    if not source.is_file():
        return PathValidation(
            ok=False,
            normalized_path=normalized,
            error=f"Local path is not a regular file: {normalized}",
            suggestion="Only regular files can be uploaded",
        )
    if not os.access(normalized, os.R_OK):
        return PathValidation(
            ok=False,
            normalized_path=normalized,
            error=f"Local file is not readable: {normalized}",
            suggestion=f"Check permissions: chmod u+r {normalized}",
        )

    return PathValidation(ok=True, normalized_path=normalized)


def validate_download_target(path: str) -> PathValidation:
    """Check that a local download destination can be written.

    The parent directory must exist and be writable. An existing directory
    at the path itself is rejected.
    """
    if not path or not path.strip():
        return PathValidation(
            ok=False,
            normalized_path=path,
            error="Local path cannot be empty",
            suggestion="Provide an absolute path where the file should be saved",
        )

    normalized = normalize_local_path(path.strip())
    target = Path(normalized)
    parent = target.parent

    if target.is_dir():
        return PathValidation(
            ok=False,
            normalized_path=normalized,
            error=f"Local path is a directory: {normalized}",
            suggestion=f"Include a file name, e.g. {normalized.rstrip('/')}/<name>",
        )
    if not parent.exists():
        return PathValidation(
            ok=False,
            normalized_path=normalized,
            error=f"Local directory does not exist: {parent}",
            suggestion=f"Create it first: mkdir -p {parent}",
        )
    if not parent.is_dir():
        return PathValidation(
            ok=False,
            normalized_path=normalized,
            error=f"Local parent path is not a directory: {parent}",
            suggestion="Choose a destination inside an existing directory",
        )
    if not os.access(parent, os.W_OK):
        return PathValidation(
            ok=False,
            normalized_path=normalized,
            error=f"Local directory is not writable: {parent}",
            suggestion=f"Check permissions: chmod u+w {parent}",
        )

    return PathValidation(ok=True, normalized_path=normalized)


async def expand_remote_home(
    channel: FileChannel, path: str, logger: SSHRunnerLogger | None = None
) -> str:
    """Expand a leading "~" to the remote home directory.

    Never fails: if the remote side cannot resolve the home directory the
    original path is returned unchanged.

    Note:
        The fallback hides real resolution errors (e.g. permission denied on
        realpath) as if the path were already absolute.
    """
    if path != HOME_MARKER and not path.startswith(HOME_MARKER + "/"):
        return path

    try:
        home = await channel.resolve_path(".")
    except Exception as e:  # noqa: BLE001 - expansion is best effort
        if logger:
            logger.warn("Remote home expansion failed", path=path, error=str(e))
        return path

    if path == HOME_MARKER:
        return home
    return home.rstrip("/") + path[len(HOME_MARKER) :]
