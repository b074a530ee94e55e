"""Outcome records and audit sinks.

Every operation ends in exactly one OutcomeRecord. The engine hands it to
an AuditSink for observability and returns it to the caller on success.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sshrunner.core.logger import SSHRunnerLogger


class OperationKind(str, Enum):
    EXECUTE = "exec"
    UPLOAD = "upload"
    DOWNLOAD = "download"
    LIST = "listFiles"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class OutcomeRecord:
    """Immutable result of one operation.

    Attributes:
        kind: Which operation ran
        descriptor: Human-readable description, e.g. the command or "upload a -> b"
        status: success, failure or timeout
        duration_ms: Wall time from request start to terminal transition
        timestamp: ISO 8601 UTC time the record was produced
        exit_code: Remote exit status, where one exists
        error: Failure message, None on success
        payload: stdout text, a listing, or None for transfers
    """

    kind: OperationKind
    descriptor: str
    status: OutcomeStatus
    duration_ms: int
    timestamp: str = field(
        default_factory=lambda: datetime.now(UTC).isoformat(timespec="milliseconds")
    )
    exit_code: int | None = None
    error: str | None = None
    payload: Any = None

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    def to_audit_dict(self) -> dict[str, Any]:
        """Fields written to the audit log. The payload is left out."""
        entry: dict[str, Any] = {
            "timestamp": self.timestamp,
            "operation": self.kind.value,
            "command": self.descriptor,
            "status": self.status.value,
            "duration": self.duration_ms,
        }
        if self.exit_code is not None:
            entry["exitCode"] = self.exit_code
        if self.error is not None:
            entry["error"] = self.error
        return entry


class AuditSink(ABC):
    """Receives outcome records. Must not be relied on for control flow."""

    @abstractmethod
    def record(self, outcome: OutcomeRecord) -> None: ...


class NullAuditSink(AuditSink):
    def record(self, outcome: OutcomeRecord) -> None:
        return None


class LoggerAuditSink(AuditSink):
    """Writes one structured "audit" log line per outcome."""

    def __init__(self, logger: SSHRunnerLogger) -> None:
        self.logger = logger

    def record(self, outcome: OutcomeRecord) -> None:
        self.logger.info("audit", **outcome.to_audit_dict())


class MemoryAuditSink(AuditSink):
    """Keeps records in a list, for embedding callers that inspect history."""

    def __init__(self) -> None:
        self.records: list[OutcomeRecord] = []

    def record(self, outcome: OutcomeRecord) -> None:
        self.records.append(outcome)
