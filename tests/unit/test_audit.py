"""Tests for outcome records and audit sinks."""

import json

from sshrunner.core.audit import (
    LoggerAuditSink,
    MemoryAuditSink,
    NullAuditSink,
    OperationKind,
    OutcomeRecord,
    OutcomeStatus,
)


def make_record(**kwargs):
    defaults = {
        "kind": OperationKind.EXECUTE,
        "descriptor": "uptime",
        "status": OutcomeStatus.SUCCESS,
        "duration_ms": 12,
    }
    defaults.update(kwargs)
    return OutcomeRecord(**defaults)


class TestOutcomeRecord:
    def test_success_flag(self):
        assert make_record().success is True
        assert make_record(status=OutcomeStatus.TIMEOUT).success is False

    def test_audit_dict(self):
        record = make_record(exit_code=0, payload="secret output")
        entry = record.to_audit_dict()

        assert entry["operation"] == "exec"
        assert entry["command"] == "uptime"
        assert entry["status"] == "success"
        assert entry["duration"] == 12
        assert entry["exitCode"] == 0
        assert "error" not in entry
        assert "secret output" not in json.dumps(entry)

    def test_failure_audit_dict(self):
        record = make_record(
            kind=OperationKind.DOWNLOAD,
            descriptor="download /a -> /b",
            status=OutcomeStatus.FAILURE,
            error="Remote file does not exist: /a",
        )
        entry = record.to_audit_dict()

        assert entry["operation"] == "download"
        assert entry["error"] == "Remote file does not exist: /a"
        assert "exitCode" not in entry

    def test_timestamp_is_utc_iso(self):
        assert make_record().timestamp.endswith("+00:00")


class TestSinks:
    def test_memory_sink(self):
        sink = MemoryAuditSink()
        sink.record(make_record())
        sink.record(make_record(descriptor="df -h"))
        assert [r.descriptor for r in sink.records] == ["uptime", "df -h"]

    def test_null_sink(self):
        NullAuditSink().record(make_record())

    def test_logger_sink_writes_one_line(self, logger):
        LoggerAuditSink(logger).record(make_record(exit_code=0))

        for handler in logger._logger.handlers:
            handler.flush()
        lines = [json.loads(line) for line in logger.log_file.read_text().splitlines()]
        audit_lines = [line for line in lines if line["message"] == "audit"]

        assert len(audit_lines) == 1
        assert audit_lines[0]["command"] == "uptime"
        assert audit_lines[0]["status"] == "success"
        assert audit_lines[0]["exitCode"] == 0
