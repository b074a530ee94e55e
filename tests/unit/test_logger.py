"""Unit tests for structured JSON logging system."""

import json
import logging
import time
from pathlib import Path

import pytest

from sshrunner.core.logger import JSONFormatter, SSHRunnerLogger


@pytest.fixture
def temp_log_dir(tmp_path):
    """Create temporary log directory."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    return log_dir


@pytest.fixture
def logger(temp_log_dir, monkeypatch):
    """Create logger with temporary directory."""
    monkeypatch.delenv("SSHRUNNER_DISABLE_FILE_LOGGING", raising=False)
    return SSHRunnerLogger(log_dir=str(temp_log_dir), level="DEBUG")


def read_log_lines(logger):
    """Flush handlers, then read and parse JSON log lines."""
    for handler in logger._logger.handlers:
        handler.flush()

    if not logger.log_file.exists():
        return []

    lines = []
    with logger.log_file.open() as f:
        for line in f:
            if line.strip():
                lines.append(json.loads(line))
    return lines


def test_logger_default_directory(tmp_path, monkeypatch):
    """Test logger uses default ~/.sshrunner/logs directory."""
    monkeypatch.delenv("SSHRUNNER_DISABLE_FILE_LOGGING", raising=False)
    fake_home = tmp_path / "fake_home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))

    logger = SSHRunnerLogger()

    expected_dir = Path("~/.sshrunner/logs").expanduser()
    assert logger.log_dir == expected_dir
    assert logger.log_file == expected_dir / "sshrunner.log"
    assert expected_dir.exists()


def test_named_logger_uses_own_file(temp_log_dir, monkeypatch):
    monkeypatch.delenv("SSHRUNNER_DISABLE_FILE_LOGGING", raising=False)
    audit = SSHRunnerLogger(log_dir=str(temp_log_dir), name="sshrunner.audit", level="INFO")
    assert audit.log_file == temp_log_dir / "sshrunner.audit.log"


def test_levels(logger):
    logger.debug("Debug message")
    logger.info("Info message")
    logger.warn("Warning message")
    logger.error("Error message")

    lines = read_log_lines(logger)
    assert [line["level"] for line in lines] == ["DEBUG", "INFO", "WARNING", "ERROR"]
    assert lines[2]["message"] == "Warning message"


def test_structured_logging_with_kv_pairs(logger):
    logger.info("Session closed", target="root@10.0.0.5:22", reason="expired")

    lines = read_log_lines(logger)
    assert len(lines) == 1
    assert lines[0]["message"] == "Session closed"
    assert lines[0]["target"] == "root@10.0.0.5:22"
    assert lines[0]["reason"] == "expired"


def test_log_level_filtering(logger):
    logger.set_level("ERROR")

    logger.debug("Debug message")
    logger.info("Info message")
    logger.warn("Warning message")
    logger.error("Error message")

    lines = read_log_lines(logger)
    assert len(lines) == 1
    assert lines[0]["level"] == "ERROR"


def test_log_level_from_env(temp_log_dir, monkeypatch):
    """Test log level configuration from SSHRUNNER_LOG_LEVEL environment variable."""
    monkeypatch.delenv("SSHRUNNER_DISABLE_FILE_LOGGING", raising=False)
    monkeypatch.setenv("SSHRUNNER_LOG_LEVEL", "ERROR")

    logger = SSHRunnerLogger(log_dir=str(temp_log_dir))
    logger.info("Info message")
    logger.error("Error message")

    lines = read_log_lines(logger)
    assert len(lines) == 1
    assert lines[0]["level"] == "ERROR"


def test_default_level_is_warning(temp_log_dir, monkeypatch):
    monkeypatch.delenv("SSHRUNNER_DISABLE_FILE_LOGGING", raising=False)
    monkeypatch.delenv("SSHRUNNER_LOG_LEVEL", raising=False)

    logger = SSHRunnerLogger(log_dir=str(temp_log_dir))

    assert logger.is_enabled_for("WARNING")
    assert not logger.is_enabled_for("INFO")


def test_set_level_with_warn_alias(logger):
    """Test that 'WARN' is accepted as alias for 'WARNING'."""
    logger.set_level("WARN")

    logger.debug("Debug")
    logger.info("Info")
    logger.warn("Warning")

    lines = read_log_lines(logger)
    assert len(lines) == 1
    assert lines[0]["level"] == "WARNING"


def test_operation_context_manager(logger):
    """Test operation context manager with automatic timing."""
    with logger.operation("sftp_upload", remote_path="/tmp/a"):
        time.sleep(0.01)

    lines = read_log_lines(logger)
    assert len(lines) == 2
    assert lines[0]["message"] == "sftp_upload_start"
    assert lines[1]["message"] == "sftp_upload_end"
    assert lines[1]["remote_path"] == "/tmp/a"
    assert lines[1]["duration_ms"] > 0


def test_operation_context_manager_with_exception(logger):
    """Test operation context manager logs end even on exception."""
    with pytest.raises(ValueError):
        with logger.operation("failing_operation"):
            raise ValueError("Test error")

    lines = read_log_lines(logger)
    assert [line["message"] for line in lines] == ["failing_operation_start", "failing_operation_end"]


def test_json_formatter():
    """Test JSON formatter formats records correctly."""
    formatter = JSONFormatter()
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg="Test message",
        args=(),
        exc_info=None,
    )
    record.kv = {"key1": "value1", "key2": 42, "path": Path("/tmp")}

    data = json.loads(formatter.format(record))

    assert data["level"] == "INFO"
    assert data["message"] == "Test message"
    assert data["key1"] == "value1"
    assert data["key2"] == 42
    assert data["path"] == "/tmp"


def test_timestamp_format(logger):
    logger.info("Test")

    timestamp = read_log_lines(logger)[0]["timestamp"]

    # YYYY-MM-DDTHH:MM:SS.MMMZ
    assert timestamp.endswith("Z")
    assert len(timestamp) == 24


def test_log_rotation_creates_backup(temp_log_dir, monkeypatch):
    monkeypatch.delenv("SSHRUNNER_DISABLE_FILE_LOGGING", raising=False)
    logger = SSHRunnerLogger(log_dir=str(temp_log_dir), max_bytes=100, backup_count=2, level="DEBUG")

    for i in range(50):
        logger.info(f"Message {i}" * 10)
    for handler in logger._logger.handlers:
        handler.flush()

    assert len(list(temp_log_dir.glob("sshrunner.log*"))) > 1


def test_disable_file_logging_via_env(monkeypatch):
    monkeypatch.setenv("SSHRUNNER_DISABLE_FILE_LOGGING", "1")

    logger = SSHRunnerLogger()

    assert logger.log_dir is None
    assert logger.log_file is None
    logger.info("Test message")


def test_console_output_goes_to_stderr(monkeypatch, capsys):
    monkeypatch.setenv("SSHRUNNER_DISABLE_FILE_LOGGING", "1")

    logger = SSHRunnerLogger(level="INFO")
    logger.info("on stderr")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert json.loads(captured.err.strip())["message"] == "on stderr"
