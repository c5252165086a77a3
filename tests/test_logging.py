"""Tests for logging setup and helpers."""

from __future__ import annotations

import pytest

from keybuilder import logging as logging_module


@pytest.fixture
def records():
    """Capture records from a plain in-memory sink."""
    logging_module.logger.remove()
    captured: list[dict] = []
    logging_module.logger.add(lambda message: captured.append(message.record), level="TRACE")
    yield captured
    logging_module.logger.remove()


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logging_module.logger.remove()


def test_setup_logging_creates_log_files(tmp_path):
    """Test that operations and structured logs are created in the log directory."""
    log_dir = tmp_path / "logs"

    logging_module.setup_logging(log_dir=log_dir)
    logging_module.get_logger(source="test").info("hello")
    logging_module.logger.complete()

    assert (log_dir / "operations.log").exists()
    assert (log_dir / "structured.jsonl").exists()
    assert not (log_dir / "debug.log").exists()
    assert "hello" in (log_dir / "operations.log").read_text()


def test_setup_logging_debug_adds_debug_log(tmp_path):
    log_dir = tmp_path / "logs"

    logging_module.setup_logging(debug=True, log_dir=log_dir)
    logging_module.get_logger(source="test").debug("details")
    logging_module.logger.complete()

    assert "details" in (log_dir / "debug.log").read_text()
    assert "details" not in (log_dir / "operations.log").read_text()


def test_setup_logging_survives_unwritable_log_dir(tmp_path):
    """Test that a log directory that cannot be created disables file logging."""
    blocker = tmp_path / "file"
    blocker.write_text("")

    logging_module.setup_logging(log_dir=blocker / "logs")

    assert not (blocker / "logs").exists()


def test_command_output_hidden_below_trace(records):
    """Test the console filter hides raw tool output unless tracing."""
    trace_record = {
        "extra": {"tags": ["command-output"]},
        "level": logging_module.logger.level("TRACE"),
    }
    info_record = {
        "extra": {"tags": ["command-output"]},
        "level": logging_module.logger.level("INFO"),
    }
    other_record = {
        "extra": {"tags": ["storage"]},
        "level": logging_module.logger.level("DEBUG"),
    }

    assert logging_module._should_log_command_output(trace_record) is True
    assert logging_module._should_log_command_output(info_record) is False
    assert logging_module._should_log_command_output(other_record) is True


def test_get_logger_preserves_context_metadata(records):
    """Test bound logger keeps job_id, tags, and source metadata."""
    log = logging_module.get_logger(job_id="job-123", tags=["sizing"], source="sizing")
    log.info("Context test")

    extra = records[-1]["extra"]
    assert extra["job_id"] == "job-123"
    assert extra["tags"] == ["sizing"]
    assert extra["source"] == "sizing"


def test_logger_factory_binds_component(records):
    logging_module.LoggerFactory.for_wizard(step=4).info("step")
    logging_module.LoggerFactory.for_detection().info("detect")

    assert records[0]["extra"]["source"] == "wizard"
    assert records[0]["extra"]["step"] == 4
    assert records[1]["extra"]["tags"] == ["planning", "detection"]


def test_operation_context_logs_success(records):
    with logging_module.operation_context("install", device="/dev/sdb") as log:
        log.info("working")

    messages = [record["message"] for record in records]
    assert messages == ["Install started", "working", "Install completed"]
    assert records[-1]["level"].name == "SUCCESS"
    assert records[0]["extra"]["job_id"].startswith("install-")


def test_operation_context_logs_failure(records):
    with pytest.raises(RuntimeError):
        with logging_module.operation_context("install"):
            raise RuntimeError("boom")

    assert records[-1]["message"] == "Install failed"
    assert records[-1]["extra"]["error"] == "boom"
    assert records[-1]["extra"]["error_type"] == "RuntimeError"
