"""Tests for the nsrip logging configuration."""
import json
import logging

from nsrip.logging_config import (
    ContextAdapter,
    JSONLFormatter,
    get_logger,
    get_run_id,
    reset_run_id,
    set_run_id,
    setup_logging,
)


def _read_jsonl(path):
    return [json.loads(line) for line in path.read_text().splitlines() if line]


def test_file_logging_writes_json_lines(tmp_path):
    log_file = tmp_path / "logs" / "nsrip.jsonl"
    logger = setup_logging("test", log_level="DEBUG", log_file=str(log_file), enable_console=False)

    logger.info("Dispatch starting", extra={"workers": 4, "queries": 10, "state": "starting"})
    for handler in logger.handlers:
        handler.flush()

    entries = _read_jsonl(log_file)
    entry = entries[-1]
    assert entry["message"] == "Dispatch starting"
    assert entry["level"] == "INFO"
    assert entry["component"] == "test"
    assert entry["logger"] == "nsrip.test"
    assert entry["workers"] == 4
    assert entry["queries"] == 10


def test_run_id_is_injected():
    formatter = JSONLFormatter(component="test")
    record = logging.LogRecord("nsrip.test", logging.INFO, __file__, 1, "hello", None, None)

    token = set_run_id("run-123")
    try:
        assert get_run_id() == "run-123"
        payload = json.loads(formatter.format(record))
    finally:
        reset_run_id(token)

    assert payload["run_id"] == "run-123"
    assert "run_id" not in json.loads(formatter.format(record))


def test_exception_details_are_serialized():
    formatter = JSONLFormatter(component="test")
    try:
        1 / 0
    except ZeroDivisionError:
        import sys
        record = logging.LogRecord("nsrip.test", logging.ERROR, __file__, 1, "math", None, sys.exc_info())

    payload = json.loads(formatter.format(record))
    assert payload["exception"]["type"] == "ZeroDivisionError"


def test_context_adapter_merges_worker_id(tmp_path):
    log_file = tmp_path / "worker.jsonl"
    setup_logging("adapter", log_level="DEBUG", log_file=str(log_file), enable_console=False)

    log = get_logger("adapter", context={"worker_id": 3})
    assert isinstance(log, ContextAdapter)
    log.info("Query answered", extra={"domain": "a.test"})
    for handler in logging.getLogger("nsrip.adapter").handlers:
        handler.flush()

    entry = _read_jsonl(log_file)[-1]
    assert entry["worker_id"] == 3
    assert entry["domain"] == "a.test"
