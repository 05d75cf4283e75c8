"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
import sys

from core.logging_config import JSONFormatter, get_logger, reset_request_id, set_request_id, setup_logging


def _make_record(**kwargs) -> logging.LogRecord:
    values = dict(name="test", level=logging.INFO, pathname="test.py", lineno=1, msg="hello %s", args=("world",), exc_info=None)
    values.update(kwargs)
    return logging.LogRecord(**values)


def test_json_formatter_outputs_valid_json():
    parsed = json.loads(JSONFormatter().format(_make_record()))
    assert parsed["message"] == "hello world"
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "test"
    assert "timestamp" in parsed
    assert "request_id" not in parsed


def test_json_formatter_includes_exception():
    try:
        raise ValueError("test error")
    except ValueError:
        exc_info = sys.exc_info()
    record = _make_record(level=logging.ERROR, msg="fail", args=(), exc_info=exc_info)
    parsed = json.loads(JSONFormatter().format(record))
    assert parsed["exception"]["type"] == "ValueError"
    assert parsed["exception"]["message"] == "test error"


def test_ctx_extras_are_grouped_under_context():
    record = _make_record()
    record.ctx_attempt = 2
    record.ctx_source = "fallback"
    parsed = json.loads(JSONFormatter().format(record))
    assert parsed["context"] == {"ctx_attempt": 2, "ctx_source": "fallback"}


def test_request_id_is_attached_while_set():
    token = set_request_id("req-123")
    try:
        parsed = json.loads(JSONFormatter().format(_make_record()))
    finally:
        reset_request_id(token)
    assert parsed["request_id"] == "req-123"


def test_get_logger_returns_named_logger():
    log = get_logger("my.module")
    assert log.name == "my.module"
    assert isinstance(log, logging.Logger)


def test_setup_logging_idempotent():
    root = logging.getLogger()
    initial_count = len(root.handlers)
    setup_logging()
    setup_logging()
    assert len(root.handlers) <= initial_count + 1


def test_json_formatter_names_the_service():
    parsed = json.loads(JSONFormatter(service="svc").format(_make_record()))
    assert parsed["service"] == "svc"
    assert json.loads(JSONFormatter().format(_make_record()))["service"] == "training-core"
