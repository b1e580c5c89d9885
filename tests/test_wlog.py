"""
Tests for logging setup, trace ids and fluent entries.
"""
import io
import json
import logging
from datetime import timezone

import pytest

from wkit.config import Settings
from wkit.wlog.context import get_trace_id, reset_trace_id, with_trace_id
from wkit.wlog.entry import msg, msgf
from wkit.wlog.handlers import LogManager, load_timezone


@pytest.fixture
def json_log():
    """LogManager writing JSON lines to a buffer on an isolated logger."""
    stream = io.StringIO()
    logger = logging.getLogger("wkit.tests.json")
    logger.propagate = False
    manager = LogManager(Settings(LOG_JSON=True, SERVICE_NAME="svc"), stream, logger)
    manager.start()
    yield logger, stream
    manager.shutdown()


def _records(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def _log_through_helper(logger):
    msg("from helper", logger).skip(1).info()


def test_entry_fields_error_and_caller(json_log):
    logger, stream = json_log

    msg("order created", logger).field("order_id", "o1").err(ValueError("late")).info()

    record = _records(stream)[0]
    assert record["message"] == "order created"
    assert record["level"] == "INFO"
    assert record["order_id"] == "o1"
    assert record["error"] == "late"
    assert record["service"] == "svc"
    assert record["caller"] == "test_entry_fields_error_and_caller"
    assert record["line"].startswith("test_wlog.py:")


def test_skip_reports_outer_caller(json_log):
    logger, stream = json_log

    _log_through_helper(logger)

    assert _records(stream)[0]["caller"] == "test_skip_reports_outer_caller"


def test_trace_id_from_context(json_log):
    logger, stream = json_log

    token = with_trace_id("trace-1")
    try:
        assert get_trace_id() == "trace-1"
        logger.info("inside")
    finally:
        reset_trace_id(token)
    logger.info("outside")

    inside, outside = _records(stream)
    assert inside["trace_id"] == "trace-1"
    assert "trace_id" not in outside
    assert get_trace_id() == ""


def test_explicit_trace_overrides_context(json_log):
    logger, stream = json_log
    token = with_trace_id("ctx")
    try:
        msg("x", logger).trace("explicit").warn()
    finally:
        reset_trace_id(token)
    assert _records(stream)[0]["trace_id"] == "explicit"


def test_msgf_and_level_filtering(json_log):
    logger, stream = json_log
    logger.setLevel(logging.INFO)

    entry = msgf("retry %d of %d", 2, 3)
    entry.logger = logger
    entry.debug()
    entry.error()

    records = _records(stream)
    assert len(records) == 1
    assert records[0]["message"] == "retry 2 of 3"
    assert records[0]["level"] == "ERROR"


def test_fatal_and_panic(json_log):
    logger, _ = json_log
    with pytest.raises(SystemExit):
        msg("cannot continue", logger).fatal()
    with pytest.raises(RuntimeError, match="broken invariant"):
        msg("broken invariant", logger).panic()


def test_console_format_appends_trace_and_fields():
    stream = io.StringIO()
    logger = logging.getLogger("wkit.tests.console")
    logger.propagate = False
    manager = LogManager(Settings(LOG_JSON=False, ENV="development"), stream, logger)
    manager.start()
    try:
        token = with_trace_id("t-9")
        try:
            msg("hello", logger).field("k", "v").info()
        finally:
            reset_trace_id(token)
        manager.flush()
    finally:
        manager.shutdown()

    line = stream.getvalue().strip()
    assert "INFO wkit.tests.console: hello" in line
    assert line.endswith("[trace_id=t-9 k=v]")
    assert logger.handlers == []


def test_production_env_uses_json():
    assert LogManager(Settings(ENV="production", LOG_JSON=False)).use_json
    assert not LogManager(Settings(ENV="development", LOG_JSON=False)).use_json


def test_unknown_timezone_falls_back_to_utc():
    assert load_timezone("Not/AZone") is timezone.utc
