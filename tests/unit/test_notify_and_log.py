import json
import logging

import pytest

import hunterkit.core.log as hlog
from hunterkit.core.log import JsonFormatter, get_logger, log_context
from hunterkit.runtime.notify import LoggingNotifier, Notifier

pytestmark = pytest.mark.unit


def _events(caplog, event):
    return [r for r in caplog.records if getattr(r, "event", None) == event]


def test_logging_notifier_levels(caplog):
    caplog.set_level(logging.DEBUG, logger="hunterkit")
    n = LoggingNotifier()
    assert isinstance(n, Notifier)

    n.information("Received 3 tasks from the coordinator.")
    n.technical_failure("Task list request failed: boom", fatal=True)
    n.technical_failure("could not connect", fatal=False)

    [info] = _events(caplog, "notify.information")
    assert info.levelno == logging.INFO
    assert info.getMessage() == "Received 3 tasks from the coordinator."

    fatal, soft = _events(caplog, "notify.technical_failure")
    assert (fatal.levelno, fatal.fatal) == (logging.ERROR, True)
    assert (soft.levelno, soft.fatal) == (logging.WARNING, False)


def test_json_formatter_includes_context_and_fields():
    log = get_logger("test.json")
    record = None

    class _Grab(logging.Handler):
        def emit(self, r):
            nonlocal record
            record = r

    handler = _Grab()
    log.logger.addHandler(handler)
    try:
        with log_context(cycle_id="c1", task_id=9):
            log.info("pipeline.decision", event="pipeline.decision", decision="admit")
            out = json.loads(JsonFormatter().format(record))
    finally:
        log.logger.removeHandler(handler)

    assert out["message"] == "pipeline.decision"
    assert out["decision"] == "admit"
    assert out["level"] == "INFO"
    assert out["logger"] == "hunterkit.test.json"
    assert (out["cycle_id"], out["task_id"]) == ("c1", 9)


def _stream_handlers():
    return [h for h in logging.getLogger("hunterkit").handlers if h.get_name() == "_hunterkit_stream_handler"]


def test_configure_from_env_attaches_and_detaches_stdout(monkeypatch):
    before = logging.getLogger("hunterkit").level
    try:
        monkeypatch.setenv("HUNTERKIT_LOG_STDOUT", "1")
        monkeypatch.setenv("HUNTERKIT_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("HUNTERKIT_LOG_PRETTY", "1")
        hlog.configure_from_env()
        [handler] = _stream_handlers()
        assert isinstance(handler.formatter, hlog.HumanFormatter)
        assert logging.getLogger("hunterkit").level == logging.WARNING

        monkeypatch.setenv("HUNTERKIT_LOG_STDOUT", "0")
        hlog.configure_from_env()
        assert _stream_handlers() == []
    finally:
        hlog.enable_stdout_logging(level="DEBUG", json_output=False, pretty=True)
        logging.getLogger("hunterkit").setLevel(before)


def test_fields_clashing_with_record_attributes_are_prefixed(caplog):
    caplog.set_level(logging.DEBUG, logger="hunterkit")
    get_logger("test.fields").info("x", event="test.fields", name="clash", tasks=3)
    [rec] = [r for r in caplog.records if getattr(r, "event", None) == "test.fields"]
    assert rec.name == "hunterkit.test.fields"
    assert rec.field_name == "clash"
    assert rec.tasks == 3
