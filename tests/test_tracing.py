import logging

import pytest

from society_reports.orchestrator import Orchestrator
from society_reports.template_engine.utils.generation_session import GenerationSession
from society_reports.utils.snitch import get_trace_id, snitch, start_trace


def test_snitch_logs_enter_exit_with_trace_id(caplog):
    @snitch
    def add(a, b):
        return a + b

    tid = start_trace("TEST-TRACE-001")
    with caplog.at_level(logging.INFO, logger="REPORT_WORKFLOW"):
        assert add(1, 2) == 3

    assert get_trace_id() == tid
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("[TEST-TRACE-001] >> ENTER:") for m in messages)
    assert any(m.startswith("[TEST-TRACE-001] OK EXIT:") for m in messages)


def test_snitch_logs_crash_and_reraises(caplog):
    @snitch
    def boom():
        raise RuntimeError("bad sheet")

    start_trace("TEST-TRACE-002")
    with caplog.at_level(logging.INFO, logger="REPORT_WORKFLOW"), pytest.raises(RuntimeError):
        boom()
    assert any("!! CRASH" in r.getMessage() and "bad sheet" in r.getMessage() for r in caplog.records)


def test_orchestrator_starts_a_trace_per_call():
    start_trace("OLD")
    with pytest.raises(Exception):
        Orchestrator().parse_records(b"", filename="members.xls")
    assert get_trace_id().startswith("run-")


def test_generation_session_status():
    with GenerationSession("bill", record_count=2) as session:
        session.log_sheet("Bill Register")
    assert session.status == "success"

    with GenerationSession("bill") as session:
        session.extend_warnings(["Template fields not found in data: X"])
    summary = session.get_summary()
    assert summary["status"] == "success_with_warnings"
    assert summary["warnings"] == ["Template fields not found in data: X"]


def test_generation_session_records_crash():
    with pytest.raises(ValueError):
        with GenerationSession("receipt") as session:
            raise ValueError("broken row")
    assert session.status == "fatal"
    assert session.error_message == "broken row"
    assert "ValueError" in session.error_traceback


def test_log_records_carry_trace_id():
    from society_reports.logger_config import TraceIdFilter

    start_trace("TEST-TRACE-003")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
    assert TraceIdFilter().filter(record) is True
    assert record.trace_id == "TEST-TRACE-003"


@pytest.mark.parametrize("env_value,expected", [
    (None, logging.INFO),
    ("debug", logging.DEBUG),
    ("WARNING", logging.WARNING),
    ("loud", logging.INFO),
])
def test_log_level_from_environment(monkeypatch, env_value, expected):
    from society_reports.system_config import sys_config

    if env_value is None:
        monkeypatch.delenv("LOG_LEVEL", raising=False)
    else:
        monkeypatch.setenv("LOG_LEVEL", env_value)
    assert sys_config.log_level == expected
