# tests/test_logger.py
import json
import logging

from app.infra.logger import emit, emit_error, emit_warn


def test_fields_named_like_log_arguments_are_kept(caplog):
    with caplog.at_level(logging.INFO, logger="app"):
        emit("logger_config", level="DEBUG", event="shadow")
        emit_warn("gate_reject_busy", event="ACTION")
        emit_error("report_failed", level=3)
    recs = [json.loads(r.getMessage()) for r in caplog.records]
    assert [r["event"] for r in recs] == ["logger_config", "gate_reject_busy", "report_failed"]
    assert [r["level"] for r in recs] == ["INFO", "WARNING", "ERROR"]
    assert recs[0]["_level"] == "DEBUG" and recs[0]["_event"] == "shadow"
    assert recs[1]["_event"] == "ACTION"
