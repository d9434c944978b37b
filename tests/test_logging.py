"""Tests for log redaction: secrets masked, case free text never written to logs."""

import logging

from case_workflow.logging_config import RedactionFilter, _redact_message, _sanitize_extra


def _record(msg, args=()) -> logging.LogRecord:
    return logging.LogRecord("t", logging.INFO, __file__, 1, msg, args, None)


def test_secrets_masked() -> None:
    assert _redact_message("api_key=abc123 case_id=4") == "api_key=*** case_id=4"
    assert "hunter2" not in _redact_message("password: hunter2")


def test_case_content_redacted() -> None:
    out = _redact_message("note=privileged, status=CLOSED")
    assert out == "note=[REDACTED], status=CLOSED"
    assert "Smith" not in _redact_message("title=Smith")


def test_sanitize_extra() -> None:
    out = _sanitize_extra({"Authorization": "Bearer x", "note": "strategy", "case_id": 7})
    assert out == {"Authorization": "***", "note": "[REDACTED]", "case_id": 7}
    assert _sanitize_extra(None) == {}


def test_filter_rewrites_message_and_args() -> None:
    record = _record("Change %s with %s", ("note=secret-plan", 3))
    assert RedactionFilter().filter(record) is True
    assert record.getMessage() == "Change note=[REDACTED] with 3"


def test_service_rejection_log_has_no_note_text(service, make_case, caplog) -> None:
    case_id = make_case()
    with caplog.at_level(logging.INFO, logger="case_workflow"):
        result = service.change_case_status(
            case_id, "CLOSED", "alice", 0, outcome="SETTLED", note="client admitted liability"
        )
    assert not result.ok
    assert "InvalidTransition" in caplog.text
    assert "admitted liability" not in caplog.text
