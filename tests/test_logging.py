"""
Structured logging helpers.
"""

import logging

import pytest

from util.logging import StructuredLogger, sanitize_payload


@pytest.fixture
def structured(caplog):
    caplog.set_level(logging.DEBUG, logger="tiered_retrieval_test")
    return StructuredLogger("tiered_retrieval_test")


class TestStructuredLogger:
    """Level selection and message format."""

    def test_success_is_info(self, structured, caplog):
        structured.log_operation("vector.put", "success", {"record_id": "a"})

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert "Operation: vector.put, Status: success" in record.getMessage()
        assert "'record_id': 'a'" in record.getMessage()

    @pytest.mark.parametrize("status", ["fallback", "skipped", "clamped", "warning"])
    def test_degraded_statuses_are_warnings(self, structured, caplog, status):
        structured.log_operation("x", status)

        assert caplog.records[-1].levelno == logging.WARNING

    def test_failures_are_errors(self, structured, caplog):
        structured.log_operation("x", "failed")

        assert caplog.records[-1].levelno == logging.ERROR

    def test_safety_override_is_warning(self, structured, caplog):
        structured.log_safety_override("qa_1", 0.99123, 0.1)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "safety.override" in record.getMessage()
        assert "0.9912" in record.getMessage()

    def test_match_result_truncates_query(self, structured, caplog):
        structured.log_match_result("x" * 200, "qa_1", 0.5, "semantic_qa", 3)

        message = caplog.records[-1].getMessage()
        assert "x" * 61 not in message
        assert "..." in message

    def test_corpus_import_with_skips_is_warning(self, structured, caplog):
        structured.log_corpus_import("qa.csv", 3, 1, ["row 2: answer cannot be empty"])

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "row 2" in record.getMessage()

    def test_decision_logged_with_mode(self, structured, caplog):
        structured.log_decision("document", 95.0, False, 2)

        message = caplog.records[-1].getMessage()
        assert "Operation: decision, Status: document" in message
        assert "'context_size': 2" in message


def test_sanitize_payload():
    assert sanitize_payload("short") == "short"
    assert sanitize_payload("a" * 100) == "a" * 60 + "..."
    assert sanitize_payload({"q": "b" * 70, "n": 3}) == {"q": "b" * 60 + "...", "n": 3}
    assert sanitize_payload(["c" * 61]) == ["c" * 60 + "..."]
