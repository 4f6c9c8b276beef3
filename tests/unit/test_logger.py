"""
Unit tests for structured logging utility (src/utils/logger.py)

Tests covering:
- Flattening and truncation of game output
- JSON log formatting with required fields
- Operation timing and the log_operation decorator
"""

import json
import logging

import pytest

from src.utils.logger import StructuredLogger, get_logger, log_operation, truncate_text


class TestTruncateText:
    def test_short_text_unchanged(self):
        assert truncate_text("Taken.") == "Taken."

    def test_newlines_flattened(self):
        assert truncate_text("West of House\nYou are standing in an open field.\n") == (
            "West of House | You are standing in an open field."
        )

    def test_long_text_cut(self):
        result = truncate_text("x" * 200, max_length=20)
        assert len(result) == 20
        assert result.endswith("...")

    def test_empty(self):
        assert truncate_text("") == ""
        assert truncate_text(None) == ""


class TestStructuredLogger:
    def test_format_has_required_fields(self):
        logger = StructuredLogger("test.format")
        entry = json.loads(
            logger._format_log(
                "INFO",
                "compared seed",
                operation="compare_seed",
                context={"seed": 42},
                duration_ms=12.3456,
            )
        )

        assert entry["level"] == "INFO"
        assert entry["message"] == "compared seed"
        assert entry["operation"] == "compare_seed"
        assert entry["context"] == {"seed": 42}
        assert entry["duration_ms"] == 12.35
        assert entry["timestamp"].endswith("Z")

    def test_optional_fields_omitted(self):
        entry = json.loads(StructuredLogger("test.minimal")._format_log("DEBUG", "hello"))
        assert set(entry) == {"timestamp", "level", "message"}

    def test_warning_carries_error(self, caplog):
        logger = StructuredLogger("test.warning")
        with caplog.at_level(logging.WARNING, logger="test.warning"):
            logger.warning("seed unavailable", context={"seed": 7}, error="no session")

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["error"] == "no session"
        assert entry["context"]["seed"] == 7

    def test_get_logger(self):
        assert isinstance(get_logger("test.factory"), StructuredLogger)


class TestLogOperation:
    def test_logs_completion(self, caplog):
        @log_operation("compare_seed")
        def compare(seed=None):
            return seed * 2

        with caplog.at_level(logging.DEBUG):
            assert compare(seed=21) == 42

        entries = [json.loads(r.getMessage()) for r in caplog.records if r.name == __name__]
        completed = [e for e in entries if e["message"] == "Completed compare_seed"]
        assert completed
        assert completed[0]["context"]["seed"] == 21
        assert "duration_ms" in completed[0]

    def test_logs_failure_and_reraises(self, caplog):
        @log_operation("save_baseline")
        def save():
            raise OSError("disk full")

        with caplog.at_level(logging.DEBUG):
            with pytest.raises(OSError):
                save()

        entries = [json.loads(r.getMessage()) for r in caplog.records if r.name == __name__]
        failed = [e for e in entries if e["message"] == "Failed save_baseline"]
        assert failed[0]["error"] == "disk full"
