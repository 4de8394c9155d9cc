"""Unit tests for the logging context, filter and formatters."""

import json
import logging

import pytest

from ascendant.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    current_log_context,
    log_context,
)


def make_record(**extra):
    record = logging.makeLogRecord({"name": "ascendant.test", "levelname": "INFO", "msg": "hello"})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestLogContext:
    def test_nested_blocks_inherit_and_restore(self):
        with log_context(user_id=7, operation="tracker.complete_quest"):
            with log_context(tracker_id=3, operation="penalty.daily_refresh"):
                inner = current_log_context()
            outer = current_log_context()

        assert inner == {"user_id": 7, "tracker_id": 3, "operation": "penalty.daily_refresh"}
        assert outer == {"user_id": 7, "operation": "tracker.complete_quest"}
        assert current_log_context() == {}

    def test_none_fields_are_not_bound(self):
        with log_context(user_id=None, operation="leaderboard.read"):
            assert current_log_context() == {"operation": "leaderboard.read"}

    def test_context_restored_after_error(self):
        with pytest.raises(RuntimeError):
            with log_context(user_id=1):
                raise RuntimeError("boom")

        assert current_log_context() == {}


@pytest.mark.unit
class TestContextFilter:
    def test_enriches_from_context(self):
        record = make_record()

        with log_context(user_id=9, tracker_id=4, operation="upgrade.apply"):
            assert ContextFilter().filter(record) is True

        assert (record.user_id, record.tracker_id, record.operation) == (9, 4, "upgrade.apply")

    def test_explicit_extra_wins(self):
        record = make_record(user_id=1)

        with log_context(user_id=9):
            ContextFilter().filter(record)

        assert record.user_id == 1
        assert record.tracker_id == "N/A"


@pytest.mark.unit
class TestJSONFormatter:
    def test_context_and_extra_fields(self):
        record = make_record(attempt=2)
        with log_context(user_id=5, operation="sidequest.complete"):
            ContextFilter().filter(record)

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "hello"
        assert payload["user_id"] == 5
        assert payload["operation"] == "sidequest.complete"
        assert "tracker_id" not in payload
        assert payload["extra"] == {"attempt": 2}
