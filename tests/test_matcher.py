from __future__ import annotations

import logging

import pytest

from noconflict.audit import MemorySink, RetentionEventType
from noconflict.matcher import (
    ActiveMatcher,
    ConflictMatcher,
    DisabledMatcher,
    validate_conflicts_with,
)


@pytest.mark.parametrize("pattern", [None, "", "   "])
def test_blank_pattern_is_disabled(pattern):
    matcher = ConflictMatcher.compile(pattern, "X")

    assert isinstance(matcher, DisabledMatcher)
    assert matcher.active is False
    assert matcher.matches("anything") is False


def test_active_matcher_searches_anywhere_in_name():
    matcher = ConflictMatcher.compile("gpu", "X")

    assert isinstance(matcher, ActiveMatcher)
    assert matcher.matches("pool-gpu-1")
    assert not matcher.matches("cpu-1")


def test_anchors_are_honoured():
    matcher = ConflictMatcher.compile("^Y", "X")

    assert matcher.matches("Y1")
    assert not matcher.matches("XY1")


def test_invalid_pattern_disables_and_reports(caplog):
    sink = MemorySink()

    with caplog.at_level(logging.ERROR, logger="noconflict.matcher"):
        matcher = ConflictMatcher.compile("a(b", "worker-7", sink)

    assert isinstance(matcher, DisabledMatcher)
    assert matcher.error
    assert not matcher.matches("a(b")

    [event] = sink.events
    assert event.event_type is RetentionEventType.INVALID_PATTERN
    assert event.worker == "worker-7"
    assert event.conflicts_with == "a(b"
    assert "~/a(b/" in event.message
    assert "worker-7" in caplog.text


def test_invalid_pattern_without_sink_still_logs(caplog):
    with caplog.at_level(logging.ERROR, logger="noconflict.matcher"):
        ConflictMatcher.compile("[", "X")

    assert "Invalid conflicts_with regex ~/[/ for worker X" in caplog.text


def test_rejecting_sink_does_not_break_compile():
    class RejectingSink:
        def emit(self, event):
            raise OSError("disk full")

    assert isinstance(ConflictMatcher.compile("[", "X", RejectingSink()), DisabledMatcher)


@pytest.mark.parametrize("value", [None, "", "  ", "^gpu-[0-9]+$", "build|test"])
def test_validate_accepts_valid_or_blank(value):
    result = validate_conflicts_with(value)

    assert result.ok is True
    assert result.message is None


def test_validate_reports_compile_error():
    result = validate_conflicts_with("gpu-(")

    assert result.ok is False
    assert result.message.startswith("Invalid regex: ")
