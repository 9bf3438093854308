from __future__ import annotations

import json

import pytest

from noconflict.audit import (
    AuditLogger,
    MemorySink,
    RetentionEvent,
    RetentionEventType,
    configure_audit_logger,
    format_time_span,
    get_audit_logger,
)
from noconflict.models import RetentionPolicy, Verdict
from noconflict.strategy import OnDemandRetentionStrategy
from tests.helpers import item, offline, populate


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0.012, "12 ms"),
        (4.5, "4.5 sec"),
        (42, "42 sec"),
        (360, "6 min 0 sec"),
        (395, "6 min 35 sec"),
        (660, "11 min"),
        (3900, "1 hr 5 min"),
        (36000, "10 hr"),
        (86400 * 3 + 7200, "3 days 2 hr"),
        (86400, "1 day 0 hr"),
        (-5, "0 ms"),
    ],
)
def test_format_time_span(seconds, expected):
    assert format_time_span(seconds) == expected


def _event(**kwargs) -> RetentionEvent:
    defaults = dict(
        event_type=RetentionEventType.LAUNCH_SUPPRESSED,
        worker="X",
        message="Would launch worker [X]",
        timestamp_unix=1_700_000_000.0,
        demand_seconds=360.0,
        conflicts_with="^Y",
        conflicts=["Y1"],
    )
    defaults.update(kwargs)
    return RetentionEvent(**defaults)


def test_event_to_dict_omits_unset_fields():
    data = _event().to_dict()

    assert data == {
        "event": "launch_suppressed",
        "ts": 1_700_000_000.0,
        "worker": "X",
        "message": "Would launch worker [X]",
        "demand_seconds": 360.0,
        "conflicts_with": "^Y",
        "conflicts": ["Y1"],
    }


def _lines(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


def test_audit_logger_writes_each_event_immediately(tmp_path):
    path = tmp_path / "logs" / "audit.json"
    audit = AuditLogger(output_path=str(path))

    audit.emit(_event(event_type=RetentionEventType.LAUNCH))
    audit.emit(_event(event_type=RetentionEventType.INVALID_PATTERN, error="bad"))

    events = _lines(path)
    assert [e["event"] for e in events] == ["launch", "invalid_pattern"]
    assert events[0]["timestamp"] == "2023-11-14T22:13:20Z"
    assert audit.stats() == {"events_written": 2, "events_failed": 0}
    audit.close()


def test_events_from_a_check_are_on_disk_when_it_returns(tmp_path, cluster):
    path = tmp_path / "audit.json"
    audit = AuditLogger(output_path=str(path))
    x = offline("X")
    populate(cluster, x, items=[item("job", waiting_minutes=6)])
    strategy = OnDemandRetentionStrategy(RetentionPolicy(in_demand_delay=5, conflicts_with="("))

    decision = strategy.evaluate(x, cluster.context(sink=audit))

    assert decision.verdict is Verdict.LAUNCH
    assert [e["event"] for e in _lines(path)] == ["invalid_pattern", "launch"]
    audit.close()


def test_audit_logger_reopens_in_append_mode_after_close(tmp_path):
    path = tmp_path / "audit.json"
    audit = AuditLogger(output_path=str(path))

    audit.emit(_event())
    audit.close()
    audit.emit(_event(event_type=RetentionEventType.DISCONNECT, cause="idle_timeout"))
    audit.close()

    events = _lines(path)
    assert len(events) == 2
    assert events[1]["cause"] == "idle_timeout"


def test_audit_logger_counts_write_failures(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    audit = AuditLogger(output_path=str(blocker / "audit.json"))

    audit.emit(_event())

    assert audit.stats() == {"events_written": 0, "events_failed": 1}


def test_global_audit_logger_is_configurable(tmp_path):
    first = configure_audit_logger(output_path=str(tmp_path / "a.json"))
    assert get_audit_logger() is first

    second = configure_audit_logger(output_path=str(tmp_path / "b.json"))
    assert get_audit_logger() is second


def test_memory_sink_filters_by_type():
    sink = MemorySink()
    sink.emit(_event())
    sink.emit(_event(event_type=RetentionEventType.LAUNCH))

    assert len(sink.of_type(RetentionEventType.LAUNCH)) == 1
    sink.clear()
    assert sink.events == []
