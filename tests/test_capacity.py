"""Capacity snapshot: conflict set and idle-slot accounting."""

from __future__ import annotations

from noconflict.capacity import build_snapshot
from noconflict.matcher import ConflictMatcher
from noconflict.models import Connectivity
from tests.helpers import item, offline, online


def test_snapshot_collects_idle_slots_of_active_workers():
    x = offline("X")
    workers = [
        x,
        online("a", executors=3, busy=1),
        online("b", executors=2, busy=2),
        offline("c"),
    ]

    snapshot = build_snapshot(x, workers, ConflictMatcher.compile(None, "X"))

    assert snapshot.available == {"a": 2}
    assert snapshot.conflicts == set()
    assert snapshot.total_slots == 2


def test_connecting_workers_offer_capacity():
    x = offline("X")
    connecting = online("a", executors=2)
    connecting.state = Connectivity.CONNECTING

    snapshot = build_snapshot(x, [x, connecting], ConflictMatcher.compile(None, "X"))

    assert snapshot.available == {"a": 2}


def test_workers_not_accepting_tasks_offer_no_capacity():
    x = offline("X")
    snapshot = build_snapshot(
        x, [online("a", accepting_tasks=False)], ConflictMatcher.compile(None, "X")
    )

    assert snapshot.available == {}


def test_conflict_detected_even_when_busy_or_not_accepting():
    x = offline("X")
    workers = [
        online("gpu-1", busy=1),
        online("gpu-2", accepting_tasks=False),
        online("cpu-1"),
    ]

    snapshot = build_snapshot(x, workers, ConflictMatcher.compile("gpu", "X"))

    assert snapshot.conflicts == {"gpu-1", "gpu-2"}
    assert snapshot.available == {"cpu-1": 1}


def test_take_slot_decrements_and_removes_exhausted_provider():
    x = offline("X")
    snapshot = build_snapshot(x, [online("a", executors=2)], ConflictMatcher.compile(None, "X"))

    assert snapshot.take_slot(item("one")) == "a"
    assert snapshot.available == {"a": 1}
    assert snapshot.take_slot(item("two")) == "a"
    assert snapshot.available == {}
    assert snapshot.take_slot(item("three")) is None


def test_take_slot_prefers_providers_in_name_order():
    x = offline("X")
    workers = [online("zeta"), online("alpha"), online("mid")]
    snapshot = build_snapshot(x, workers, ConflictMatcher.compile(None, "X"))

    assert [snapshot.take_slot(item(str(i))) for i in range(3)] == ["alpha", "mid", "zeta"]


def test_take_slot_skips_providers_that_cannot_take_item():
    x = offline("X")
    workers = [online("a", labels=["mac"]), online("b", labels=["linux"])]
    snapshot = build_snapshot(x, workers, ConflictMatcher.compile(None, "X"))

    assert snapshot.take_slot(item("job", label="linux")) == "b"
    assert snapshot.available == {"a": 1}


def test_take_slot_skips_provider_without_node_data():
    x = offline("X")
    workers = [online("a", has_node=False), online("b")]
    snapshot = build_snapshot(x, workers, ConflictMatcher.compile(None, "X"))

    assert snapshot.take_slot(item("job")) == "b"


def test_snapshot_never_writes_back_to_workers():
    x = offline("X")
    provider = online("a", executors=2)
    snapshot = build_snapshot(x, [provider], ConflictMatcher.compile(None, "X"))

    snapshot.take_slot(item("one"))
    snapshot.take_slot(item("two"))

    assert provider.idle_slots == 2
    assert provider.busy == 0
