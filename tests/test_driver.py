from __future__ import annotations

import time

from noconflict.cluster import ClusterSnapshot
from noconflict.config import PolicyBook
from noconflict.driver import RetentionDriver, check_snapshot
from noconflict.models import RetentionPolicy, Verdict
from tests.helpers import MINUTE, NOW, item, offline, online, populate


def _book(**policy) -> PolicyBook:
    return PolicyBook(default=RetentionPolicy(**policy))


def test_tick_checks_every_worker_once(cluster, context):
    populate(cluster, offline("X"), online("Y", idle_minutes=3), items=[item("job", waiting_minutes=6)])
    driver = RetentionDriver(context, _book(in_demand_delay=5, idle_delay=10), interval_seconds=1)

    decisions = {d.worker: d for d in driver.tick()}

    # Y is idle and can take the job, so X is not needed.
    assert decisions["X"].verdict is Verdict.NOOP
    assert decisions["Y"].verdict is Verdict.DEFER
    assert driver.next_due("Y") == NOW + 7 * MINUTE
    assert driver.next_due("X") == NOW + 1 * MINUTE


def test_tick_honours_recheck_delay(cluster, context, clock):
    populate(cluster, online("Y", idle_minutes=3))
    driver = RetentionDriver(context, _book(idle_delay=10), interval_seconds=1)

    assert len(driver.tick()) == 1
    clock.advance(5)
    assert driver.tick() == []
    clock.advance(2)
    [decision] = driver.tick()

    assert decision.verdict is Verdict.DEFER
    assert decision.recheck_minutes == 1


def test_worker_disconnected_once_idle_delay_passes(cluster, context, clock):
    populate(cluster, online("Y", idle_minutes=3))
    driver = RetentionDriver(context, _book(idle_delay=10), interval_seconds=1)

    driver.tick()
    clock.advance(8)
    [decision] = driver.tick()

    assert decision.verdict is Verdict.DISCONNECT
    assert cluster.disconnect_requests[0][0] == "Y"


def test_poke_makes_worker_due_early(cluster, context, clock):
    x = offline("X")
    populate(cluster, x, online("Y", idle_minutes=0))
    driver = RetentionDriver(context, _book(in_demand_delay=0, idle_delay=10), interval_seconds=1)
    driver.tick()

    cluster.enqueue(item("mac-job", label="mac", waiting_minutes=1))
    x.labels.add("mac")
    clock.advance(0.5)
    driver.poke("X")
    decisions = driver.tick()

    assert [d.worker for d in decisions] == ["X"]
    assert decisions[0].verdict is Verdict.LAUNCH


def test_per_worker_policies(cluster, context):
    populate(cluster, online("fast", idle_minutes=3), online("slow", idle_minutes=3))
    book = PolicyBook(
        default=RetentionPolicy(idle_delay=60),
        workers={"fast": RetentionPolicy(idle_delay=2)},
    )
    driver = RetentionDriver(context, book, interval_seconds=1)

    decisions = {d.worker: d.verdict for d in driver.tick()}

    assert decisions == {"fast": Verdict.DISCONNECT, "slow": Verdict.DEFER}


def test_background_thread_ticks_and_stops(cluster, context):
    populate(cluster, online("Y", idle_minutes=30))
    driver = RetentionDriver(context, _book(idle_delay=10), interval_seconds=0.05)

    driver.start()
    deadline = time.time() + 2.0
    while not cluster.disconnect_requests and time.time() < deadline:
        time.sleep(0.01)
    driver.stop()

    assert cluster.disconnect_requests
    assert not driver.running


def test_check_snapshot_reports_decisions_and_events():
    snapshot = ClusterSnapshot.model_validate(
        {
            "now": NOW,
            "workers": [
                {"name": "X"},
                {"name": "Y1", "state": "online", "busy": 1},
            ],
            "items": [{"task_id": "job", "waiting_minutes": 6}],
            "policies": {"workers": {"X": {"inDemandDelay": 5, "conflictsWith": "^Y"}}},
        }
    )

    result = check_snapshot(snapshot)

    verdicts = {d["worker"]: d["verdict"] for d in result["decisions"]}
    assert verdicts == {"X": "launch_suppressed", "Y1": "noop"}
    assert result["events"][0]["conflicts"] == ["Y1"]
