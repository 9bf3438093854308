"""Builders shared by the test modules."""

from __future__ import annotations

from typing import Iterable, Optional

from noconflict.cluster import Cluster, PendingItem, Worker
from noconflict.models import Connectivity

NOW = 1_700_000_000.0
MINUTE = 60.0


class FixedClock:
    """Clock the tests move by hand."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += minutes * MINUTE


def offline(name: str, labels: Iterable[str] = ("build",), **kwargs) -> Worker:
    return Worker(name=name, labels=set(labels), state=Connectivity.OFFLINE, **kwargs)


def online(
    name: str,
    labels: Iterable[str] = ("build",),
    *,
    executors: int = 1,
    busy: int = 0,
    idle_minutes: float = 0.0,
    now: float = NOW,
    **kwargs,
) -> Worker:
    return Worker(
        name=name,
        labels=set(labels),
        state=Connectivity.ONLINE,
        executors=executors,
        busy=busy,
        idle_since=now - idle_minutes * MINUTE,
        **kwargs,
    )


def item(
    task_id: str,
    label: Optional[str] = "build",
    *,
    waiting_minutes: float = 0.0,
    now: float = NOW,
) -> PendingItem:
    return PendingItem(task_id, label=label, buildable_since=now - waiting_minutes * MINUTE)


def populate(cluster: Cluster, *workers: Worker, items: Iterable[PendingItem] = ()) -> Cluster:
    for worker in workers:
        cluster.add_worker(worker)
    for pending in items:
        cluster.enqueue(pending)
    return cluster
