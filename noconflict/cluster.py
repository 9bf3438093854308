"""
In-memory scheduler state: workers, the buildable queue and lifecycle actions.

Cluster is a reference implementation of the collaborator protocols. It is
what the CLI and HTTP surfaces evaluate against, and what tests fake the
scheduler with. Every mutation takes the same lock that retention checks
hold, so a check never sees a half-applied assignment.

Usage:
    cluster = Cluster()
    cluster.add_worker(Worker("gpu-1", executors=2, labels={"gpu"}))
    cluster.enqueue(PendingItem("train-42", label="gpu"))

    strategy = OnDemandRetentionStrategy(policy)
    strategy.check(cluster.get_worker("gpu-1"), cluster.context())
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from noconflict.config import PolicyBook
from noconflict.exceptions import UnknownWorkerError
from noconflict.models import SECONDS_PER_MINUTE, Connectivity, OfflineCause
from noconflict.protocol import DiagnosticsSink, SchedulerContext

logger = logging.getLogger(__name__)


@dataclass
class PendingItem:
    """A buildable queue item requiring an (optional) worker label."""

    task_id: str
    label: Optional[str] = None
    buildable_since: float = field(default_factory=time.time)


@dataclass(frozen=True)
class LabelNode:
    """Capability test: a worker can take an item if it carries the item's label."""

    labels: frozenset

    def can_take(self, item: Any) -> Optional[str]:
        label = getattr(item, "label", None)
        if label is None or label in self.labels:
            return None
        return f"no label '{label}' on worker"


@dataclass
class Worker:
    """A worker with a fixed number of executors."""

    name: str
    executors: int = 1
    labels: Set[str] = field(default_factory=set)
    state: Connectivity = Connectivity.OFFLINE
    launch_supported: bool = True
    accepting_tasks: bool = True
    busy: int = 0
    idle_since: float = field(default_factory=time.time)
    # False simulates a worker whose backing node data has gone away.
    has_node: bool = True

    @property
    def idle_slots(self) -> int:
        return max(0, self.executors - self.busy)

    @property
    def is_idle(self) -> bool:
        return self.busy == 0

    @property
    def node(self) -> Optional[LabelNode]:
        if not self.has_node:
            return None
        return LabelNode(frozenset(self.labels))


class WorkerSpec(BaseModel):
    """Worker entry of a cluster snapshot."""

    model_config = ConfigDict(extra="forbid")

    name: str
    state: Connectivity = Connectivity.OFFLINE
    executors: int = Field(default=1, ge=0)
    busy: int = Field(default=0, ge=0)
    labels: List[str] = Field(default_factory=list)
    launch_supported: bool = True
    accepting_tasks: bool = True
    idle_since: Optional[float] = None
    idle_minutes: Optional[float] = Field(default=None, ge=0)
    has_node: bool = True


class ItemSpec(BaseModel):
    """Buildable item entry of a cluster snapshot."""

    model_config = ConfigDict(extra="forbid")

    task_id: str
    label: Optional[str] = None
    buildable_since: Optional[float] = None
    waiting_minutes: Optional[float] = Field(default=None, ge=0)


class ClusterSnapshot(BaseModel):
    """
    JSON form of a cluster: workers, buildable items in queue order, policies.

    Timestamps are either absolute (idle_since, buildable_since) or relative
    to ``now`` (idle_minutes, waiting_minutes). ``now`` defaults to the
    current time.
    """

    model_config = ConfigDict(extra="forbid")

    now: Optional[float] = None
    workers: List[WorkerSpec] = Field(default_factory=list)
    items: List[ItemSpec] = Field(default_factory=list)
    policies: PolicyBook = Field(default_factory=PolicyBook)


class Cluster:
    """Thread-safe worker registry, buildable queue and lifecycle actions."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.lock = threading.RLock()
        self.clock = clock
        self._workers: Dict[str, Worker] = {}
        self._queue: List[PendingItem] = []
        self.connect_requests: List[str] = []
        self.disconnect_requests: List[tuple] = []

    # Registry

    def add_worker(self, worker: Worker) -> Worker:
        with self.lock:
            self._workers[worker.name] = worker
        logger.debug("Registered worker %s (%d executors)", worker.name, worker.executors)
        return worker

    def remove_worker(self, name: str) -> bool:
        with self.lock:
            return self._workers.pop(name, None) is not None

    def get_worker(self, name: str) -> Worker:
        with self.lock:
            try:
                return self._workers[name]
            except KeyError:
                raise UnknownWorkerError(name) from None

    def workers(self) -> List[Worker]:
        with self.lock:
            return list(self._workers.values())

    # Queue

    def enqueue(self, item: PendingItem) -> PendingItem:
        with self.lock:
            self._queue.append(item)
        return item

    def dequeue(self, task_id: str) -> Optional[PendingItem]:
        with self.lock:
            for index, item in enumerate(self._queue):
                if item.task_id == task_id:
                    return self._queue.pop(index)
        return None

    def buildable_items(self) -> List[PendingItem]:
        with self.lock:
            return list(self._queue)

    def assign(self, task_id: str, worker_name: str) -> PendingItem:
        """Move a queued item onto one of the worker's executors."""
        with self.lock:
            worker = self.get_worker(worker_name)
            if worker.state is not Connectivity.ONLINE or worker.idle_slots == 0:
                raise ValueError(f"Worker {worker_name} has no free executor")
            item = self.dequeue(task_id)
            if item is None:
                raise KeyError(task_id)
            worker.busy += 1
            return item

    def release(self, worker_name: str) -> None:
        """Mark one executor of the worker as finished."""
        with self.lock:
            worker = self.get_worker(worker_name)
            worker.busy = max(0, worker.busy - 1)
            if worker.busy == 0:
                worker.idle_since = self.clock()

    # Lifecycle

    def connect(self, worker: Worker) -> None:
        with self.lock:
            worker.state = Connectivity.CONNECTING
            self.connect_requests.append(worker.name)
        logger.debug("Connect requested for worker %s", worker.name)

    def mark_online(self, name: str) -> None:
        """Complete a connection started by connect()."""
        with self.lock:
            worker = self.get_worker(name)
            worker.state = Connectivity.ONLINE
            worker.busy = 0
            worker.idle_since = self.clock()

    def disconnect(self, worker: Worker, cause: OfflineCause) -> None:
        with self.lock:
            worker.state = Connectivity.OFFLINE
            worker.busy = 0
            self.disconnect_requests.append((worker.name, cause))
        logger.debug("Disconnect requested for worker %s: %s", worker.name, cause.value)

    def context(
        self,
        sink: Optional[DiagnosticsSink] = None,
        metrics: Optional[Any] = None,
    ) -> SchedulerContext:
        """Collaborator handles for retention checks against this cluster."""
        return SchedulerContext(
            registry=self,
            queue=self,
            lifecycle=self,
            lock=self.lock,
            sink=sink,
            clock=self.clock,
            metrics=metrics,
        )

    @classmethod
    def from_snapshot(cls, snapshot: ClusterSnapshot) -> "Cluster":
        now = snapshot.now if snapshot.now is not None else time.time()
        cluster = cls(clock=lambda: now)
        for spec in snapshot.workers:
            if spec.idle_since is not None:
                idle_since = spec.idle_since
            else:
                idle_since = now - (spec.idle_minutes or 0.0) * SECONDS_PER_MINUTE
            cluster.add_worker(
                Worker(
                    name=spec.name,
                    executors=spec.executors,
                    labels=set(spec.labels),
                    state=spec.state,
                    launch_supported=spec.launch_supported,
                    accepting_tasks=spec.accepting_tasks,
                    busy=min(spec.busy, spec.executors),
                    idle_since=idle_since,
                    has_node=spec.has_node,
                )
            )
        for spec in snapshot.items:
            if spec.buildable_since is not None:
                since = spec.buildable_since
            else:
                since = now - (spec.waiting_minutes or 0.0) * SECONDS_PER_MINUTE
            cluster.enqueue(PendingItem(spec.task_id, label=spec.label, buildable_since=since))
        return cluster
