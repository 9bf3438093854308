"""Interfaces for the scheduler-side collaborators a retention check reads and drives."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Protocol

from noconflict.models import Connectivity, OfflineCause

if TYPE_CHECKING:
    from noconflict.audit import RetentionEvent
    from noconflict.metrics import RetentionMetrics


class PendingItemProtocol(Protocol):
    """A buildable queue item."""

    @property
    def buildable_since(self) -> float: ...


class NodeProtocol(Protocol):
    """Backing node data of a worker, used for capability tests."""

    def can_take(self, item: Any) -> Optional[str]:
        """Return None if the item can run here, else the rejection reason."""
        ...


class WorkerProtocol(Protocol):
    """A unit of executable capacity attached to the scheduler."""

    @property
    def name(self) -> str: ...

    @property
    def state(self) -> Connectivity: ...

    @property
    def launch_supported(self) -> bool: ...

    @property
    def accepting_tasks(self) -> bool: ...

    @property
    def idle_slots(self) -> int: ...

    @property
    def is_idle(self) -> bool: ...

    @property
    def idle_since(self) -> float: ...

    @property
    def node(self) -> Optional[NodeProtocol]: ...


class WorkerRegistry(Protocol):
    def workers(self) -> Iterable[WorkerProtocol]: ...


class PendingQueue(Protocol):
    def buildable_items(self) -> Iterable[PendingItemProtocol]:
        """Buildable items in scheduler order."""
        ...


class Lifecycle(Protocol):
    """Fire-and-forget connect/disconnect triggers."""

    def connect(self, worker: WorkerProtocol) -> None: ...

    def disconnect(self, worker: WorkerProtocol, cause: OfflineCause) -> None: ...


class DiagnosticsSink(Protocol):
    def emit(self, event: "RetentionEvent") -> None: ...


@dataclass
class SchedulerContext:
    """Collaborator handles passed into every retention check.

    The lock is the cluster-wide scheduling lock: whoever mutates workers or
    the buildable queue must hold the same one.
    """

    registry: WorkerRegistry
    queue: PendingQueue
    lifecycle: Lifecycle
    lock: Any = field(default_factory=threading.RLock)
    sink: Optional[DiagnosticsSink] = None
    clock: Callable[[], float] = time.time
    metrics: Optional["RetentionMetrics"] = None
