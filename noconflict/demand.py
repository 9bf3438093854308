"""Decide whether unmet demand for a worker has lasted long enough to launch it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from noconflict.capacity import CapacitySnapshot
from noconflict.models import SECONDS_PER_MINUTE
from noconflict.protocol import PendingItemProtocol, WorkerProtocol

logger = logging.getLogger(__name__)


@dataclass
class Demand:
    needed: bool = False
    demand_seconds: float = 0.0
    item: Optional[Any] = None


def _can_take(worker: WorkerProtocol, item: PendingItemProtocol) -> bool:
    node = worker.node
    if node is None:
        return False
    try:
        return node.can_take(item) is None
    except Exception:
        logger.warning(
            "Capability test failed for worker %s, treating item as not servable",
            worker.name,
            exc_info=True,
        )
        return False


def evaluate_demand(
    evaluated: WorkerProtocol,
    items: Iterable[PendingItemProtocol],
    snapshot: CapacitySnapshot,
    in_demand_delay: int,
    now: float,
) -> Demand:
    """
    Walk buildable items in scheduler order against the capacity snapshot.

    Items some other provider can take consume one of its slots and are
    skipped. The first item nobody else can take but the evaluated worker can
    decides the outcome: its wait time is the demand duration, and the worker
    is needed once that exceeds ``in_demand_delay`` minutes. Items no one can
    take are ignored.

    Only that first item counts. It is the oldest qualifying item only if the
    scheduler orders by age.
    """
    threshold = in_demand_delay * SECONDS_PER_MINUTE
    for item in items:
        if snapshot.take_slot(item) is not None:
            continue
        if _can_take(evaluated, item):
            demand_seconds = now - item.buildable_since
            return Demand(
                needed=demand_seconds > threshold,
                demand_seconds=demand_seconds,
                item=item,
            )
    return Demand()
