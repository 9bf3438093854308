"""
Per-check view of which other workers conflict with, or could absorb work for,
the worker under evaluation.

The snapshot is a private working copy: slot counts are copied out of the
worker records and decremented here as queue items are tentatively assigned,
never written back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Set

from noconflict.matcher import ConflictMatcher
from noconflict.models import Connectivity
from noconflict.protocol import WorkerProtocol

logger = logging.getLogger(__name__)


def is_active(worker: WorkerProtocol) -> bool:
    """Online or connecting."""
    return worker.state in (Connectivity.ONLINE, Connectivity.CONNECTING)


@dataclass
class CapacitySnapshot:
    """Conflict set and idle-slot map for one check."""

    conflicts: Set[str] = field(default_factory=set)
    available: Dict[str, int] = field(default_factory=dict)
    providers: Dict[str, WorkerProtocol] = field(default_factory=dict)

    @property
    def total_slots(self) -> int:
        return sum(self.available.values())

    def take_slot(self, item: Any) -> Optional[str]:
        """
        Assign ``item`` to the first provider that can take it.

        Providers are tried in name order. The chosen provider loses one slot
        and drops out of the map at zero.

        Returns:
            Name of the provider that absorbed the item, or None.
        """
        for name in sorted(self.available):
            node = self.providers[name].node
            if node is None:
                continue
            try:
                reason = node.can_take(item)
            except Exception:
                logger.warning(
                    "Capability test failed for worker %s, skipping it", name, exc_info=True
                )
                continue
            if reason is not None:
                continue
            remaining = self.available[name] - 1
            if remaining > 0:
                self.available[name] = remaining
            else:
                del self.available[name]
            return name
        return None


def build_snapshot(
    evaluated: WorkerProtocol,
    workers: Iterable[WorkerProtocol],
    matcher: ConflictMatcher,
) -> CapacitySnapshot:
    """
    Scan every known worker once.

    For each active (online or connecting) worker other than the evaluated one:
    - A name matching the conflict pattern joins the conflict set, whatever
      that worker is doing. Conflicts are about presence, not capacity.
    - Otherwise, if it is accepting tasks and has idle slots, its slot count
      is recorded as available capacity.

    The evaluated worker is recognised by name and never conflicts with itself.
    """
    snapshot = CapacitySnapshot()
    own_name = evaluated.name
    for other in workers:
        if not is_active(other):
            continue
        name = other.name
        if matcher.active and name != own_name and matcher.matches(name):
            snapshot.conflicts.add(name)
        if name in snapshot.conflicts:
            continue
        if not other.accepting_tasks:
            continue
        idle = other.idle_slots
        if idle > 0:
            snapshot.available[name] = idle
            snapshot.providers[name] = other
    return snapshot
