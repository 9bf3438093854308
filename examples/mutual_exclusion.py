"""Minimal demo: two workers sharing one host never run at the same time.

Both declare each other in conflicts_with; conflicts are one-directional, so
each side needs its own entry.

Run:
  python examples/mutual_exclusion.py
"""

import logging
import time

from noconflict import (
    Cluster,
    MemorySink,
    PendingItem,
    PolicyBook,
    RetentionDriver,
    RetentionPolicy,
    Worker,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

now = time.time()
cluster = Cluster()
cluster.add_worker(Worker("vm-ubuntu", labels={"ubuntu"}))
cluster.add_worker(Worker("vm-fedora", labels={"fedora"}))
cluster.enqueue(PendingItem("build-ubuntu", label="ubuntu", buildable_since=now - 600))
cluster.enqueue(PendingItem("build-fedora", label="fedora", buildable_since=now - 600))

policies = PolicyBook(
    workers={
        "vm-ubuntu": RetentionPolicy(in_demand_delay=1, idle_delay=5, conflicts_with="^vm-fedora$"),
        "vm-fedora": RetentionPolicy(in_demand_delay=1, idle_delay=5, conflicts_with="^vm-ubuntu$"),
    }
)

sink = MemorySink()
driver = RetentionDriver(cluster.context(sink=sink), policies, interval_seconds=1)

for decision in driver.tick():
    print(f"{decision.worker}: {decision.verdict.value}")

print("connect requests:", cluster.connect_requests)
for event in sink.events:
    print("event:", event.event_type.value, "-", event.message)
