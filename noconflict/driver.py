"""
Periodic driver for retention checks.

Checks each worker when it is due and honours the re-check delay the check
returns, so idle workers are not polled every tick. ``poke()`` makes a worker
due immediately, e.g. when new work is queued; checks tolerate being run
early.

Usage:
    driver = RetentionDriver(cluster.context(sink=audit), policies)
    driver.start()
    ...
    driver.stop()
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional

from noconflict.audit import MemorySink
from noconflict.cluster import Cluster, ClusterSnapshot
from noconflict.config import PolicyBook, get_settings
from noconflict.metrics import RetentionMetrics
from noconflict.models import SECONDS_PER_MINUTE, RetentionDecision
from noconflict.protocol import DiagnosticsSink, SchedulerContext
from noconflict.strategy import OnDemandRetentionStrategy

logger = logging.getLogger(__name__)


class RetentionDriver:
    """Runs retention checks for every known worker on a fixed tick."""

    def __init__(
        self,
        context: SchedulerContext,
        policies: Optional[PolicyBook] = None,
        interval_seconds: Optional[float] = None,
    ) -> None:
        self._context = context
        self._policies = policies or PolicyBook()
        if interval_seconds is None:
            interval_seconds = get_settings().tick_seconds
        self._interval = interval_seconds
        self._strategies: Dict[str, OnDemandRetentionStrategy] = {}
        self._next_due: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._running = False

    def strategy_for(self, name: str) -> OnDemandRetentionStrategy:
        with self._lock:
            strategy = self._strategies.get(name)
            if strategy is None:
                strategy = OnDemandRetentionStrategy(self._policies.policy_for(name))
                self._strategies[name] = strategy
            return strategy

    def set_policies(self, policies: PolicyBook) -> None:
        """Swap the policy book; strategies are rebuilt on next use."""
        with self._lock:
            self._policies = policies
            self._strategies.clear()

    def poke(self, name: Optional[str] = None) -> None:
        """Make one worker (or all, with no name) due on the next tick."""
        with self._lock:
            if name is None:
                self._next_due.clear()
            else:
                self._next_due.pop(name, None)

    def next_due(self, name: str) -> Optional[float]:
        with self._lock:
            return self._next_due.get(name)

    def tick(self) -> List[RetentionDecision]:
        """Check every due worker once. Returns the decisions made."""
        now = self._context.clock()
        decisions = []
        for worker in list(self._context.registry.workers()):
            name = worker.name
            with self._lock:
                due = self._next_due.get(name, now)
            if due > now:
                continue
            decision = self.strategy_for(name).evaluate(worker, self._context)
            decisions.append(decision)
            with self._lock:
                self._next_due[name] = now + decision.recheck_minutes * SECONDS_PER_MINUTE
        return decisions

    def start(self) -> None:
        """Start ticking on a daemon thread."""
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()
        logger.info("Retention driver started (interval=%.1fs)", self._interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Retention driver stopped")

    @property
    def running(self) -> bool:
        return self._running

    def _run_loop(self) -> None:
        while self._running:
            try:
                self.tick()
            except Exception:
                logger.exception("Retention tick failed")

            # Sleep in small increments for responsive shutdown
            sleep_remaining = self._interval
            while sleep_remaining > 0 and self._running:
                sleep_time = min(sleep_remaining, 0.5)
                time.sleep(sleep_time)
                sleep_remaining -= sleep_time


def check_snapshot(
    snapshot: ClusterSnapshot,
    only: Optional[List[str]] = None,
    metrics: Optional[RetentionMetrics] = None,
    forward_to: Optional[DiagnosticsSink] = None,
) -> Dict[str, Any]:
    """
    Check every (or each selected) worker of a snapshot once.

    Workers are checked in snapshot order against the same cluster, so a
    launch requested for one worker is visible to the checks that follow.

    Returns:
        {"decisions": [...], "events": [...]} as plain dicts. Events are also
        passed on to ``forward_to`` when given.
    """
    cluster = Cluster.from_snapshot(snapshot)
    sink = MemorySink()
    context = cluster.context(sink=sink, metrics=metrics)
    decisions = []
    for worker in cluster.workers():
        if only and worker.name not in only:
            continue
        strategy = OnDemandRetentionStrategy(snapshot.policies.policy_for(worker.name))
        decisions.append(strategy.evaluate(worker, context).to_dict())
    if forward_to is not None:
        for event in sink.events:
            forward_to.emit(event)
    return {
        "decisions": decisions,
        "events": [event.to_dict() for event in sink.events],
    }
