"""
On-demand retention with mutual exclusion.

One check per worker per tick decides whether to:
    - launch an offline worker that unmet demand has waited on for longer
      than in_demand_delay, unless an active worker matching conflicts_with
      blocks it
    - disconnect an online worker idle for longer than idle_delay
    - do nothing

and returns how many minutes until the worker should be checked again.

The whole check runs under the scheduling lock from the context, the same
lock that guards queue and worker mutation, so the tentative slot accounting
matches what the scheduler would actually do.

Usage:
    policy = RetentionPolicy(in_demand_delay=5, idle_delay=10, conflicts_with="^gpu-")
    strategy = OnDemandRetentionStrategy(policy)
    delay_minutes = strategy.check(worker, cluster.context())
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Optional

from noconflict.audit import RetentionEvent, RetentionEventType, format_time_span
from noconflict.capacity import build_snapshot
from noconflict.demand import evaluate_demand
from noconflict.matcher import ConflictMatcher
from noconflict.models import (
    DEFAULT_RECHECK_MINUTES,
    SECONDS_PER_MINUTE,
    Connectivity,
    OfflineCause,
    RetentionDecision,
    RetentionPolicy,
    Verdict,
)
from noconflict.protocol import SchedulerContext, WorkerProtocol

logger = logging.getLogger(__name__)


def _worker_name(worker: WorkerProtocol) -> str:
    try:
        return worker.name
    except Exception:
        return "<unknown>"


class OnDemandRetentionStrategy:
    """Launches workers on sustained demand and releases them when idle."""

    def __init__(self, policy: Optional[RetentionPolicy] = None) -> None:
        self.policy = policy or RetentionPolicy()

    def __repr__(self) -> str:
        return f"OnDemandRetentionStrategy({self.policy!r})"

    def check(self, worker: WorkerProtocol, context: SchedulerContext) -> int:
        """Run one check and return the re-check delay in minutes."""
        return self.evaluate(worker, context).recheck_minutes

    def evaluate(self, worker: WorkerProtocol, context: SchedulerContext) -> RetentionDecision:
        """Run one check and return the full decision."""
        with context.lock:
            try:
                decision = self._evaluate_locked(worker, context, context.clock())
            except Exception:
                # Never let a check abort the scheduling cycle.
                name = _worker_name(worker)
                logger.exception("Retention check failed for worker %s", name)
                decision = RetentionDecision(worker=name, verdict=Verdict.NOOP)
        if context.metrics is not None:
            context.metrics.record_verdict(decision.worker, decision.verdict)
        return decision

    def _evaluate_locked(
        self, worker: WorkerProtocol, context: SchedulerContext, now: float
    ) -> RetentionDecision:
        state = worker.state
        if state == Connectivity.OFFLINE and worker.launch_supported:
            return self._check_offline(worker, context, now)
        if state == Connectivity.ONLINE and worker.is_idle:
            return self._check_idle(worker, context, now)
        return RetentionDecision(worker=worker.name, verdict=Verdict.NOOP)

    def _check_offline(
        self, worker: WorkerProtocol, context: SchedulerContext, now: float
    ) -> RetentionDecision:
        name = worker.name
        pattern = self.policy.conflicts_with

        matcher = ConflictMatcher.compile(pattern, name, context.sink)
        if not matcher.active and pattern and context.metrics is not None:
            context.metrics.record_invalid_pattern(name)

        snapshot = build_snapshot(worker, context.registry.workers(), matcher)
        demand = evaluate_demand(
            worker,
            context.queue.buildable_items(),
            snapshot,
            self.policy.in_demand_delay,
            now,
        )

        if not demand.needed:
            return RetentionDecision(
                worker=name,
                verdict=Verdict.NOOP,
                demand_seconds=demand.demand_seconds if demand.item is not None else None,
            )

        conflicts = sorted(snapshot.conflicts)
        span = format_time_span(demand.demand_seconds)

        if conflicts:
            msg = (
                f"Would launch worker [{name}] as it has been in demand for {span}, "
                f"but it conflicts by regex ~/{pattern}/ with already active "
                f"worker(s): [{', '.join(conflicts)}]"
            )
            logger.warning("%s", msg)
            self._emit(
                context,
                RetentionEvent(
                    event_type=RetentionEventType.LAUNCH_SUPPRESSED,
                    worker=name,
                    message=msg,
                    demand_seconds=demand.demand_seconds,
                    conflicts_with=pattern,
                    conflicts=conflicts,
                ),
            )
            return RetentionDecision(
                worker=name,
                verdict=Verdict.LAUNCH_SUPPRESSED,
                demand_seconds=demand.demand_seconds,
                conflicts=conflicts,
                conflicts_with=pattern,
            )

        msg = f"Launching worker [{name}] as it has been in demand for {span}"
        if matcher.active:
            msg += f" and has no conflicting workers matched by regex ~/{pattern}/"
        logger.info("%s", msg)
        self._request(name, "connect", lambda: context.lifecycle.connect(worker))
        self._emit(
            context,
            RetentionEvent(
                event_type=RetentionEventType.LAUNCH,
                worker=name,
                message=msg,
                demand_seconds=demand.demand_seconds,
                conflicts_with=pattern if matcher.active else None,
            ),
        )
        return RetentionDecision(
            worker=name,
            verdict=Verdict.LAUNCH,
            demand_seconds=demand.demand_seconds,
            conflicts_with=pattern if matcher.active else None,
        )

    def _check_idle(
        self, worker: WorkerProtocol, context: SchedulerContext, now: float
    ) -> RetentionDecision:
        name = worker.name
        idle_seconds = now - worker.idle_since
        limit = self.policy.idle_delay * SECONDS_PER_MINUTE

        if idle_seconds > limit:
            msg = (
                f"Disconnecting worker [{name}] as it has been idle for "
                f"{format_time_span(idle_seconds)}"
            )
            logger.info("%s", msg)
            cause = OfflineCause.IDLE_TIMEOUT
            self._request(name, "disconnect", lambda: context.lifecycle.disconnect(worker, cause))
            self._emit(
                context,
                RetentionEvent(
                    event_type=RetentionEventType.DISCONNECT,
                    worker=name,
                    message=msg,
                    idle_seconds=idle_seconds,
                    cause=cause.value,
                ),
            )
            return RetentionDecision(
                worker=name, verdict=Verdict.DISCONNECT, idle_seconds=idle_seconds
            )

        # Not worth looking again before idle_delay can have elapsed.
        remaining_minutes = math.ceil((limit - idle_seconds) / SECONDS_PER_MINUTE)
        return RetentionDecision(
            worker=name,
            verdict=Verdict.DEFER,
            recheck_minutes=max(DEFAULT_RECHECK_MINUTES, remaining_minutes),
            idle_seconds=idle_seconds,
        )

    @staticmethod
    def _request(name: str, action: str, call: Callable[[], None]) -> None:
        # Lifecycle failures belong to the lifecycle subsystem.
        try:
            call()
        except Exception:
            logger.exception("Failed to request %s for worker %s", action, name)

    @staticmethod
    def _emit(context: SchedulerContext, event: RetentionEvent) -> None:
        if context.sink is None:
            return
        try:
            context.sink.emit(event)
        except Exception:
            logger.exception("Diagnostics sink rejected %s event", event.event_type.value)
