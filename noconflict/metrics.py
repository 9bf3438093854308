"""
Verdict counters for retention checks.

Prometheus-compatible text output without the Prometheus library:
- Counter per verdict and worker
- Counter of malformed conflicts_with patterns seen

Integration:
    metrics = get_metrics()
    context = SchedulerContext(..., metrics=metrics)

    @app.get("/metrics")
    def metrics_endpoint():
        return metrics.prometheus_format()
"""
from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from noconflict.models import Verdict


def _label(value: str) -> str:
    """Escape a label value for the text exposition format."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


@dataclass
class CounterValue:
    """Thread-safe counter."""
    value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def inc(self, amount: float = 1.0) -> None:
        with self._lock:
            self.value += amount

    def get(self) -> float:
        with self._lock:
            return self.value


class RetentionMetrics:
    """Counts check outcomes per worker."""

    def __init__(self, prefix: str = "noconflict") -> None:
        self._prefix = prefix
        self._verdicts: Dict[Tuple[str, str], CounterValue] = defaultdict(CounterValue)
        self._invalid_patterns: Dict[str, CounterValue] = defaultdict(CounterValue)
        self._checks = CounterValue()
        self._lock = threading.Lock()

    def record_verdict(self, worker: str, verdict: Verdict) -> None:
        self._checks.inc()
        with self._lock:
            counter = self._verdicts[(worker, verdict.value)]
        counter.inc()

    def record_invalid_pattern(self, worker: str) -> None:
        with self._lock:
            counter = self._invalid_patterns[worker]
        counter.inc()

    def verdict_count(self, worker: str, verdict: Verdict) -> int:
        with self._lock:
            counter = self._verdicts.get((worker, verdict.value))
        return int(counter.get()) if counter else 0

    @property
    def checks(self) -> int:
        return int(self._checks.get())

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        """Verdict counts keyed by worker, then verdict."""
        result: Dict[str, Dict[str, int]] = {}
        with self._lock:
            items = list(self._verdicts.items())
        for (worker, verdict), counter in items:
            result.setdefault(worker, {})[verdict] = int(counter.get())
        return result

    def prometheus_format(self) -> str:
        p = self._prefix
        lines = [
            f"# HELP {p}_checks_total Retention checks performed",
            f"# TYPE {p}_checks_total counter",
            f"{p}_checks_total {int(self._checks.get())}",
            f"# HELP {p}_verdicts_total Retention check outcomes",
            f"# TYPE {p}_verdicts_total counter",
        ]
        with self._lock:
            verdicts = sorted(self._verdicts.items())
            invalid = sorted(self._invalid_patterns.items())
        for (worker, verdict), counter in verdicts:
            lines.append(
                f'{p}_verdicts_total{{worker="{_label(worker)}",verdict="{verdict}"}} {int(counter.get())}'
            )
        lines.append(f"# HELP {p}_invalid_patterns_total Malformed conflicts_with patterns seen")
        lines.append(f"# TYPE {p}_invalid_patterns_total counter")
        for worker, counter in invalid:
            lines.append(f'{p}_invalid_patterns_total{{worker="{_label(worker)}"}} {int(counter.get())}')
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        with self._lock:
            self._verdicts.clear()
            self._invalid_patterns.clear()
            self._checks = CounterValue()


_global_metrics: Optional[RetentionMetrics] = None
_global_lock = threading.Lock()


def get_metrics() -> RetentionMetrics:
    """Get the global metrics collector."""
    global _global_metrics
    if _global_metrics is None:
        with _global_lock:
            if _global_metrics is None:
                _global_metrics = RetentionMetrics()
    assert _global_metrics is not None
    return _global_metrics


def reset_metrics() -> None:
    """Reset global metrics. For testing only."""
    global _global_metrics
    with _global_lock:
        _global_metrics = None
