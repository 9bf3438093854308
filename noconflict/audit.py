"""
Diagnostics sink for retention checks.

Every launch, suppressed launch, idle disconnect and malformed
conflicts_with pattern becomes a structured event:
- Worker name and the timing/conflict values verbatim
- The human-readable message that was also written to the log
- Structured JSON lines for whatever collects them downstream

Usage:
    from noconflict.audit import get_audit_logger

    audit = get_audit_logger()
    context = SchedulerContext(..., sink=audit)

Configuration:
    from noconflict.audit import configure_audit_logger

    # Log to file (production)
    configure_audit_logger(output_path="/var/log/noconflict/audit.json")

    # Log to stdout (development)
    configure_audit_logger(output_path=None)
"""

from __future__ import annotations

import json
import logging
import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

logger = logging.getLogger(__name__)


class RetentionEventType(Enum):
    """Types of retention events."""

    LAUNCH = "launch"
    LAUNCH_SUPPRESSED = "launch_suppressed"
    DISCONNECT = "disconnect"
    INVALID_PATTERN = "invalid_pattern"


@dataclass
class RetentionEvent:
    """Structured retention event."""

    event_type: RetentionEventType
    worker: str
    message: str
    timestamp_unix: float = field(default_factory=time.time)

    demand_seconds: Optional[float] = None
    idle_seconds: Optional[float] = None
    conflicts_with: Optional[str] = None
    conflicts: List[str] = field(default_factory=list)
    cause: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        data: Dict[str, Any] = {
            "event": self.event_type.value,
            "ts": self.timestamp_unix,
            "worker": self.worker,
            "message": self.message,
        }

        if self.demand_seconds is not None:
            data["demand_seconds"] = self.demand_seconds
        if self.idle_seconds is not None:
            data["idle_seconds"] = self.idle_seconds
        if self.conflicts_with:
            data["conflicts_with"] = self.conflicts_with
        if self.conflicts:
            data["conflicts"] = list(self.conflicts)
        if self.cause:
            data["cause"] = self.cause
        if self.error:
            data["error"] = self.error

        return data

    def to_json(self) -> str:
        """Serialize to JSON line."""
        return json.dumps(self.to_dict(), separators=(",", ":"))


def format_time_span(seconds: float) -> str:
    """Render a duration the way operators read it: two units at most.

    Examples: "12 ms", "4.5 sec", "42 sec", "6 min 0 sec", "15 min",
    "1 hr 5 min", "3 days 2 hr".
    """
    seconds = max(0.0, seconds)
    if seconds < 1:
        return f"{int(seconds * 1000)} ms"
    if seconds < 10:
        return f"{seconds:.1f} sec"

    whole = int(seconds)
    days, rem = divmod(whole, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)

    if days:
        unit = "day" if days == 1 else "days"
        return f"{days} {unit}" if days >= 10 else f"{days} {unit} {hours} hr"
    if hours:
        return f"{hours} hr" if hours >= 10 else f"{hours} hr {minutes} min"
    if minutes:
        return f"{minutes} min" if minutes >= 10 else f"{minutes} min {secs} sec"
    return f"{secs} sec"


class MemorySink:
    """Keeps events in memory. Handy for tests and embedding."""

    def __init__(self) -> None:
        self._events: List[RetentionEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: RetentionEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[RetentionEvent]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_type: RetentionEventType) -> List[RetentionEvent]:
        return [e for e in self.events if e.event_type is event_type]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class AuditLogger:
    """
    JSON-lines sink for retention events, one line per event.

    A check emits at most a couple of events, so each one is written and
    flushed inside emit(): once a check returns, its events are on disk.
    Write failures are logged and counted, never raised into the check.
    """

    def __init__(self, output_path: Optional[str] = None) -> None:
        """
        Args:
            output_path: File to append to. None writes to stdout.
        """
        self.output_path = output_path
        self._stream: Optional[TextIO] = None
        self._lock = threading.Lock()
        self._written = 0
        self._failed = 0

    def _open(self) -> TextIO:
        if self._stream is None:
            if self.output_path is None:
                self._stream = sys.stdout
            else:
                Path(self.output_path).parent.mkdir(parents=True, exist_ok=True)
                self._stream = open(self.output_path, "a", encoding="utf-8")
        return self._stream

    @staticmethod
    def _line(event: RetentionEvent) -> str:
        data = event.to_dict()
        data["timestamp"] = (
            datetime.fromtimestamp(event.timestamp_unix, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z")
        )
        return json.dumps(data, separators=(",", ":"))

    def emit(self, event: RetentionEvent) -> None:
        line = self._line(event)
        with self._lock:
            try:
                stream = self._open()
                stream.write(line + "\n")
                stream.flush()
            except OSError as exc:
                self._failed += 1
                logger.error(
                    "Could not write %s event for worker %s: %s",
                    event.event_type.value,
                    event.worker,
                    exc,
                )
                return
            self._written += 1

    def close(self) -> None:
        """Close the file. A later emit() reopens it in append mode."""
        with self._lock:
            stream, self._stream = self._stream, None
        if stream is not None and stream is not sys.stdout:
            stream.close()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"events_written": self._written, "events_failed": self._failed}


_audit_logger: Optional[AuditLogger] = None
_audit_lock = threading.Lock()


def get_audit_logger() -> AuditLogger:
    """Return the process-wide audit logger, writing to stdout unless configured."""
    global _audit_logger
    with _audit_lock:
        if _audit_logger is None:
            _audit_logger = AuditLogger()
        return _audit_logger


def configure_audit_logger(output_path: Optional[str] = None) -> AuditLogger:
    """Replace the process-wide audit logger, closing the previous one."""
    global _audit_logger
    with _audit_lock:
        previous, _audit_logger = _audit_logger, AuditLogger(output_path)
        current = _audit_logger
    if previous is not None:
        previous.close()
    return current


def reset_audit_logger() -> None:
    """Drop the process-wide audit logger. For tests."""
    global _audit_logger
    with _audit_lock:
        previous, _audit_logger = _audit_logger, None
    if previous is not None:
        previous.close()
