"""
Conflict matching over worker names.

A conflicts_with value is compiled once per check into either an
ActiveMatcher or a DisabledMatcher. A pattern that fails to compile
disables conflict checking for that check only and is reported each time;
it never aborts the check.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Pattern

from noconflict.audit import RetentionEvent, RetentionEventType
from noconflict.models import ValidationResult
from noconflict.protocol import DiagnosticsSink

logger = logging.getLogger(__name__)


class ConflictMatcher:
    """Base of the compile-or-disabled pair."""

    active: bool = False
    pattern: Optional[str] = None

    def matches(self, name: str) -> bool:
        raise NotImplementedError

    @staticmethod
    def compile(
        pattern: Optional[str],
        worker_name: str,
        sink: Optional[DiagnosticsSink] = None,
    ) -> "ConflictMatcher":
        """Build the matcher for one check of ``worker_name``."""
        if pattern is None or not pattern.strip():
            return DisabledMatcher()
        try:
            compiled = re.compile(pattern)
        except (re.error, OverflowError, RecursionError) as exc:
            msg = (
                f"Invalid conflicts_with regex ~/{pattern}/ for worker "
                f"{worker_name}, ignored: {exc}"
            )
            logger.error("%s", msg)
            if sink is not None:
                event = RetentionEvent(
                    event_type=RetentionEventType.INVALID_PATTERN,
                    worker=worker_name,
                    message=msg,
                    conflicts_with=pattern,
                    error=str(exc),
                )
                try:
                    sink.emit(event)
                except Exception:
                    logger.exception("Diagnostics sink rejected invalid_pattern event")
            return DisabledMatcher(pattern=pattern, error=str(exc))
        return ActiveMatcher(compiled)


class DisabledMatcher(ConflictMatcher):
    """No conflict checking: nothing is configured, or the pattern is broken."""

    def __init__(self, pattern: Optional[str] = None, error: Optional[str] = None) -> None:
        self.pattern = pattern
        self.error = error

    def matches(self, name: str) -> bool:
        return False

    def __repr__(self) -> str:
        return f"DisabledMatcher(error={self.error!r})"


class ActiveMatcher(ConflictMatcher):
    """Searches a compiled pattern anywhere within a worker name."""

    active = True

    def __init__(self, compiled: Pattern[str]) -> None:
        self._compiled = compiled
        self.pattern = compiled.pattern

    def matches(self, name: str) -> bool:
        return self._compiled.search(name) is not None

    def __repr__(self) -> str:
        return f"ActiveMatcher(~/{self.pattern}/)"


def validate_conflicts_with(value: Optional[str]) -> ValidationResult:
    """
    Check a conflicts_with value for configuration tooling.

    Blank or missing values are valid (conflict checking disabled).
    Independent of any retention check.
    """
    if value is None or not value.strip():
        return ValidationResult(ok=True)
    try:
        re.compile(value.strip())
    except re.error as exc:
        return ValidationResult(ok=False, message=f"Invalid regex: {exc}")
    except (TypeError, ValueError, OverflowError, RecursionError) as exc:
        return ValidationResult(ok=False, message=f"Failed to validate regex: {exc}")
    return ValidationResult(ok=True)
