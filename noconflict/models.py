from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from noconflict.exceptions import InvalidConflictPatternError

# Policy delays are expressed in minutes; timestamps are Unix seconds.
SECONDS_PER_MINUTE = 60.0

# Re-check delay returned for every verdict other than DEFER.
DEFAULT_RECHECK_MINUTES = 1


class Connectivity(str, Enum):
    """Connection state of a worker as seen by the scheduler."""

    OFFLINE = "offline"
    CONNECTING = "connecting"
    ONLINE = "online"


class Verdict(str, Enum):
    """Outcome of a single retention check."""

    LAUNCH = "launch"
    LAUNCH_SUPPRESSED = "launch_suppressed"
    DISCONNECT = "disconnect"
    DEFER = "defer"
    NOOP = "noop"


class OfflineCause(str, Enum):
    """Cause attached to a disconnect request."""

    IDLE_TIMEOUT = "idle_timeout"


class RetentionPolicy(BaseModel):
    """
    Per-worker retention configuration.

    Out-of-range delays are clamped rather than rejected, so a policy can
    always be constructed from operator input:
        - in_demand_delay: minutes of unmet demand before launching (floor 0)
        - idle_delay: minutes of idleness before disconnecting (floor 1)
        - conflicts_with: regex searched within other active worker names;
          surrounding whitespace is trimmed and blank means disabled

    Conflicts are one-directional. For two workers to exclude each other,
    both must name the other in conflicts_with.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    in_demand_delay: int = Field(default=0, alias="inDemandDelay")
    idle_delay: int = Field(default=1, alias="idleDelay")
    conflicts_with: Optional[str] = Field(default=None, alias="conflictsWith")

    @field_validator("in_demand_delay")
    @classmethod
    def _floor_in_demand_delay(cls, value: int) -> int:
        return max(0, value)

    @field_validator("idle_delay")
    @classmethod
    def _floor_idle_delay(cls, value: int) -> int:
        return max(1, value)

    @field_validator("conflicts_with", mode="before")
    @classmethod
    def _trim_conflicts_with(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def checked(self) -> "RetentionPolicy":
        """Return self, raising InvalidConflictPatternError for a bad regex.

        Checks never need this (they degrade instead); it is for loaders that
        want to reject broken configuration up front.
        """
        if self.conflicts_with is not None:
            try:
                re.compile(self.conflicts_with)
            except (re.error, OverflowError, RecursionError) as exc:
                raise InvalidConflictPatternError(
                    f"Invalid regex: {exc}", pattern=self.conflicts_with
                ) from exc
        return self


class ValidationResult(BaseModel):
    """Outcome of validating a conflicts_with value at configuration time."""

    ok: bool
    message: Optional[str] = None


@dataclass
class RetentionDecision:
    """What a retention check decided for one worker on one tick."""

    worker: str
    verdict: Verdict
    recheck_minutes: int = DEFAULT_RECHECK_MINUTES
    demand_seconds: Optional[float] = None
    idle_seconds: Optional[float] = None
    conflicts: List[str] = field(default_factory=list)
    conflicts_with: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "worker": self.worker,
            "verdict": self.verdict.value,
            "recheck_minutes": self.recheck_minutes,
        }
        if self.demand_seconds is not None:
            data["demand_seconds"] = self.demand_seconds
        if self.idle_seconds is not None:
            data["idle_seconds"] = self.idle_seconds
        if self.conflicts:
            data["conflicts"] = list(self.conflicts)
        if self.conflicts_with:
            data["conflicts_with"] = self.conflicts_with
        return data
