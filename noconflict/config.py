"""
Configuration: environment settings and per-worker retention policies.

Usage:
    from noconflict.config import get_settings, load_policies

    settings = get_settings()
    policies = load_policies(settings.policies_path)
    policy = policies.policy_for("gpu-1")

Policy file (JSON):
    {
      "default": {"in_demand_delay": 0, "idle_delay": 10},
      "workers": {
        "gpu-1": {"inDemandDelay": 5, "idleDelay": 10, "conflictsWith": "^gpu-"}
      }
    }
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from noconflict.exceptions import NoConflictConfigError
from noconflict.models import RetentionPolicy

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings:
    """Service configuration loaded from environment variables."""

    def __init__(self) -> None:
        # Server
        self.host: str = os.getenv("NOCONFLICT_HOST", "0.0.0.0")
        self.port: int = int(os.getenv("NOCONFLICT_PORT", "8000"))

        # Policies
        self.policies_path: Optional[str] = os.getenv("NOCONFLICT_POLICIES_PATH")

        # Audit logging
        self.audit_log_path: Optional[str] = os.getenv("NOCONFLICT_AUDIT_LOG_PATH")

        # Driver
        self.tick_seconds: float = float(os.getenv("NOCONFLICT_TICK_SECONDS", "60"))

        self.log_level: str = os.getenv("NOCONFLICT_LOG_LEVEL", "INFO").upper()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reset_settings() -> None:
    """Clear settings cache. For testing only."""
    get_settings.cache_clear()


def configure_logging(level: Optional[str] = None) -> None:
    """Basic logging setup for the CLI and server entry points."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format=LOG_FORMAT,
    )


class PolicyBook(BaseModel):
    """Retention policies by worker name, with a fallback."""

    model_config = ConfigDict(extra="forbid")

    default: RetentionPolicy = Field(default_factory=RetentionPolicy)
    workers: Dict[str, RetentionPolicy] = Field(default_factory=dict)

    def policy_for(self, name: str) -> RetentionPolicy:
        return self.workers.get(name, self.default)

    def invalid_patterns(self) -> List[str]:
        """Names of entries whose conflicts_with does not compile."""
        from noconflict.matcher import validate_conflicts_with

        bad = []
        if not validate_conflicts_with(self.default.conflicts_with).ok:
            bad.append("default")
        for name, policy in sorted(self.workers.items()):
            if not validate_conflicts_with(policy.conflicts_with).ok:
                bad.append(name)
        return bad


def load_policies(path: Union[str, Path, None], *, strict: bool = False) -> PolicyBook:
    """
    Read a JSON policy file.

    Args:
        path: Policy file. None yields an empty book (defaults only).
        strict: Reject files containing malformed conflicts_with patterns.
            Without it they load, and checks degrade to no conflict checking.

    Raises:
        NoConflictConfigError: File missing, not JSON, or fails validation.
    """
    if path is None:
        return PolicyBook()

    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise NoConflictConfigError(
            "Policy file not found", code="policy_file_missing", details={"path": str(path)}
        ) from None
    except (OSError, json.JSONDecodeError) as exc:
        raise NoConflictConfigError(
            f"Cannot read policy file: {exc}",
            code="policy_file_invalid",
            details={"path": str(path)},
        ) from exc

    try:
        book = PolicyBook.model_validate(raw)
    except ValidationError as exc:
        raise NoConflictConfigError(
            "Policy file failed validation",
            code="policy_file_invalid",
            details={"path": str(path), "errors": exc.errors(include_url=False, include_context=False)},
        ) from exc

    if strict:
        book.default.checked()
        for policy in book.workers.values():
            policy.checked()
    return book
