"""
Typed exceptions for noconflict.

Provides structured error handling with:
- NoConflictError: Base exception for all noconflict errors
- NoConflictConfigError: Configuration and policy loading errors
- InvalidConflictPatternError: conflicts_with pattern that does not compile
- UnknownWorkerError: Worker name not present in the registry

None of these escape a retention check. The decision path degrades instead
of raising; these are for configuration time and the outer surfaces.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class NoConflictError(Exception):
    """Base exception for all noconflict errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context as key-value pairs
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging or API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class NoConflictConfigError(NoConflictError):
    """Configuration or validation error.

    Raised when:
    - A policy file is missing or is not valid JSON
    - A policy entry fails model validation

    Examples:
        NoConflictConfigError("Policy file not found", details={"path": "x.json"})
    """

    pass


class InvalidConflictPatternError(NoConflictConfigError):
    """conflicts_with value is not a valid regular expression.

    Attributes:
        pattern: The offending pattern as configured
    """

    def __init__(
        self,
        message: str,
        *,
        pattern: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.pattern = pattern
        merged = {"pattern": pattern}
        if details:
            merged.update(details)
        super().__init__(message, code="invalid_conflict_pattern", details=merged)


class UnknownWorkerError(NoConflictError):
    """Worker name is not known to the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Unknown worker: {name}",
            code="unknown_worker",
            details={"worker": name},
        )
