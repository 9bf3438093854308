"""
Pydantic models for API request/response schemas.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class DecisionInfo(BaseModel):
    """One retention check outcome."""

    worker: str
    verdict: str
    recheck_minutes: int
    demand_seconds: Optional[float] = None
    idle_seconds: Optional[float] = None
    conflicts: List[str] = Field(default_factory=list)
    conflicts_with: Optional[str] = None


class CheckResponse(BaseModel):
    """Response body for POST /v1/check."""

    decisions: List[DecisionInfo] = Field(..., description="One entry per checked worker")
    events: List[Dict[str, Any]] = Field(
        default_factory=list, description="Diagnostics emitted during the checks"
    )


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")


class ErrorDetail(BaseModel):
    """Error detail."""

    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Error message")
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: ErrorDetail
