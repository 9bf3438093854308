"""
Health and metrics endpoints.
"""
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from noconflict import __version__
from noconflict.metrics import get_metrics
from noconflict.server.schemas import HealthResponse


router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health status for load balancers and monitoring."""
    return HealthResponse(status="healthy", version=__version__)


@router.get("/metrics", response_class=PlainTextResponse)
async def metrics() -> str:
    """Verdict counters in Prometheus text format."""
    return get_metrics().prometheus_format()
