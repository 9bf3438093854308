"""
Dry-run retention checks.

POST /v1/check - Check every worker of a posted cluster snapshot once.
"""
from typing import List, Optional

from fastapi import APIRouter, Query

from noconflict.cluster import ClusterSnapshot
from noconflict.driver import check_snapshot
from noconflict.metrics import get_metrics
from noconflict.server.schemas import CheckResponse


router = APIRouter(prefix="/v1", tags=["check"])


@router.post("/check", response_model=CheckResponse)
async def check(
    snapshot: ClusterSnapshot,
    worker: Optional[List[str]] = Query(None, description="Only check these workers"),
) -> CheckResponse:
    """
    Run one retention check per worker against the snapshot.

    Nothing is connected or disconnected; lifecycle requests are applied to
    the in-memory copy only and show up as verdicts and events.
    """
    result = check_snapshot(snapshot, worker, metrics=get_metrics())
    return CheckResponse.model_validate(result)
