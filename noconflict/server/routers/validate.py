"""
Configuration-time validation.

GET /v1/validate/conflicts-with?value=... - Check a conflicts_with pattern.
"""
from typing import Optional

from fastapi import APIRouter, Query

from noconflict.matcher import validate_conflicts_with
from noconflict.models import ValidationResult


router = APIRouter(prefix="/v1/validate", tags=["validate"])


@router.get("/conflicts-with", response_model=ValidationResult)
async def check_conflicts_with(
    value: Optional[str] = Query(None, description="Regex matched against other worker names"),
) -> ValidationResult:
    """
    Validate a conflicts_with value as a configuration form would.

    Always answers 200; ``ok`` is false with a human-readable message when the
    pattern does not compile. Blank values are valid and disable conflict
    checking.
    """
    return validate_conflicts_with(value)
