"""
Cancellation policies API routes.
"""
from typing import List

from fastapi import APIRouter, Depends

from petcare.api.dependencies import get_cancellation_service
from petcare.schemas.cancellation import PolicyRecord
from petcare.services.cancellation_service import CancellationService


router = APIRouter(prefix="/cancellation-policies", tags=["cancellation-policies"])


@router.get("", response_model=List[PolicyRecord])
async def list_policies(
    service: CancellationService = Depends(get_cancellation_service),
) -> List[PolicyRecord]:
    """List policies ordered by their hours-before threshold."""
    return await service.get_cancellation_policies()
