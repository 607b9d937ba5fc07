"""
Booking cancellation API routes.
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from petcare.api.dependencies import get_cancellation_service
from petcare.api.middleware.error_handler import ConflictException, NotFoundException
from petcare.schemas.cancellation import BookingCancellationResult, CancellationResult
from petcare.services.cancellation_service import CancellationService


class CancelBookingRequest(BaseModel):
    reason: str = Field(..., max_length=1000)

    @field_validator("reason")
    @classmethod
    def _reason_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("A cancellation reason is required")
        return value


class AssignPolicyResponse(BaseModel):
    assigned: bool


router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/{booking_id}/cancellation-preview", response_model=CancellationResult)
async def preview_cancellation(
    booking_id: UUID,
    service: CancellationService = Depends(get_cancellation_service),
) -> CancellationResult:
    """
    Show whether the booking can be cancelled now and the refund it would get.
    """
    result = await service.calculate_cancellation_refund(booking_id)
    if result is None:
        raise NotFoundException("Booking", str(booking_id))
    return result


@router.post("/{booking_id}/cancel", response_model=BookingCancellationResult)
async def cancel_booking(
    booking_id: UUID,
    body: CancelBookingRequest,
    service: CancellationService = Depends(get_cancellation_service),
) -> BookingCancellationResult:
    result = await service.cancel_booking_with_refund(booking_id, body.reason)
    if not result.success:
        raise ConflictException(result.message, details={"booking_id": str(booking_id)})
    return result


@router.post("/{booking_id}/assign-default-policy", response_model=AssignPolicyResponse)
async def assign_default_policy(
    booking_id: UUID,
    service: CancellationService = Depends(get_cancellation_service),
) -> AssignPolicyResponse:
    return AssignPolicyResponse(assigned=await service.assign_default_policy_to_booking(booking_id))
