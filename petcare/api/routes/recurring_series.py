"""
Recurring series API routes.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from petcare.api.dependencies import get_recurring_service
from petcare.api.middleware.error_handler import BadRequestException, ConflictException
from petcare.schemas.recurring import (
    RecurringSeriesCreate,
    RecurringSeriesWithBookings,
    SeriesCancellationResult,
    SeriesCreationResult,
    TopUpResult,
)
from petcare.services.recurring_booking_service import RecurringBookingService, describe_frequency


class SeriesResponse(RecurringSeriesWithBookings):
    schedule: str


class CancelSeriesRequest(BaseModel):
    cancel_future_only: bool = True


router = APIRouter(prefix="/recurring-series", tags=["recurring-series"])


@router.post("", response_model=SeriesCreationResult, status_code=status.HTTP_201_CREATED)
async def create_series(
    body: RecurringSeriesCreate,
    service: RecurringBookingService = Depends(get_recurring_service),
) -> SeriesCreationResult:
    """
    Create a recurring series and its first batch of bookings.
    """
    result = await service.create_recurring_series(body.to_series())
    if not result.success:
        raise BadRequestException(result.error or "Could not create recurring series")
    return result


@router.get("", response_model=List[SeriesResponse])
async def list_series(
    owner_id: UUID = Query(..., description="Owner whose series to list"),
    service: RecurringBookingService = Depends(get_recurring_service),
) -> List[SeriesResponse]:
    """
    List an owner's series, newest first, with their bookings.
    """
    series = await service.get_recurring_series(owner_id)
    return [
        SeriesResponse(**s.model_dump(), schedule=describe_frequency(s))
        for s in series
    ]


@router.post("/{series_id}/top-up", response_model=TopUpResult)
async def top_up_series(
    series_id: UUID,
    service: RecurringBookingService = Depends(get_recurring_service),
) -> TopUpResult:
    result = await service.generate_next_bookings_for_series(series_id)
    if not result.success:
        raise ConflictException(
            "Series is missing, inactive or could not be topped up",
            details={"series_id": str(series_id)},
        )
    return result


@router.post("/{series_id}/cancel", response_model=SeriesCancellationResult)
async def cancel_series(
    series_id: UUID,
    body: CancelSeriesRequest = CancelSeriesRequest(),
    service: RecurringBookingService = Depends(get_recurring_service),
) -> SeriesCancellationResult:
    """
    Deactivate a series and cancel its open bookings.
    """
    result = await service.cancel_recurring_series(series_id, body.cancel_future_only)
    if not result.success:
        raise BadRequestException(result.message)
    return result
