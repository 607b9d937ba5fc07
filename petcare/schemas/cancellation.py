"""
Cancellation and refund DTOs.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from petcare.models.bookings import BookingStatus
from petcare.schemas.common import as_utc


class PolicyRecord(BaseModel):
    """Read-only view of a cancellation policy."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    hours_before: int = Field(ge=0)
    refund_percentage: float = Field(ge=0, le=100)
    description: Optional[str] = None


class BookingRecord(BaseModel):
    """The booking fields the refund evaluator needs."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    pet_master_id: UUID
    status: BookingStatus
    scheduled_date: datetime
    service_name: str
    total_price: Optional[float] = None
    cancellation_policy_id: Optional[UUID] = None

    @field_validator("scheduled_date")
    @classmethod
    def _scheduled_utc(cls, value):
        return as_utc(value)


class CancellationResult(BaseModel):
    """Outcome of evaluating a cancellation request. Never persisted."""
    can_cancel: bool
    refund_percentage: float
    refund_amount: float
    reason: str
    policy_name: str


class BookingCancellationResult(BaseModel):
    success: bool
    message: str
    refund_amount: Optional[float] = None
