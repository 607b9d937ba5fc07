"""
Booking model - one concrete appointment between a pet owner and a provider.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4, UUID
import enum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from petcare.lib.db import Base


class BookingStatus(str, enum.Enum):
    """Booking status state machine."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class RefundStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSED = "processed"


def _values(e):
    return [m.value for m in e]


class Booking(Base):
    """
    Booking entity.
    State machine: pending → accepted → in_progress → completed (or cancelled).
    """
    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Parties
    owner_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    pet_master_id: Mapped[UUID] = mapped_column(
        Uuid,
        nullable=False,
        index=True,
        comment="Provider fulfilling the booking",
    )
    pet_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    pet_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, name="booking_status", values_callable=_values),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )

    # Timing
    scheduled_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    booking_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)

    # Pickup
    pickup_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    pickup_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pickup_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    special_instructions: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)

    # Payment
    service_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    total_price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, name="payment_status", values_callable=_values),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    # Recurrence
    recurring_series_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("recurring_booking_series.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    occurrence_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Cancellation
    cancellation_policy_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("cancellation_policies.id", ondelete="SET NULL"),
        nullable=True,
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    refund_amount: Mapped[Optional[float]] = mapped_column(
        Numeric(10, 2, asdecimal=False),
        nullable=True,
    )
    refund_status: Mapped[Optional[RefundStatus]] = mapped_column(
        SQLEnum(RefundStatus, name="refund_status", values_callable=_values),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, status={self.status}, owner_id={self.owner_id})>"
