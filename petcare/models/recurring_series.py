"""
Recurring booking series - a standing instruction to generate bookings on a schedule.
"""
from datetime import date, datetime, timezone
from typing import Optional
from uuid import uuid4, UUID
import enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    Float,
    Integer,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from petcare.lib.db import Base


class Frequency(str, enum.Enum):
    """Base period of a recurring series."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RecurringBookingSeries(Base):
    """
    Series entity. Never hard-deleted except as the compensation step of a
    failed creation.
    """
    __tablename__ = "recurring_booking_series"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Parties
    owner_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    provider_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    pet_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Schedule
    frequency: Mapped[Frequency] = mapped_column(
        SQLEnum(
            Frequency,
            name="recurrence_frequency",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    interval_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    days_of_week: Mapped[Optional[list]] = mapped_column(
        JSON,
        nullable=True,
        comment="Weekday indices, 0 = Sunday",
    )
    time_of_day: Mapped[str] = mapped_column(String(5), nullable=False)

    # Booking template
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    pickup_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    pickup_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pickup_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    special_instructions: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    service_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)

    # Bounds
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    max_occurrences: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Progress
    occurrences_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

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

    __table_args__ = (
        CheckConstraint("interval_count >= 1", name="series_interval_positive"),
        CheckConstraint("occurrences_created >= 0", name="series_occurrences_non_negative"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="series_end_after_start",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<RecurringBookingSeries(id={self.id}, frequency={self.frequency}, "
            f"active={self.is_active})>"
        )
