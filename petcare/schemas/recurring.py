"""
Recurring series DTOs.
"""
import datetime as dt
import enum
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from petcare.models.bookings import BookingStatus
from petcare.models.recurring_series import Frequency
from petcare.schemas.common import as_utc


Weekday = Annotated[int, Field(ge=0, le=6, description="0 = Sunday ... 6 = Saturday")]
TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class SeriesTemplate(BaseModel):
    """Schedule plus the booking fields copied into every occurrence."""

    model_config = ConfigDict(from_attributes=True)

    owner_id: UUID
    provider_id: UUID
    pet_ids: list[UUID]

    frequency: Frequency
    interval_count: int = Field(default=1, ge=1)
    days_of_week: Optional[list[Weekday]] = None
    time_of_day: str = Field(pattern=TIME_OF_DAY_PATTERN)

    duration_minutes: int = Field(default=60, ge=1)
    pickup_address: Optional[str] = None
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    special_instructions: Optional[str] = None
    service_name: str
    total_amount: float = Field(ge=0)

    start_date: dt.date
    end_date: Optional[dt.date] = None
    max_occurrences: Optional[int] = Field(default=None, ge=1)


class RecurringSeries(SeriesTemplate):
    """A stored (or about to be stored) series."""

    id: Optional[UUID] = None
    occurrences_created: int = Field(default=0, ge=0)
    is_active: bool = True
    created_at: Optional[dt.datetime] = None

    @field_validator("occurrences_created", mode="before")
    @classmethod
    def _null_counter_is_zero(cls, value):
        return 0 if value is None else value

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value):
        return as_utc(value)


class RecurringSeriesCreate(SeriesTemplate):
    """
    Request body for creating a series.

    Rejects inputs that could never produce an occurrence.
    """

    @field_validator("pet_ids")
    @classmethod
    def _at_least_one_pet(cls, value: list[UUID]) -> list[UUID]:
        if not value:
            raise ValueError("At least one pet is required")
        return value

    @model_validator(mode="after")
    def _check_schedule(self) -> "RecurringSeriesCreate":
        if self.frequency == Frequency.WEEKLY and not self.days_of_week:
            raise ValueError("Weekly series need at least one day of the week")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def to_series(self) -> RecurringSeries:
        return RecurringSeries(**self.model_dump())


class Occurrence(BaseModel):
    """One generated calendar date of a series."""
    date: dt.date
    occurrence_number: int


class SeriesBookingSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: BookingStatus
    scheduled_date: dt.datetime
    occurrence_number: Optional[int] = None

    @field_validator("scheduled_date")
    @classmethod
    def _scheduled_utc(cls, value):
        return as_utc(value)


class RecurringSeriesWithBookings(RecurringSeries):
    bookings: list[SeriesBookingSummary] = Field(default_factory=list)


class SeriesCreationState(str, enum.Enum):
    """Progress of the multi-step series creation."""
    CREATED = "created"
    BOOKINGS_WRITTEN = "bookings_written"
    LINKS_WRITTEN = "links_written"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class SeriesCreationResult(BaseModel):
    success: bool
    series_id: Optional[UUID] = None
    error: Optional[str] = None
    state: Optional[SeriesCreationState] = None


class TopUpResult(BaseModel):
    success: bool
    created: int = 0


class SeriesCancellationResult(BaseModel):
    success: bool
    message: str
