"""
Recurring booking engine.

Turns a series definition into a bounded list of occurrence dates and keeps a
rolling window of future bookings per active series:
- generate_occurrences: pure date-sequence generation
- create_recurring_series: series + first batch of bookings (with compensation)
- generate_next_bookings_for_series: periodic top-up of the rolling window
- cancel_recurring_series: stop a series and cancel its open bookings
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Iterator, Optional, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from petcare.lib.datastore import (
    Collection,
    DataStore,
    DataStoreError,
    eq,
    gte,
    in_,
)
from petcare.lib.logging import get_logger, log_with_context
from petcare.lib.settings import settings
from petcare.models.bookings import BookingStatus, PaymentStatus
from petcare.models.recurring_series import Frequency
from petcare.schemas.recurring import (
    Occurrence,
    RecurringSeries,
    RecurringSeriesWithBookings,
    SeriesBookingSummary,
    SeriesCancellationResult,
    SeriesCreationResult,
    SeriesCreationState,
    TopUpResult,
)
from petcare.services.notification_service import NotificationService


logger = get_logger(__name__)


SERIES_CANCELLATION_REASON = "Recurring series cancelled by user"
OPEN_STATUSES = (BookingStatus.PENDING, BookingStatus.ACCEPTED)
WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def weekday_index(day: date) -> int:
    """Weekday with Sunday = 0, matching days_of_week."""
    return day.isoweekday() % 7


def _nth_period_date(series: RecurringSeries, step: int) -> date:
    """Start date advanced by `step` whole periods of the series."""
    span = step * series.interval_count
    if series.frequency == Frequency.DAILY:
        return series.start_date + timedelta(days=span)
    if series.frequency == Frequency.WEEKLY:
        return series.start_date + timedelta(weeks=span)
    # Anchored on start_date so month-end clamping does not drift
    return series.start_date + relativedelta(months=span)


def _candidate_dates(series: RecurringSeries, last_day: date) -> Iterator[date]:
    """
    Walk candidate dates from start_date up to and including last_day.

    Weekly series with explicit weekdays scan one day at a time and
    interval_count is not applied.
    """
    if series.frequency == Frequency.WEEKLY and series.days_of_week:
        wanted = set(series.days_of_week)
        current = series.start_date
        while current <= last_day:
            if weekday_index(current) in wanted:
                yield current
            current += timedelta(days=1)
        return

    step = 0
    while True:
        current = _nth_period_date(series, step)
        if current > last_day:
            return
        yield current
        step += 1


def generate_occurrences(
    series: RecurringSeries,
    limit: Optional[int] = None,
    today: Optional[date] = None,
    horizon_months: Optional[int] = None,
) -> list[Occurrence]:
    """
    Compute the next batch of occurrences for a series.

    Numbering continues from occurrences_created + 1, and the first
    occurrences_created candidate dates are treated as already generated, so
    repeated batches continue the calendar instead of restarting it.

    Args:
        series: Series definition
        limit: Maximum occurrences to return (defaults to the batch size)
        today: Reference date for the safety horizon (defaults to today, UTC)
        horizon_months: Safety horizon length (defaults to settings)

    Returns:
        Ordered occurrences; empty when nothing falls inside the bounds
    """
    if limit is None:
        limit = settings.recurring_batch_size
    if limit <= 0:
        return []
    if today is None:
        today = _utcnow().date()
    if horizon_months is None:
        horizon_months = settings.recurring_horizon_months

    last_day = today + relativedelta(months=horizon_months)
    if series.end_date is not None and series.end_date < last_day:
        last_day = series.end_date

    occurrences: list[Occurrence] = []
    already_generated = series.occurrences_created
    occurrence_number = series.occurrences_created + 1

    for candidate in _candidate_dates(series, last_day):
        if len(occurrences) >= limit:
            break
        if series.max_occurrences and occurrence_number > series.max_occurrences:
            break
        if already_generated > 0:
            already_generated -= 1
            continue
        occurrences.append(Occurrence(date=candidate, occurrence_number=occurrence_number))
        occurrence_number += 1

    return occurrences


def describe_frequency(series: RecurringSeries) -> str:
    """Human readable schedule, e.g. "Weekly on Mon, Wed" or "Every 2 months"."""
    if series.frequency == Frequency.WEEKLY and series.days_of_week:
        days = ", ".join(WEEKDAY_NAMES[d] for d in series.days_of_week)
        return f"Weekly on {days}"
    if series.interval_count == 1:
        return series.frequency.value.capitalize()
    unit = {
        Frequency.DAILY: "days",
        Frequency.WEEKLY: "weeks",
        Frequency.MONTHLY: "months",
    }[series.frequency]
    return f"Every {series.interval_count} {unit}"


class RecurringBookingService:
    """Persists series and their occurrence bookings through the data store."""

    def __init__(
        self,
        store: DataStore,
        notifications: Optional[NotificationService] = None,
        batch_size: Optional[int] = None,
        link_pets_to_bookings: Optional[bool] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.notifications = notifications or NotificationService(store)
        self.batch_size = batch_size or settings.recurring_batch_size
        self.link_pets_to_bookings = (
            settings.link_pets_to_bookings
            if link_pets_to_bookings is None
            else link_pets_to_bookings
        )
        self._clock = clock
        self._zone = ZoneInfo(settings.timezone)

    # ------------------------------------------------------------------
    # Row builders
    # ------------------------------------------------------------------
    def _series_row(self, series: RecurringSeries) -> dict:
        return {
            "owner_id": series.owner_id,
            "provider_id": series.provider_id,
            "pet_ids": [str(p) for p in series.pet_ids],
            "frequency": series.frequency,
            "interval_count": series.interval_count,
            "days_of_week": list(series.days_of_week) if series.days_of_week else None,
            "time_of_day": series.time_of_day,
            "duration_minutes": series.duration_minutes,
            "pickup_address": series.pickup_address,
            "pickup_latitude": series.pickup_latitude,
            "pickup_longitude": series.pickup_longitude,
            "special_instructions": series.special_instructions,
            "service_name": series.service_name,
            "total_amount": series.total_amount,
            "start_date": series.start_date,
            "end_date": series.end_date,
            "max_occurrences": series.max_occurrences,
            "occurrences_created": 0,
            "is_active": True,
        }

    def scheduled_at(self, series: RecurringSeries, day: date) -> datetime:
        """Combine an occurrence date with the series' time of day, in UTC."""
        local = datetime.combine(day, time.fromisoformat(series.time_of_day), tzinfo=self._zone)
        return local.astimezone(timezone.utc)

    def _booking_row(self, series: RecurringSeries, occurrence: Occurrence) -> dict:
        scheduled = self.scheduled_at(series, occurrence.date)
        return {
            "owner_id": series.owner_id,
            "pet_master_id": series.provider_id,
            "pet_id": series.pet_ids[0] if series.pet_ids else None,
            "pet_count": len(series.pet_ids),
            "status": BookingStatus.PENDING,
            "scheduled_date": scheduled,
            "booking_date": scheduled,
            "duration_minutes": series.duration_minutes,
            "pickup_address": series.pickup_address,
            "pickup_latitude": series.pickup_latitude,
            "pickup_longitude": series.pickup_longitude,
            "special_instructions": series.special_instructions,
            "service_name": series.service_name,
            "total_amount": series.total_amount,
            "total_price": series.total_amount,
            "payment_status": PaymentStatus.PENDING,
            "recurring_series_id": series.id,
            "is_recurring": True,
            "occurrence_number": occurrence.occurrence_number,
        }

    def _pet_link_rows(self, series: RecurringSeries, bookings: Sequence[dict]) -> list[dict]:
        if self.link_pets_to_bookings:
            return [
                {"booking_id": booking["id"], "pet_id": pet_id}
                for booking in bookings
                for pet_id in series.pet_ids
            ]
        # Legacy linkage: rows keyed by the series id, one per booking and pet
        return [
            {"booking_id": series.id, "pet_id": pet_id}
            for pet_id in series.pet_ids
            for _ in bookings
        ]

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    async def _roll_back(self, series_id: UUID) -> bool:
        """Compensation: remove a series whose bookings could not be written."""
        try:
            await self.store.delete(Collection.RECURRING_SERIES, filters=[eq("id", series_id)])
            logger.info(f"Rolled back recurring series {series_id}")
            return True
        except DataStoreError as e:
            logger.error(
                f"Compensating delete failed, series {series_id} is orphaned: {e}",
                exc_info=True,
            )
            return False

    async def _link_pets(self, series: RecurringSeries, bookings: Sequence[dict]) -> bool:
        rows = self._pet_link_rows(series, bookings)
        try:
            await self.store.insert(Collection.BOOKING_PETS, rows)
            return True
        except DataStoreError as e:
            logger.error(f"Failed to link pets for series {series.id}: {e}", exc_info=True)
            return False

    async def _set_occurrences_created(self, series_id: UUID, value: int) -> bool:
        try:
            await self.store.update(
                Collection.RECURRING_SERIES,
                {"occurrences_created": value},
                filters=[eq("id", series_id)],
            )
            return True
        except DataStoreError as e:
            logger.error(
                f"Failed to update occurrences_created for series {series_id}: {e}",
                exc_info=True,
            )
            return False

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def create_recurring_series(self, series: RecurringSeries) -> SeriesCreationResult:
        """
        Store a series, its first batch of bookings, pet links and notifications.

        If no occurrence can be generated or the bookings cannot be written,
        the series row is deleted again so no orphan series remains.
        """
        try:
            created = await self.store.insert(Collection.RECURRING_SERIES, [self._series_row(series)])
        except DataStoreError as e:
            logger.error(f"Error creating recurring series: {e}", exc_info=True)
            return SeriesCreationResult(success=False, error=e.message)

        series_id = created[0]["id"]
        stored = series.model_copy(update={"id": series_id, "occurrences_created": 0})
        state = SeriesCreationState.CREATED
        log_with_context(
            logger,
            "info",
            f"Recurring series {series_id} created",
            series_id=series_id,
            owner_id=series.owner_id,
            provider_id=series.provider_id,
            frequency=series.frequency,
        )

        occurrences = generate_occurrences(stored, self.batch_size, today=self._clock().date())
        if not occurrences:
            rolled_back = await self._roll_back(series_id)
            return SeriesCreationResult(
                success=False,
                error="No valid occurrences could be generated",
                state=SeriesCreationState.ROLLED_BACK if rolled_back else state,
            )

        try:
            bookings = await self.store.insert(
                Collection.BOOKINGS,
                [self._booking_row(stored, occ) for occ in occurrences],
            )
        except DataStoreError as e:
            logger.error(f"Error creating bookings for series {series_id}: {e}", exc_info=True)
            rolled_back = await self._roll_back(series_id)
            return SeriesCreationResult(
                success=False,
                error=e.message,
                state=SeriesCreationState.ROLLED_BACK if rolled_back else state,
            )
        state = SeriesCreationState.BOOKINGS_WRITTEN

        if await self._link_pets(stored, bookings):
            state = SeriesCreationState.LINKS_WRITTEN

        if await self._set_occurrences_created(series_id, len(occurrences)):
            if state == SeriesCreationState.LINKS_WRITTEN:
                state = SeriesCreationState.COMMITTED

        await self.notifications.notify_series_created(stored, len(occurrences))

        log_with_context(
            logger,
            "info",
            f"Recurring series {series_id} finished in state {state.value}",
            series_id=series_id,
            state=state,
            bookings_created=len(occurrences),
        )
        return SeriesCreationResult(success=True, series_id=series_id, state=state)

    async def generate_next_bookings_for_series(self, series_id: UUID) -> TopUpResult:
        """
        Top up an active series to `batch_size` future bookings.

        The number to create comes from the count of future bookings; their
        numbering continues from the persisted occurrences_created.
        """
        try:
            row = await self.store.select_one(
                Collection.RECURRING_SERIES,
                filters=[eq("id", series_id)],
            )
            if row is None or not row.get("is_active"):
                logger.info(f"Series {series_id} missing or inactive, nothing to top up")
                return TopUpResult(success=False, created=0)

            series = RecurringSeries.model_validate(row)
            now = self._clock()
            existing = await self.store.count(
                Collection.BOOKINGS,
                filters=[
                    eq("recurring_series_id", series_id),
                    gte("scheduled_date", now),
                ],
            )
            if existing >= self.batch_size:
                return TopUpResult(success=True, created=0)

            occurrences = generate_occurrences(
                series,
                self.batch_size - existing,
                today=now.date(),
            )
            if not occurrences:
                return TopUpResult(success=True, created=0)

            bookings = await self.store.insert(
                Collection.BOOKINGS,
                [self._booking_row(series, occ) for occ in occurrences],
            )
            if self.link_pets_to_bookings:
                await self._link_pets(series, bookings)

            await self.store.update(
                Collection.RECURRING_SERIES,
                {"occurrences_created": series.occurrences_created + len(occurrences)},
                filters=[eq("id", series_id)],
            )
        except (DataStoreError, ValidationError) as e:
            logger.error(f"Error generating next bookings for series {series_id}: {e}", exc_info=True)
            return TopUpResult(success=False, created=0)

        logger.info(f"Topped up series {series_id} with {len(occurrences)} booking(s)")
        return TopUpResult(success=True, created=len(occurrences))

    async def cancel_recurring_series(
        self,
        series_id: UUID,
        cancel_future_only: bool = True,
    ) -> SeriesCancellationResult:
        """
        Deactivate a series and cancel its pending/accepted bookings.

        Args:
            series_id: Series to cancel
            cancel_future_only: Only cancel bookings scheduled from now on
        """
        now = self._clock()
        filters = [
            eq("recurring_series_id", series_id),
            in_("status", OPEN_STATUSES),
        ]
        if cancel_future_only:
            filters.append(gte("scheduled_date", now))

        try:
            cancelled = await self.store.update(
                Collection.BOOKINGS,
                {
                    "status": BookingStatus.CANCELLED,
                    "cancelled_at": now,
                    "cancellation_reason": SERIES_CANCELLATION_REASON,
                },
                filters=filters,
            )
            await self.store.update(
                Collection.RECURRING_SERIES,
                {"is_active": False},
                filters=[eq("id", series_id)],
            )
        except DataStoreError as e:
            logger.error(f"Error cancelling recurring series {series_id}: {e}", exc_info=True)
            return SeriesCancellationResult(
                success=False,
                message="Failed to cancel recurring series",
            )

        logger.info(f"Cancelled series {series_id} ({cancelled} booking(s) cancelled)")
        return SeriesCancellationResult(
            success=True,
            message=(
                "Future bookings in this series have been cancelled"
                if cancel_future_only
                else "All bookings in this series have been cancelled"
            ),
        )

    async def get_recurring_series(self, owner_id: UUID) -> list[RecurringSeriesWithBookings]:
        """An owner's series, newest first, each with its bookings."""
        try:
            rows = await self.store.select(
                Collection.RECURRING_SERIES,
                filters=[eq("owner_id", owner_id)],
                order_by="created_at",
                descending=True,
            )
            if not rows:
                return []

            booking_rows = await self.store.select(
                Collection.BOOKINGS,
                columns=["id", "status", "scheduled_date", "occurrence_number", "recurring_series_id"],
                filters=[in_("recurring_series_id", [row["id"] for row in rows])],
                order_by="occurrence_number",
            )
            by_series: dict = {}
            for booking in booking_rows:
                by_series.setdefault(booking["recurring_series_id"], []).append(
                    SeriesBookingSummary.model_validate(booking)
                )

            return [
                RecurringSeriesWithBookings(
                    **RecurringSeries.model_validate(row).model_dump(),
                    bookings=by_series.get(row["id"], []),
                )
                for row in rows
            ]
        except (DataStoreError, ValidationError) as e:
            logger.error(f"Error fetching recurring series for {owner_id}: {e}", exc_info=True)
            return []

    async def list_active_series_ids(self) -> list[UUID]:
        rows = await self.store.select(
            Collection.RECURRING_SERIES,
            columns=["id"],
            filters=[eq("is_active", True)],
        )
        return [row["id"] for row in rows]
