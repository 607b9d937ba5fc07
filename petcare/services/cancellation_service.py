"""
Cancellation and refund policy evaluation.

A booking can be cancelled unless it is already cancelled, completed or in the
past. The refund is all-or-nothing per policy: cancelling at least
`hours_before` hours ahead refunds `refund_percentage` of the price, anything
later refunds nothing. Bookings without a policy fall back to the default
policy; if that is missing too, cancellation is allowed with no refund.
"""
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID

from pydantic import ValidationError

from petcare.lib.datastore import Collection, DataStore, DataStoreError, eq, in_, is_null
from petcare.lib.logging import get_logger, log_with_context
from petcare.lib.settings import settings
from petcare.models.bookings import BookingStatus, RefundStatus
from petcare.schemas.cancellation import (
    BookingCancellationResult,
    BookingRecord,
    CancellationResult,
    PolicyRecord,
)
from petcare.services.notification_service import NotificationService


logger = get_logger(__name__)


NO_POLICY_NAME = "No Policy"
CANCELLABLE_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.ACCEPTED,
    BookingStatus.IN_PROGRESS,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _refused(reason: str) -> CancellationResult:
    return CancellationResult(
        can_cancel=False,
        refund_percentage=0,
        refund_amount=0,
        reason=reason,
        policy_name="N/A",
    )


def hours_until(booking: BookingRecord, now: datetime) -> float:
    return (booking.scheduled_date - now).total_seconds() / 3600


def cancellation_refusal(booking: BookingRecord, now: datetime) -> Optional[CancellationResult]:
    """Return a "cannot cancel" result, or None if the booking may be cancelled."""
    if booking.status == BookingStatus.CANCELLED:
        return _refused("Booking is already cancelled")
    if booking.status == BookingStatus.COMPLETED:
        return _refused("Cannot cancel a completed booking")
    if hours_until(booking, now) < 0:
        return _refused("Cannot cancel a past booking")
    return None


def compute_refund(
    booking: BookingRecord,
    policy: Optional[PolicyRecord],
    now: datetime,
) -> CancellationResult:
    """Apply a policy's threshold to a cancellable booking."""
    if policy is None:
        return CancellationResult(
            can_cancel=True,
            refund_percentage=0,
            refund_amount=0,
            reason="No cancellation policy found",
            policy_name=NO_POLICY_NAME,
        )

    hours = hours_until(booking, now)
    meets_threshold = hours >= policy.hours_before
    refund_percentage = policy.refund_percentage if meets_threshold else 0
    total = booking.total_price or 0
    refund_amount = round(total * refund_percentage / 100, 2)

    if meets_threshold:
        reason = f"Cancelling {hours:.1f} hours before booking"
    else:
        reason = f"Cancelling less than {policy.hours_before} hours before booking"

    return CancellationResult(
        can_cancel=True,
        refund_percentage=refund_percentage,
        refund_amount=refund_amount,
        reason=reason,
        policy_name=policy.name,
    )


def evaluate_cancellation(
    booking: BookingRecord,
    policy: Optional[PolicyRecord],
    now: Optional[datetime] = None,
) -> CancellationResult:
    """Full evaluation for an already-resolved policy."""
    now = now or _utcnow()
    return cancellation_refusal(booking, now) or compute_refund(booking, policy, now)


class CancellationService:
    """Loads bookings and policies from the store and applies the refund rules."""

    def __init__(
        self,
        store: DataStore,
        notifications: Optional[NotificationService] = None,
        default_policy_name: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.notifications = notifications or NotificationService(store)
        self.default_policy_name = default_policy_name or settings.default_cancellation_policy
        self._clock = clock

    async def get_cancellation_policies(self) -> list[PolicyRecord]:
        """All policies, most lenient threshold first."""
        try:
            rows = await self.store.select(
                Collection.CANCELLATION_POLICIES,
                order_by="hours_before",
            )
            return [PolicyRecord.model_validate(row) for row in rows]
        except (DataStoreError, ValidationError) as e:
            logger.error(f"Error fetching cancellation policies: {e}", exc_info=True)
            return []

    async def get_default_policy(self) -> Optional[PolicyRecord]:
        try:
            row = await self.store.select_one(
                Collection.CANCELLATION_POLICIES,
                filters=[eq("name", self.default_policy_name)],
            )
            if row is None:
                logger.warning(f"Default cancellation policy '{self.default_policy_name}' not found")
                return None
            return PolicyRecord.model_validate(row)
        except (DataStoreError, ValidationError) as e:
            logger.error(f"Error fetching default policy: {e}", exc_info=True)
            return None

    async def _resolve_policy(self, booking: BookingRecord) -> Optional[PolicyRecord]:
        if booking.cancellation_policy_id is not None:
            row = await self.store.select_one(
                Collection.CANCELLATION_POLICIES,
                filters=[eq("id", booking.cancellation_policy_id)],
            )
            if row is not None:
                return PolicyRecord.model_validate(row)
        return await self.get_default_policy()

    async def _assess(self, booking_id: UUID) -> Optional[tuple[BookingRecord, CancellationResult]]:
        try:
            row = await self.store.select_one(Collection.BOOKINGS, filters=[eq("id", booking_id)])
            if row is None:
                logger.warning(f"Booking {booking_id} not found")
                return None
            booking = BookingRecord.model_validate(row)

            now = self._clock()
            refusal = cancellation_refusal(booking, now)
            if refusal is not None:
                return booking, refusal

            policy = await self._resolve_policy(booking)
            return booking, compute_refund(booking, policy, now)
        except (DataStoreError, ValidationError) as e:
            logger.error(f"Error calculating cancellation refund for {booking_id}: {e}", exc_info=True)
            return None

    async def calculate_cancellation_refund(self, booking_id: UUID) -> Optional[CancellationResult]:
        """
        Evaluate whether a booking can be cancelled now and what it refunds.

        Returns:
            CancellationResult, or None if the booking could not be loaded
        """
        assessed = await self._assess(booking_id)
        return assessed[1] if assessed else None

    async def cancel_booking_with_refund(
        self,
        booking_id: UUID,
        reason: str,
    ) -> BookingCancellationResult:
        """
        Cancel a booking, record the refund owed and notify both parties.

        Args:
            booking_id: Booking to cancel
            reason: Free-text reason given by the user
        """
        assessed = await self._assess(booking_id)
        if assessed is None:
            return BookingCancellationResult(success=False, message="Failed to calculate refund")

        booking, result = assessed
        if not result.can_cancel:
            logger.info(f"Cancellation of {booking_id} refused: {result.reason}")
            return BookingCancellationResult(success=False, message=result.reason)

        now = self._clock()
        try:
            updated = await self.store.update(
                Collection.BOOKINGS,
                {
                    "status": BookingStatus.CANCELLED,
                    "cancelled_at": now,
                    "cancellation_reason": reason,
                    "refund_amount": result.refund_amount,
                    "refund_status": RefundStatus.PENDING if result.refund_amount > 0 else None,
                    "updated_at": now,
                },
                filters=[eq("id", booking_id), in_("status", CANCELLABLE_STATUSES)],
            )
        except DataStoreError as e:
            logger.error(f"Error updating booking {booking_id}: {e}", exc_info=True)
            return BookingCancellationResult(success=False, message="Failed to cancel booking")

        if updated == 0:
            logger.warning(f"Booking {booking_id} changed status before it could be cancelled")
            return BookingCancellationResult(success=False, message="Failed to cancel booking")

        await self.notifications.notify_booking_cancelled(booking, result.refund_amount)

        log_with_context(
            logger,
            "info",
            f"Booking {booking_id} cancelled under policy '{result.policy_name}'",
            booking_id=booking_id,
            owner_id=booking.owner_id,
            policy_name=result.policy_name,
            refund_amount=result.refund_amount,
        )
        if result.refund_amount > 0:
            message = (
                f"Booking cancelled. Refund of ${result.refund_amount:.2f} will be "
                f"processed within 5-7 business days."
            )
        else:
            message = "Booking cancelled. No refund applicable based on the cancellation policy."

        return BookingCancellationResult(
            success=True,
            message=message,
            refund_amount=result.refund_amount,
        )

    async def assign_default_policy_to_booking(self, booking_id: UUID) -> bool:
        """Attach the default policy to a booking that has none."""
        policy = await self.get_default_policy()
        if policy is None:
            return False
        try:
            await self.store.update(
                Collection.BOOKINGS,
                {"cancellation_policy_id": policy.id},
                filters=[eq("id", booking_id), is_null("cancellation_policy_id")],
            )
        except DataStoreError as e:
            logger.error(f"Error assigning default policy to {booking_id}: {e}", exc_info=True)
            return False
        return True
