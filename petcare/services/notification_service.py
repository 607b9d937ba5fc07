"""
In-app notification writer.

Booking workflows record notifications for owners and providers in the
notifications collection. Push delivery is handled elsewhere in the system;
this service only writes the rows the notification bell reads.
"""
from typing import Optional, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from petcare.lib.datastore import Collection, DataStore, DataStoreError
from petcare.lib.logging import get_logger, log_with_context
from petcare.lib.settings import settings
from petcare.models.notifications import NotificationType
from petcare.schemas.cancellation import BookingRecord
from petcare.schemas.recurring import RecurringSeries


logger = get_logger(__name__)


class NotificationMessage(BaseModel):
    recipient_id: UUID
    type: NotificationType
    title: str
    message: str


class NotificationService:
    """
    Writes notification rows through the data store.

    Sending a notification never fails the calling workflow: write errors
    are logged and reported through the return value.
    """

    def __init__(self, store: DataStore):
        self.store = store

    async def send(self, notifications: Sequence[NotificationMessage]) -> bool:
        """
        Insert notifications as unread rows.

        Returns:
            True if all rows were written, False otherwise
        """
        if not notifications:
            return True

        rows = [
            {
                "recipient_id": n.recipient_id,
                "type": n.type.value,
                "title": n.title,
                "message": n.message,
                "is_read": False,
            }
            for n in notifications
        ]
        try:
            await self.store.insert(Collection.NOTIFICATIONS, rows)
        except DataStoreError as e:
            logger.error(f"Failed to write {len(rows)} notification(s): {e}", exc_info=True)
            return False

        log_with_context(
            logger,
            "info",
            f"Queued {len(rows)} notification(s)",
            types=sorted({n.type.value for n in notifications}),
            recipients=len({n.recipient_id for n in notifications}),
        )
        return True

    async def notify_series_created(self, series: RecurringSeries, occurrence_count: int) -> bool:
        """Tell owner and provider that a recurring series was set up."""
        return await self.send([
            NotificationMessage(
                recipient_id=series.owner_id,
                type=NotificationType.RECURRING_CREATED,
                title="Recurring Booking Created",
                message=(
                    f"Your recurring booking series for {series.service_name} has been "
                    f"created with {occurrence_count} upcoming appointments."
                ),
            ),
            NotificationMessage(
                recipient_id=series.provider_id,
                type=NotificationType.RECURRING_CREATED,
                title="New Recurring Booking",
                message=(
                    f"You have a new recurring booking series for {series.service_name} "
                    f"starting on {series.start_date.isoformat()}."
                ),
            ),
        ])

    async def notify_booking_cancelled(
        self,
        booking: BookingRecord,
        refund_amount: Optional[float],
    ) -> bool:
        """Tell owner (with refund outcome) and provider about a cancellation."""
        day = booking.scheduled_date.astimezone(ZoneInfo(settings.timezone)).date().isoformat()
        if refund_amount and refund_amount > 0:
            refund_text = f"Refund: ${refund_amount:.2f}"
        else:
            refund_text = "No refund applicable."

        return await self.send([
            NotificationMessage(
                recipient_id=booking.owner_id,
                type=NotificationType.BOOKING_CANCELLED,
                title="Booking Cancelled",
                message=(
                    f"Your booking for {booking.service_name} on {day} has been cancelled. "
                    f"{refund_text}"
                ),
            ),
            NotificationMessage(
                recipient_id=booking.pet_master_id,
                type=NotificationType.BOOKING_CANCELLED,
                title="Booking Cancelled",
                message=(
                    f"A booking for {booking.service_name} on {day} has been cancelled "
                    f"by the customer."
                ),
            ),
        ])
