"""
SQLAlchemy models package.
Import all models here to ensure they're registered with Base.metadata.
"""
from petcare.models.recurring_series import RecurringBookingSeries, Frequency
from petcare.models.cancellation_policies import CancellationPolicy
from petcare.models.bookings import Booking, BookingStatus, PaymentStatus, RefundStatus
from petcare.models.booking_pets import BookingPet
from petcare.models.notifications import Notification, NotificationType

__all__ = [
    "RecurringBookingSeries",
    "Frequency",
    "CancellationPolicy",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "RefundStatus",
    "BookingPet",
    "Notification",
    "NotificationType",
]
