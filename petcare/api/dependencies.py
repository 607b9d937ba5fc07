"""
API dependencies for FastAPI dependency injection.

Tests override `get_store` to point the services at their own database.
"""
from fastapi import Depends

from petcare.lib.datastore import DataStore, get_data_store
from petcare.services.cancellation_service import CancellationService
from petcare.services.recurring_booking_service import RecurringBookingService


def get_store() -> DataStore:
    return get_data_store()


def get_recurring_service(store: DataStore = Depends(get_store)) -> RecurringBookingService:
    return RecurringBookingService(store)


def get_cancellation_service(store: DataStore = Depends(get_store)) -> CancellationService:
    return CancellationService(store)
