"""
Tests for the periodic top-up of active recurring series.
"""
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from petcare.jobs.series_topup import top_up_active_series
from petcare.lib.datastore import DataStoreError
from petcare.schemas.recurring import TopUpResult
from petcare.services.recurring_booking_service import RecurringBookingService


@pytest.fixture
def service():
    mock = MagicMock(spec=RecurringBookingService)
    mock.list_active_series_ids = AsyncMock()
    mock.generate_next_bookings_for_series = AsyncMock()
    return mock


@pytest.mark.unit
@pytest.mark.asyncio
async def test_tops_up_every_active_series(service):
    series_ids = [uuid4(), uuid4(), uuid4()]
    service.list_active_series_ids.return_value = series_ids
    service.generate_next_bookings_for_series.side_effect = [
        TopUpResult(success=True, created=4),
        TopUpResult(success=True, created=0),
        TopUpResult(success=False, created=0),
    ]

    summary = await top_up_active_series(service)

    assert summary["series"] == 3
    assert summary["created"] == 4
    assert summary["failed"] == 1
    assert summary["duration_seconds"] >= 0
    called_with = [c.args[0] for c in service.generate_next_bookings_for_series.await_args_list]
    assert called_with == series_ids


@pytest.mark.unit
@pytest.mark.asyncio
async def test_no_active_series(service):
    service.list_active_series_ids.return_value = []

    summary = await top_up_active_series(service)

    assert summary["series"] == 0
    assert summary["created"] == 0
    service.generate_next_bookings_for_series.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_listing_failure_is_logged_and_summarised(service):
    service.list_active_series_ids.side_effect = DataStoreError("connection refused")

    summary = await top_up_active_series(service)

    assert summary["series"] == 0
    assert "duration_seconds" in summary
    service.generate_next_bookings_for_series.assert_not_awaited()
