"""
Shared fixtures: a mocked data store for unit tests and an in-memory SQLite
store for integration tests.
"""
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from petcare.lib.datastore import DataStore, SQLAlchemyDataStore
from petcare.lib.db import drop_db, init_db
from petcare.models.recurring_series import Frequency
from petcare.schemas.recurring import RecurringSeries


# Monday 2 March 2026, 09:00 UTC
FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def mock_store():
    """DataStore double whose methods are AsyncMocks."""
    return AsyncMock(spec=DataStore)


@pytest.fixture
def series_factory():
    """Build RecurringSeries objects with sensible defaults."""

    def _build(**overrides) -> RecurringSeries:
        data = {
            "owner_id": uuid4(),
            "provider_id": uuid4(),
            "pet_ids": [uuid4()],
            "frequency": Frequency.DAILY,
            "interval_count": 1,
            "days_of_week": None,
            "time_of_day": "08:00",
            "duration_minutes": 30,
            "pickup_address": "12 Bark Street",
            "pickup_latitude": 40.7128,
            "pickup_longitude": -74.006,
            "special_instructions": "Leash is by the door",
            "service_name": "Dog Walking",
            "total_amount": 25.0,
            "start_date": date(2026, 3, 2),
        }
        data.update(overrides)
        return RecurringSeries(**data)

    return _build


@pytest_asyncio.fixture
async def sqlite_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await drop_db(engine)
    await engine.dispose()


@pytest.fixture
def sqlite_store(sqlite_engine) -> SQLAlchemyDataStore:
    return SQLAlchemyDataStore(async_sessionmaker(bind=sqlite_engine, expire_on_commit=False))
