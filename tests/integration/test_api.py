"""
Integration tests for the HTTP routes, backed by an in-memory SQLite store.
"""
import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from petcare.api.app import app
from petcare.api.dependencies import get_store
from petcare.lib.datastore import Collection


@pytest_asyncio.fixture
async def client(sqlite_store):
    app.dependency_overrides[get_store] = lambda: sqlite_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def series_body(**overrides):
    body = {
        "owner_id": str(uuid.uuid4()),
        "provider_id": str(uuid.uuid4()),
        "pet_ids": [str(uuid.uuid4())],
        "frequency": "daily",
        "interval_count": 1,
        "time_of_day": "10:00",
        "duration_minutes": 45,
        "service_name": "Dog Walking",
        "total_amount": 30.0,
        "start_date": (date.today() + timedelta(days=1)).isoformat(),
        "max_occurrences": 3,
    }
    body.update(overrides)
    return body


async def seed_booking(store, hours_ahead, percentage=50):
    [policy] = await store.insert(
        Collection.CANCELLATION_POLICIES,
        [{"name": "Moderate", "hours_before": 24, "refund_percentage": percentage}],
    )
    scheduled = datetime.now(timezone.utc) + timedelta(hours=hours_ahead)
    [booking] = await store.insert(
        Collection.BOOKINGS,
        [{
            "owner_id": uuid.uuid4(),
            "pet_master_id": uuid.uuid4(),
            "scheduled_date": scheduled,
            "booking_date": scheduled,
            "service_name": "Grooming",
            "total_amount": 80,
            "total_price": 80,
            "cancellation_policy_id": policy["id"],
        }],
    )
    return booking


@pytest.mark.integration
@pytest.mark.asyncio
async def test_health_endpoint(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    uuid.UUID(response.headers["X-Correlation-ID"])


@pytest.mark.integration
@pytest.mark.asyncio
async def test_correlation_id_preserved(client):
    correlation_id = str(uuid.uuid4())

    response = await client.get("/health", headers={"X-Correlation-ID": correlation_id})

    assert response.headers["X-Correlation-ID"] == correlation_id


class TestRecurringSeriesRoutes:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_create_and_list_series(self, client):
        body = series_body(frequency="weekly", days_of_week=[1, 3])

        created = await client.post("/recurring-series", json=body)

        assert created.status_code == 201
        data = created.json()
        assert data["success"] is True
        assert data["state"] == "committed"

        listed = await client.get("/recurring-series", params={"owner_id": body["owner_id"]})

        assert listed.status_code == 200
        [series] = listed.json()
        assert series["id"] == data["series_id"]
        assert series["schedule"] == "Weekly on Mon, Wed"
        assert [b["occurrence_number"] for b in series["bookings"]] == [1, 2, 3]

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"pet_ids": []},
            {"frequency": "weekly"},
            {"interval_count": 0},
            {"time_of_day": "25:00"},
            {"days_of_week": [7]},
            {"start_date": "2026-05-10", "end_date": "2026-05-01"},
        ],
    )
    async def test_create_rejects_invalid_bodies(self, client, overrides):
        response = await client.post("/recurring-series", json=series_body(**overrides))

        assert response.status_code == 422
        assert response.json()["error"] == "Validation error"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_create_without_occurrences_is_bad_request(self, client):
        far_future = (date.today() + timedelta(days=400)).isoformat()

        response = await client.post("/recurring-series", json=series_body(start_date=far_future))

        assert response.status_code == 400
        assert response.json()["error"] == "No valid occurrences could be generated"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_top_up_and_cancel_series(self, client):
        created = (await client.post("/recurring-series", json=series_body(max_occurrences=None))).json()
        series_id = created["series_id"]

        topped_up = await client.post(f"/recurring-series/{series_id}/top-up")
        assert topped_up.status_code == 200
        assert topped_up.json() == {"success": True, "created": 0}

        cancelled = await client.post(
            f"/recurring-series/{series_id}/cancel",
            json={"cancel_future_only": False},
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["message"] == "All bookings in this series have been cancelled"

        inactive = await client.post(f"/recurring-series/{series_id}/top-up")
        assert inactive.status_code == 409

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_top_up_unknown_series(self, client):
        response = await client.post(f"/recurring-series/{uuid.uuid4()}/top-up")

        assert response.status_code == 409
        assert "correlation_id" in response.json()


class TestBookingRoutes:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_preview_and_cancel(self, client, sqlite_store):
        booking = await seed_booking(sqlite_store, hours_ahead=48)

        preview = await client.get(f"/bookings/{booking['id']}/cancellation-preview")
        assert preview.status_code == 200
        assert preview.json()["refund_amount"] == 40
        assert preview.json()["can_cancel"] is True

        cancelled = await client.post(
            f"/bookings/{booking['id']}/cancel",
            json={"reason": "  Moving house  "},
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["refund_amount"] == 40
        assert "$40.00" in cancelled.json()["message"]

        again = await client.post(f"/bookings/{booking['id']}/cancel", json={"reason": "Again"})
        assert again.status_code == 409
        assert again.json()["error"] == "Booking is already cancelled"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_preview_unknown_booking(self, client):
        response = await client.get(f"/bookings/{uuid.uuid4()}/cancellation-preview")

        assert response.status_code == 404

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cancel_requires_reason(self, client, sqlite_store):
        booking = await seed_booking(sqlite_store, hours_ahead=48)

        response = await client.post(f"/bookings/{booking['id']}/cancel", json={"reason": "   "})

        assert response.status_code == 422

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_assign_default_policy_without_default(self, client, sqlite_store):
        booking = await seed_booking(sqlite_store, hours_ahead=48)

        response = await client.post(f"/bookings/{booking['id']}/assign-default-policy")

        assert response.status_code == 200
        assert response.json() == {"assigned": False}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_list_cancellation_policies(client, sqlite_store):
    await sqlite_store.insert(
        Collection.CANCELLATION_POLICIES,
        [
            {"name": "Strict", "hours_before": 72, "refund_percentage": 25},
            {"name": "Flexible", "hours_before": 12, "refund_percentage": 100},
        ],
    )

    response = await client.get("/cancellation-policies")

    assert response.status_code == 200
    assert [p["name"] for p in response.json()] == ["Flexible", "Strict"]
