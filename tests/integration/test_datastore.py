"""
Integration tests for SQLAlchemyDataStore on an in-memory SQLite database.
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from petcare.lib.datastore import (
    Collection,
    DataStoreError,
    eq,
    gte,
    in_,
    is_null,
    lt,
)


def policy(name, hours_before, refund_percentage):
    return {
        "name": name,
        "hours_before": hours_before,
        "refund_percentage": refund_percentage,
        "description": f"{name} policy",
    }


@pytest.mark.integration
@pytest.mark.asyncio
async def test_insert_returns_generated_ids(sqlite_store):
    rows = await sqlite_store.insert(
        Collection.CANCELLATION_POLICIES,
        [policy("Flexible", 12, 100), policy("Strict", 72, 25)],
    )

    assert len(rows) == 2
    assert all(row["id"] is not None for row in rows)
    assert [row["name"] for row in rows] == ["Flexible", "Strict"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_select_filters_order_and_limit(sqlite_store):
    await sqlite_store.insert(
        Collection.CANCELLATION_POLICIES,
        [policy("Strict", 72, 25), policy("Flexible", 12, 100), policy("Moderate", 24, 50)],
    )

    ordered = await sqlite_store.select(Collection.CANCELLATION_POLICIES, order_by="hours_before")
    assert [row["name"] for row in ordered] == ["Flexible", "Moderate", "Strict"]

    newest_first = await sqlite_store.select(
        Collection.CANCELLATION_POLICIES,
        columns=["name"],
        order_by="hours_before",
        descending=True,
        limit=2,
    )
    assert newest_first == [{"name": "Strict"}, {"name": "Moderate"}]

    filtered = await sqlite_store.select(
        Collection.CANCELLATION_POLICIES,
        filters=[gte("hours_before", 24), in_("name", ["Moderate", "Flexible"])],
    )
    assert [row["name"] for row in filtered] == ["Moderate"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_select_one_and_count(sqlite_store):
    await sqlite_store.insert(
        Collection.CANCELLATION_POLICIES,
        [policy("Flexible", 12, 100), policy("Strict", 72, 25)],
    )

    found = await sqlite_store.select_one(Collection.CANCELLATION_POLICIES, filters=[eq("name", "Strict")])
    missing = await sqlite_store.select_one(Collection.CANCELLATION_POLICIES, filters=[eq("name", "Nope")])

    assert found["hours_before"] == 72
    assert missing is None
    assert await sqlite_store.count(Collection.CANCELLATION_POLICIES, filters=[lt("hours_before", 50)]) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_and_delete_report_row_counts(sqlite_store):
    await sqlite_store.insert(
        Collection.CANCELLATION_POLICIES,
        [policy("Flexible", 12, 100), policy("Strict", 72, 25)],
    )

    updated = await sqlite_store.update(
        Collection.CANCELLATION_POLICIES,
        {"refund_percentage": 90},
        filters=[eq("name", "Flexible")],
    )
    assert updated == 1

    deleted = await sqlite_store.delete(Collection.CANCELLATION_POLICIES, filters=[eq("name", "Strict")])
    assert deleted == 1

    remaining = await sqlite_store.select(Collection.CANCELLATION_POLICIES)
    assert [(row["name"], row["refund_percentage"]) for row in remaining] == [("Flexible", 90)]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_is_null_filter(sqlite_store):
    now = datetime.now(timezone.utc)
    base = {
        "owner_id": uuid4(),
        "pet_master_id": uuid4(),
        "scheduled_date": now + timedelta(days=1),
        "booking_date": now + timedelta(days=1),
        "service_name": "Dog Walking",
        "total_amount": 20,
        "total_price": 20,
    }
    [policy_row] = await sqlite_store.insert(Collection.CANCELLATION_POLICIES, [policy("Flexible", 12, 100)])
    await sqlite_store.insert(
        Collection.BOOKINGS,
        [base, {**base, "cancellation_policy_id": policy_row["id"]}],
    )

    assert await sqlite_store.count(Collection.BOOKINGS, filters=[is_null("cancellation_policy_id")]) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_bulk_insert_is_all_or_nothing(sqlite_store):
    await sqlite_store.insert(Collection.CANCELLATION_POLICIES, [policy("Flexible", 12, 100)])

    with pytest.raises(DataStoreError):
        await sqlite_store.insert(
            Collection.CANCELLATION_POLICIES,
            [policy("Moderate", 24, 50), policy("Flexible", 1, 10)],  # duplicate name
        )

    names = [row["name"] for row in await sqlite_store.select(Collection.CANCELLATION_POLICIES)]
    assert names == ["Flexible"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unfiltered_writes_are_refused(sqlite_store):
    with pytest.raises(DataStoreError):
        await sqlite_store.update(Collection.CANCELLATION_POLICIES, {"hours_before": 0}, filters=[])
    with pytest.raises(DataStoreError):
        await sqlite_store.delete(Collection.CANCELLATION_POLICIES, filters=[])


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unknown_column_is_a_store_error(sqlite_store):
    with pytest.raises(DataStoreError):
        await sqlite_store.select(Collection.CANCELLATION_POLICIES, filters=[eq("colour", "red")])
