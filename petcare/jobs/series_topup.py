"""
Recurring series top-up job.

Runs periodically to keep every active series at its rolling window of future
bookings. Execution flow:
1. List active series
2. Call generate_next_bookings_for_series for each one
3. Log and return the aggregated counts
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy.ext.asyncio import async_sessionmaker

from petcare.jobs.scheduler import SchedulerManager
from petcare.lib.datastore import DataStoreError, SQLAlchemyDataStore
from petcare.lib.db import build_engine
from petcare.lib.logging import get_logger, log_with_context, set_correlation_id
from petcare.lib.settings import settings
from petcare.services.recurring_booking_service import RecurringBookingService

logger = get_logger(__name__)


TOPUP_JOB_ID = "recurring_series_topup"


async def top_up_active_series(service: RecurringBookingService) -> Dict[str, Any]:
    """
    Top up all active recurring series.

    Returns:
        {"correlation_id", "series", "created", "failed", "duration_seconds"}
    """
    correlation_id = uuid4()
    set_correlation_id(str(correlation_id))
    started_at = datetime.now(timezone.utc)
    logger.info(f"Starting recurring series top-up (correlation_id: {correlation_id})")

    summary: Dict[str, Any] = {
        "correlation_id": correlation_id,
        "series": 0,
        "created": 0,
        "failed": 0,
    }

    try:
        series_ids = await service.list_active_series_ids()
    except DataStoreError as e:
        logger.error(f"Top-up could not list active series: {e}", exc_info=True)
        summary["duration_seconds"] = (datetime.now(timezone.utc) - started_at).total_seconds()
        return summary

    summary["series"] = len(series_ids)
    for series_id in series_ids:
        result = await service.generate_next_bookings_for_series(series_id)
        if result.success:
            summary["created"] += result.created
        else:
            summary["failed"] += 1

    summary["duration_seconds"] = (datetime.now(timezone.utc) - started_at).total_seconds()
    log_with_context(
        logger,
        "info",
        "Recurring series top-up completed",
        series=summary["series"],
        created=summary["created"],
        failed=summary["failed"],
        duration_seconds=round(summary["duration_seconds"], 2),
    )
    return summary


async def _run_with_own_engine() -> Dict[str, Any]:
    # Scheduler threads run their own event loop, so they cannot share the app's pool
    engine = build_engine(settings.database_url)
    try:
        store = SQLAlchemyDataStore(async_sessionmaker(bind=engine, expire_on_commit=False))
        return await top_up_active_series(RecurringBookingService(store))
    finally:
        await engine.dispose()


def run_series_topup_job() -> Dict[str, Any]:
    """Synchronous entry point executed on a scheduler thread."""
    return asyncio.run(_run_with_own_engine())


def register_series_topup(scheduler: SchedulerManager) -> None:
    scheduler.add_interval_job(
        run_series_topup_job,
        job_id=TOPUP_JOB_ID,
        minutes=settings.topup_interval_minutes,
    )
