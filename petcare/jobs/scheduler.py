"""
Background scheduler built on APScheduler.

One process-wide `SchedulerManager` runs the periodic jobs of the booking core
(currently the recurring series top-up) on a thread pool. Jobs coalesce missed
runs and never overlap with themselves.

Usage:
    scheduler = get_scheduler()
    register_series_topup(scheduler)
    scheduler.start()
"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from petcare.lib.logging import get_logger

logger = get_logger(__name__)


SCHEDULER_TIMEZONE = "UTC"

_scheduler: Optional["SchedulerManager"] = None


class SchedulerManager:
    """
    Owns the APScheduler instance and remembers how each job last finished.

    `last_results` maps a job id to {"finished_at", "ok", "result" | "error"}.
    """

    def __init__(self):
        self.scheduler = BackgroundScheduler(
            timezone=SCHEDULER_TIMEZONE,
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
        )
        self.last_results: Dict[str, Dict[str, Any]] = {}

        self.scheduler.add_listener(self._on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    def _on_job_event(self, event: JobExecutionEvent) -> None:
        outcome: Dict[str, Any] = {"finished_at": event.scheduled_run_time, "ok": event.exception is None}
        if event.exception is None:
            outcome["result"] = event.retval
            logger.info(f"Job {event.job_id} finished: {event.retval}")
        else:
            outcome["error"] = repr(event.exception)
            logger.error(
                f"Job {event.job_id} raised {event.exception.__class__.__name__}: {event.exception}",
                exc_info=event.exception,
            )
        self.last_results[event.job_id] = outcome

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return
        self.scheduler.start()
        logger.info(f"Scheduler started with {len(self.scheduler.get_jobs())} job(s)")

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop the scheduler.

        Args:
            wait: Block until running jobs have finished
        """
        if not self.scheduler.running:
            logger.warning("Scheduler not running")
            return
        self.scheduler.shutdown(wait=wait)
        logger.info("Scheduler shut down")

    def _schedule(self, func: Callable, job_id: str, trigger: BaseTrigger, **kwargs) -> None:
        # Pending jobs are only deduplicated on start(), so drop an existing id here
        if self.scheduler.get_job(job_id) is not None:
            self.scheduler.remove_job(job_id)
        self.scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True, **kwargs)
        logger.info(f"Scheduled job {job_id} ({trigger})")

    def add_cron_job(
        self,
        func: Callable,
        job_id: str,
        hour: Optional[int] = None,
        minute: Optional[int] = None,
        day_of_week: Optional[str] = None,
        **kwargs,
    ) -> None:
        """Run `func` at fixed wall-clock times (UTC)."""
        trigger = CronTrigger(
            hour=hour,
            minute=minute,
            day_of_week=day_of_week,
            timezone=SCHEDULER_TIMEZONE,
        )
        self._schedule(func, job_id, trigger, **kwargs)

    def add_interval_job(
        self,
        func: Callable,
        job_id: str,
        seconds: Optional[int] = None,
        minutes: Optional[int] = None,
        hours: Optional[int] = None,
        **kwargs,
    ) -> None:
        """
        Run `func` every fixed period.

        Raises:
            ValueError: if no interval is given
        """
        if not any([seconds, minutes, hours]):
            raise ValueError("At least one of seconds, minutes, or hours must be specified")

        trigger = IntervalTrigger(
            seconds=seconds or 0,
            minutes=minutes or 0,
            hours=hours or 0,
            timezone=SCHEDULER_TIMEZONE,
        )
        self._schedule(func, job_id, trigger, **kwargs)

    def remove_job(self, job_id: str) -> None:
        self.scheduler.remove_job(job_id)
        self.last_results.pop(job_id, None)
        logger.info(f"Removed job {job_id}")

    def get_jobs(self) -> list:
        return self.scheduler.get_jobs()

    def describe_jobs(self) -> list[Dict[str, Any]]:
        """Job ids with their trigger, next run time and last outcome."""
        described = []
        for job in self.scheduler.get_jobs():
            next_run: Optional[datetime] = getattr(job, "next_run_time", None)
            described.append({
                "id": job.id,
                "trigger": str(job.trigger),
                "next_run_time": next_run,
                "last_result": self.last_results.get(job.id),
            })
        return described


def get_scheduler() -> SchedulerManager:
    """Process-wide scheduler instance."""
    global _scheduler

    if _scheduler is None:
        _scheduler = SchedulerManager()

    return _scheduler
