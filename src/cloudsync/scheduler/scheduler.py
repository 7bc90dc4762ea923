"""
APScheduler-based driver for the global poll loop.

This module provides the SyncScheduler class, which runs the fixed-interval
jobs of the service (task adoption and stop-signal eviction).
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Scheduler for the service's periodic jobs

    Args:
        blocking: Run jobs on a BlockingScheduler that takes over the calling
            thread in ``start`` (default: False, runs in the background)
    """

    def __init__(self, blocking: bool = False):
        self.blocking = blocking
        self.scheduler = BlockingScheduler() if blocking else BackgroundScheduler()
        self.jobs = []

    def add_interval_job(
        self,
        job_func: Callable,
        interval_minutes: float,
        job_id: str,
        run_immediately: bool = False,
        **kwargs
    ) -> None:
        """
        Add a job that runs at fixed intervals

        Args:
            job_func: Function to execute
            interval_minutes: Interval in minutes
            job_id: Unique identifier for the job
            run_immediately: Also run the job once as soon as the scheduler starts
            **kwargs: Additional arguments to pass to job_func
        """
        trigger = IntervalTrigger(minutes=interval_minutes)

        options: Dict[str, Any] = {}
        if run_immediately:
            options["next_run_time"] = datetime.now()

        job = self.scheduler.add_job(
            job_func,
            trigger=trigger,
            id=job_id,
            kwargs=kwargs,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **options
        )

        self.jobs.append(job)
        logger.info(f"Added interval job '{job_id}' every {interval_minutes} minute(s)")

    def remove_job(self, job_id: str) -> None:
        self.scheduler.remove_job(job_id)
        self.jobs = [job for job in self.jobs if job.id != job_id]
        logger.info(f"Removed job '{job_id}'")

    def start(self) -> None:
        """
        Start the scheduler

        With a blocking scheduler this call returns only on shutdown or
        Ctrl+C.
        """
        logger.info(f"Starting sync scheduler with {len(self.jobs)} job(s)")

        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler stopped by user")
            self.stop()

    def stop(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
        logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def list_jobs(self) -> List[Dict[str, Any]]:
        job_list = []

        for job in self.scheduler.get_jobs():
            next_run_time = getattr(job, "next_run_time", None)
            job_list.append({
                "id": job.id,
                "name": job.name,
                "next_run_time": next_run_time.isoformat() if next_run_time else None,
                "trigger": str(job.trigger)
            })

        return job_list
