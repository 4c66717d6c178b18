"""Scheduler service for periodic recommended pulls."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.logging import get_logger
from app.pipeline.exceptions import NoQueriesConfiguredError, RunAlreadyActiveError

logger = get_logger(__name__, component="scheduler")

JOB_ID = "recommended-pull"


class SchedulerService:
    """
    Wraps APScheduler to start recommended pulls at a fixed interval.

    Uses BackgroundScheduler so the main thread stays free to handle signals
    and coordinate shutdown. A tick that finds a pull already running, or no
    enabled query, is logged and skipped.
    """

    def __init__(
        self,
        pull_callable: Callable[[], int],
        interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
        run_immediately: bool = False,
    ):
        """
        Initialize the scheduler service.

        Args:
            pull_callable: Starts a pull and returns its run id (e.g. runner.start_pull)
            interval_seconds: Interval between pulls in seconds
            shutdown_event: Optional event set on shutdown for coordination
            run_immediately: Fire the first tick at startup instead of after one interval
        """
        self.pull_callable = pull_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event
        self.run_immediately = run_immediately

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """Register the pull job and start the scheduler thread."""
        now = datetime.now(timezone.utc)
        first_run = now if self.run_immediately else now + timedelta(seconds=self.interval_seconds)

        self.scheduler.add_job(
            func=self.tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=JOB_ID,
            name="Recommended job pull",
            replace_existing=True,
            next_run_time=first_run,
        )
        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": first_run.isoformat(),
            },
        )

    def tick(self) -> Optional[int]:
        """
        Start one pull.

        Returns:
            Run id of the started pull, or None when the tick was skipped
        """
        try:
            run_id = self.pull_callable()
        except RunAlreadyActiveError as e:
            logger.info(
                "Scheduled pull skipped: a pull is already running",
                extra={"event": "scheduler.tick.skipped", "reason": "active", "active_run_id": e.run_id},
            )
            return None
        except NoQueriesConfiguredError:
            logger.warning(
                "Scheduled pull skipped: no enabled queries",
                extra={"event": "scheduler.tick.skipped", "reason": "no_queries"},
            )
            return None

        logger.info(
            "Scheduled pull started",
            extra={"event": "scheduler.tick.started", "run_id": run_id},
        )
        return run_id

    def shutdown(self, wait: bool = False) -> None:
        """
        Stop the scheduler.

        Args:
            wait: If True, wait for a running tick to return first
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None
