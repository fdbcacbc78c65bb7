"""SchedulerEngine: APScheduler lifecycle and live job management."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.config import settings
from src.scheduler import cron
from src.scheduler.models import ActiveTask
from src.scheduler.payloads import JOB_TYPES, PayloadError, empty_payload, parse_payload

if TYPE_CHECKING:
    from collections.abc import Callable

    from src.notifications.service import NotificationService
    from src.scheduler.executor import JobExecutor
    from src.scheduler.models import JobDefinition
    from src.scheduler.payloads import JobPayload
    from src.scheduler.store import JobStore

logger = logging.getLogger(__name__)


class SchedulerEngine:
    """Owns the set of live scheduled jobs and maps definitions to them.

    Each live job is an APScheduler job keyed by the definition id, paired
    with an immutable ``ActiveTask`` snapshot of the definition.  The task map
    is guarded by an ``asyncio.Lock``; fires of one job never overlap.

    Args:
        store: JobStore for persistence.
        executor: JobExecutor that runs job bodies.
        notifications: Optional NotificationService for admin status reports.
        timezone: IANA timezone cron expressions are evaluated in.
        clock: Returns the current time; overridable in tests.
    """

    def __init__(
        self,
        store: JobStore,
        executor: JobExecutor,
        notifications: NotificationService | None = None,
        timezone: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._notifications = notifications
        self._timezone = timezone or settings.scheduler_timezone
        self._clock = clock or (lambda: datetime.now(UTC))
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._tasks: dict[str, ActiveTask] = {}
        self._lock = asyncio.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Start the scheduler and load every active definition."""
        self._scheduler.start()
        self._running = True
        loaded = await self.load_all()
        logger.info(
            "Scheduler started with %d live job(s) (tz=%s)", loaded, self._timezone
        )

    async def shutdown(self) -> None:
        """Stop and discard every live job, then stop the scheduler."""
        async with self._lock:
            for job_id in list(self._tasks):
                self._discard(job_id)
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def load_all(self) -> int:
        """Add every persisted active definition, oldest first.

        Returns the number of definitions processed without error.
        """
        logger.info("Loading active jobs from the store...")
        try:
            definitions = await self._store.list_active_jobs()
        except Exception:
            logger.exception("Failed to load active jobs")
            return 0

        loaded = 0
        for definition in definitions:
            try:
                await self.add_job(definition)
                loaded += 1
            except Exception:
                logger.exception("Failed to add job '%s' (%s)", definition.name, definition.id)
        logger.info("Loaded %d/%d active job(s)", loaded, len(definitions))
        return loaded

    # -- Job management --------------------------------------------------------

    async def add_job(self, definition: JobDefinition) -> bool:
        """Install a live job for *definition*, replacing any existing one.

        A one-time definition whose target instant has already passed is
        executed immediately and deactivated instead of being scheduled.

        Returns True if a live job was installed.

        Raises:
            CronExpressionError: the definition's expression is malformed.
        """
        await self.remove_job(definition.id)

        expression = definition.cron_expression
        one_time = cron.is_one_time(expression)
        payload = self._parse_payload(definition)

        if one_time and cron.is_expired(expression, self._clock(), self._timezone):
            logger.info(
                "One-time job '%s' (%s) already passed, executing immediately",
                definition.name,
                definition.id,
            )
            try:
                await self._executor.execute(definition.job_type, payload)
            except Exception:
                logger.exception("Expired one-time job failed: '%s'", definition.name)
            await self._store.set_active(definition.id, False)
            await self._store.update_next_run(definition.id, None)
            return False

        task = ActiveTask(
            id=definition.id,
            name=definition.name,
            job_type=definition.job_type,
            cron_expression=expression,
            payload=payload,
            one_time=one_time,
        )
        trigger = cron.build_trigger(expression, self._timezone)
        async with self._lock:
            self._discard(definition.id)
            self._scheduler.add_job(
                self._fire,
                trigger=trigger,
                id=definition.id,
                name=definition.name,
                args=[definition.id],
                coalesce=True,
                max_instances=1,
                misfire_grace_time=None,
                replace_existing=True,
            )
            self._tasks[definition.id] = task

        await self._store.update_next_run(definition.id, self._next_run(expression))
        logger.info(
            "Added job '%s' (%s) [%s]%s",
            definition.name,
            expression,
            definition.job_type,
            " one-time" if one_time else "",
        )
        return True

    async def remove_job(self, job_id: str) -> bool:
        """Stop and discard the live job for *job_id*. Returns True if one existed."""
        async with self._lock:
            return self._discard(job_id)

    async def update_job(self, job_id: str, definition: JobDefinition) -> bool:
        """Replace the live job with *definition*, or drop it if inactive.

        Returns True if a live job is installed afterwards.
        """
        await self.remove_job(job_id)
        if not definition.is_active:
            return False
        return await self.add_job(definition)

    async def execute_direct(self, job_type: str, job_data: str | None = None) -> None:
        """Run a job body once, right now, without touching last/next run.

        Raises:
            PayloadError: *job_data* is malformed for *job_type*.
        """
        logger.info("Direct execution of job type: %s", job_type)
        payload = parse_payload(job_type, job_data) if job_type in JOB_TYPES else None
        await self._executor.execute(job_type, payload)

    def list_active(self) -> list[dict[str, Any]]:
        """Snapshot of every live job."""
        return [task.to_dict() for task in list(self._tasks.values())]

    def get_task(self, job_id: str) -> ActiveTask | None:
        return self._tasks.get(job_id)

    # -- Internal --------------------------------------------------------------

    def _discard(self, job_id: str) -> bool:
        """Drop a task and its APScheduler job. Caller holds the lock."""
        task = self._tasks.pop(job_id, None)
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            pass
        if task is not None:
            logger.info("Removed job: '%s' (%s)", task.name, job_id)
        return task is not None

    def _parse_payload(self, definition: JobDefinition) -> JobPayload | None:
        try:
            return parse_payload(definition.job_type, definition.job_data)
        except PayloadError as exc:
            logger.error(
                "Job '%s' (%s) has unusable jobData, running without it: %s",
                definition.name,
                definition.id,
                exc,
            )
            return empty_payload(definition.job_type)

    def _next_run(self, expression: str) -> str | None:
        trigger = cron.build_trigger(expression, self._timezone)
        next_fire = trigger.get_next_fire_time(None, self._clock())
        return next_fire.astimezone(UTC).isoformat() if next_fire else None

    async def _fire(self, job_id: str) -> None:
        """Callback invoked by APScheduler for every fire of a live job."""
        task = self._tasks.get(job_id)
        if task is None:
            logger.warning("Fired job has no live task: %s", job_id)
            return

        started = self._clock()
        logger.info("Executing job: '%s' (%s) [%s]", task.name, job_id, task.job_type)
        try:
            await self._executor.execute(task.job_type, task.payload)
        except Exception:
            logger.exception("Job failed: '%s' (%s)", task.name, job_id)
            await self._report(job_id, "failed", f'Cron job "{task.name}" failed')
            return

        try:
            if task.one_time:
                async with self._lock:
                    replaced = self._tasks.get(job_id) is not task
                    if not replaced:
                        self._discard(job_id)
                if replaced:
                    logger.info(
                        "One-time job '%s' (%s) was replaced while running", task.name, job_id
                    )
                    return
                await self._store.update_last_run(job_id, started.isoformat(), None)
                await self._store.set_active(job_id, False)
                logger.info("One-time job '%s' completed and deactivated", task.name)
            else:
                await self._store.update_last_run(
                    job_id, started.isoformat(), self._next_run(task.cron_expression)
                )
                logger.info("Job completed: '%s' (%s)", task.name, job_id)
        except Exception:
            logger.exception("Failed to record run for job '%s' (%s)", task.name, job_id)

    async def _report(self, job_id: str, status: str, message: str) -> None:
        if self._notifications is None:
            return
        try:
            await self._notifications.notify_job_status(job_id, status, message)
        except Exception:
            logger.exception("Failed to report job status for %s", job_id)
