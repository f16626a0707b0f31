"""
Monitoring Scheduler Service.

Periodically re-checks watched URLs and starts a generation when one has
changed.

Each tick:
1. Selects active watched URLs whose next check is due (never checked, or
   last_checked_at + interval <= now), skipping URLs that already have a
   pending or in-progress generation
2. Checks them in batches of batch_size concurrently, pausing
   batch_cooldown seconds between batches
3. Per URL: unchanged -> store the signature and check time;
   changed -> store the check time, create an automatic generation and
   hand it to the launcher without waiting for it; a failed launch fails
   the generation so the URL stays due

A failure while checking one URL is logged and never stops the batch, the
tick or the loop.

Launchers:
- AsyncioLauncher runs generations as tasks on the scheduler's own event
  loop (long-running run_monitor command)
- CeleryLauncher dispatches the run_generation task (Celery Beat tick)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from asgiref.sync import sync_to_async
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from sitewatch.exceptions import InvalidTransition
from sitewatch.models import Generation, GenerationTrigger, WatchedUrl
from sitewatch.monitoring import add_check_breadcrumb
from sitewatch.services.change_detector import ChangeDetector

logger = logging.getLogger(__name__)


CHECK_UNCHANGED = "unchanged"
CHECK_ERROR = "error"


@dataclass
class TickReport:
    """Summary of one scheduler tick."""

    started_at: datetime
    due: int = 0
    checked: int = 0
    changed: int = 0
    unchanged: int = 0
    errors: int = 0
    job_ids: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "due": self.due,
            "checked": self.checked,
            "changed": self.changed,
            "unchanged": self.unchanged,
            "errors": self.errors,
            "job_ids": self.job_ids,
            "duration_seconds": self.duration_seconds,
        }


class AsyncioLauncher:
    """
    Runs generations as fire-and-forget asyncio tasks.

    References to running tasks are kept until they finish so they are not
    garbage collected mid-run.
    """

    def __init__(self, pipeline=None):
        self._pipeline = pipeline
        self._tasks = set()

    @property
    def pipeline(self):
        if self._pipeline is None:
            from sitewatch.services.generation_pipeline import GenerationPipeline

            self._pipeline = GenerationPipeline()
        return self._pipeline

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def launch(self, job_id, signature_method: Optional[str] = None):
        task = asyncio.create_task(self._run(job_id, signature_method))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, job_id, signature_method):
        try:
            await self.pipeline.run(job_id, signature_method=signature_method)
        except Exception:
            logger.exception(f"Generation task {job_id} crashed")

    async def wait(self):
        """Wait for all in-flight generations to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self):
        if self._pipeline is not None:
            await self._pipeline.close()


class CeleryLauncher:
    """Dispatches generations to the Celery generate queue."""

    def _dispatch(self, job_id, signature_method):
        from sitewatch.tasks import run_generation

        run_generation.apply_async(
            args=[str(job_id)],
            kwargs={"signature_method": signature_method or None},
            queue="generate",
        )

    async def launch(self, job_id, signature_method: Optional[str] = None):
        await sync_to_async(self._dispatch, thread_sensitive=False)(job_id, signature_method)

    async def close(self):
        pass


class MonitoringScheduler:
    """
    Tick-driven watch-list scheduler.

    Single instance per process: start() while running is a no-op, and
    stop() cancels the tick loop but leaves launched generations running.
    """

    def __init__(
        self,
        detector: Optional[ChangeDetector] = None,
        launcher=None,
        tick_seconds: Optional[float] = None,
        batch_size: Optional[int] = None,
        batch_cooldown: Optional[float] = None,
    ):
        self.detector = detector or ChangeDetector()
        self.launcher = launcher or AsyncioLauncher()
        self.tick_seconds = tick_seconds or getattr(
            settings, "SITEWATCH_MONITOR_TICK_SECONDS", 60
        )
        self.batch_size = max(1, batch_size or getattr(
            settings, "SITEWATCH_MONITOR_BATCH_SIZE", 3
        ))
        if batch_cooldown is None:
            batch_cooldown = getattr(settings, "SITEWATCH_MONITOR_BATCH_COOLDOWN", 1.0)
        self.batch_cooldown = batch_cooldown

        self._task: Optional[asyncio.Task] = None
        self.last_report: Optional[TickReport] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the tick loop on the running event loop."""
        if self.is_running:
            logger.info("Monitoring scheduler is already running")
            return self._task

        logger.info(f"Starting monitoring scheduler (tick every {self.tick_seconds}s)")
        self._task = asyncio.create_task(self._loop())
        return self._task

    def stop(self):
        """Cancel the tick loop. Launched generations keep running."""
        if not self.is_running:
            return

        self._task.cancel()
        self._task = None
        logger.info("Monitoring scheduler stopped")

    def set_tick_interval(self, seconds: float):
        """Change the tick interval, restarting the loop if it is running."""
        self.tick_seconds = seconds
        if self.is_running:
            self.stop()
            self.start()

    def status(self) -> dict:
        return {
            "is_running": self.is_running,
            "tick_seconds": self.tick_seconds,
            "batch_size": self.batch_size,
            "batch_cooldown": self.batch_cooldown,
            "last_tick": self.last_report.to_dict() if self.last_report else None,
        }

    async def _loop(self):
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Monitoring tick failed")
            await asyncio.sleep(self.tick_seconds)

    def _due_urls(self, now) -> List[WatchedUrl]:
        stale = Generation.fail_stale(now)
        if stale:
            logger.warning(f"Failed {stale} stale generations")
        return WatchedUrl.objects.due_for_check(now)

    async def run_once(self) -> TickReport:
        """Run a single tick over all due watched URLs."""
        report = TickReport(started_at=timezone.now())

        due = await sync_to_async(self._due_urls)(report.started_at)
        report.due = len(due)

        if not due:
            logger.debug("No watched URLs due for a check")
            self.last_report = report
            return report

        logger.info(f"Checking {len(due)} watched URLs")

        for index in range(0, len(due), self.batch_size):
            batch = due[index:index + self.batch_size]
            outcomes = await asyncio.gather(
                *(self.check_url(watched) for watched in batch),
                return_exceptions=True,
            )

            for watched, outcome in zip(batch, outcomes):
                report.checked += 1
                if isinstance(outcome, BaseException):
                    logger.error(f"Unhandled error checking {watched.url}: {outcome}")
                    report.errors += 1
                elif outcome == CHECK_ERROR:
                    report.errors += 1
                elif outcome == CHECK_UNCHANGED:
                    report.unchanged += 1
                else:
                    report.changed += 1
                    report.job_ids.append(outcome)

            if index + self.batch_size < len(due) and self.batch_cooldown:
                await asyncio.sleep(self.batch_cooldown)

        report.duration_seconds = (timezone.now() - report.started_at).total_seconds()
        self.last_report = report

        logger.info(
            f"Tick finished: {report.checked} checked, {report.changed} changed, "
            f"{report.errors} errors in {report.duration_seconds:.1f}s"
        )
        return report

    def _start_generation(self, watched: WatchedUrl, checked_at) -> Generation:
        with transaction.atomic():
            watched.touch(checked_at)
            return Generation.create_pending(
                url=watched.url,
                trigger=GenerationTrigger.AUTOMATIC,
                watched_url=watched,
            )

    def _abandon_generation(self, generation: Generation, error: BaseException):
        """Fail a generation whose launch did not happen."""
        try:
            generation.mark_failed(f"Dispatch failed: {str(error) or error.__class__.__name__}")
        except InvalidTransition as e:
            logger.warning(f"Could not fail unlaunched generation: {e}")

    async def check_url(self, watched: WatchedUrl) -> str:
        """
        Check one watched URL.

        Returns:
            CHECK_UNCHANGED, CHECK_ERROR, or the job id of the generation
            started for a change. A check where every detection tier failed
            is an error; its check time is still recorded.
        """
        try:
            add_check_breadcrumb(url=watched.url)
            result = await self.detector.has_changed(watched)

            if not result.changed:
                await sync_to_async(watched.record_check)(result.signature, result.method)
                if result.error:
                    logger.warning(f"Could not check {watched.url}: {result.error}")
                    return CHECK_ERROR
                return CHECK_UNCHANGED

            generation = await sync_to_async(self._start_generation)(
                watched, timezone.now()
            )
            logger.info(
                f"Change detected for {watched.url}; started generation {generation.job_id}"
            )
            try:
                await self.launcher.launch(generation.job_id, result.method)
            except (Exception, asyncio.CancelledError) as e:
                await sync_to_async(self._abandon_generation)(generation, e)
                raise
            return str(generation.job_id)

        except Exception:
            logger.exception(f"Error checking {watched.url}")
            return CHECK_ERROR

    async def close(self):
        """Stop the loop and release network clients."""
        self.stop()
        await self.detector.close()
        await self.launcher.close()
