"""
Celery tasks for sitewatch.

- check_watched_urls: periodic scheduler tick (Celery Beat), generations
  are dispatched to the generate queue
- run_generation: worker task running one generation end to end
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from celery import shared_task

from sitewatch.exceptions import GenerationNotFound

logger = logging.getLogger(__name__)


def _run_async(coro):
    """Run a coroutine to completion on a fresh event loop."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _tick(scheduler):
    try:
        return await scheduler.run_once()
    finally:
        await scheduler.close()


async def _generate(pipeline, job_id: str, signature_method: Optional[str]):
    try:
        return await pipeline.run(job_id, signature_method=signature_method)
    finally:
        await pipeline.close()


@shared_task(name="sitewatch.tasks.check_watched_urls")
def check_watched_urls() -> Dict[str, Any]:
    """
    Periodic task checking all due watched URLs once.

    Runs every SITEWATCH_MONITOR_TICK_SECONDS via Celery Beat. Changed URLs
    get an automatic generation dispatched to run_generation.

    Returns:
        The tick report as a dict
    """
    from sitewatch.services.monitor import CeleryLauncher, MonitoringScheduler

    logger.info("Checking watched URLs...")

    scheduler = MonitoringScheduler(launcher=CeleryLauncher())
    report = _run_async(_tick(scheduler))

    return report.to_dict()


@shared_task(name="sitewatch.tasks.run_generation", bind=True)
def run_generation(self, job_id: str, signature_method: Optional[str] = None) -> Dict[str, Any]:
    """
    Worker task running the generation pipeline for a job.

    Args:
        job_id: Generation job id
        signature_method: Detection tier that triggered an automatic run

    Returns:
        Dict with the final status of the generation
    """
    from sitewatch.services.generation_pipeline import GenerationPipeline

    logger.info(f"Starting generation {job_id}")

    pipeline = GenerationPipeline()
    try:
        generation = _run_async(_generate(pipeline, job_id, signature_method))
    except GenerationNotFound as e:
        logger.error(str(e))
        return {"job_id": job_id, "status": "not_found"}

    if generation is None:
        return {"job_id": job_id, "status": "skipped"}

    return {
        "job_id": job_id,
        "status": generation.status,
        "pages_crawled": generation.pages_crawled,
        "output_reference": generation.output_reference,
        "error": generation.error_message or None,
    }
