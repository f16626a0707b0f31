"""
Generation Service.

Job-submission and watch-list operations used by the REST API and the
management commands. Everything here is synchronous and returns as soon as
the database is updated; generations run on the Celery generate queue.
"""

import logging
from typing import Dict, List, Optional
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction

from sitewatch.exceptions import (
    DuplicateJobError,
    GenerationInProgress,
    GenerationNotFound,
    InvalidURLError,
    WatchedUrlNotFound,
)
from sitewatch.models import (
    Generation,
    GenerationStatus,
    GenerationTrigger,
    WatchedUrl,
    default_check_interval,
)
from sitewatch.services.artifact_store import ArtifactStore
from sitewatch.signals import announce_watch_list_change
from sitewatch.tasks import run_generation
from sitewatch.utils.normalization import is_valid_url, normalize_url

logger = logging.getLogger(__name__)


# Generation options accepted from callers
OPTION_KEYS = ("max_pages", "max_depth")

RECENT_GENERATIONS_PER_URL = 5


def _clean_options(options: Optional[Dict]) -> Dict:
    cleaned = {}
    for key in OPTION_KEYS:
        value = (options or {}).get(key)
        if value is None:
            continue
        value = int(value)
        if value < 1:
            raise ValueError(f"{key} must be a positive integer")
        cleaned[key] = value
    return cleaned


def _validated_url(url: str) -> str:
    if not url or not is_valid_url(url):
        raise InvalidURLError(url)
    return normalize_url(url)


def _dispatch(generation: Generation):
    """Queue the generation; a dispatch failure fails the generation."""
    try:
        run_generation.apply_async(args=[str(generation.job_id)], queue="generate")
    except Exception as e:
        logger.error(f"Could not dispatch generation {generation.job_id}: {e}")
        generation.refresh_from_db(fields=["status"])
        if generation.status == GenerationStatus.PENDING:
            generation.mark_failed(f"Dispatch failed: {e}")
        raise


def request_generation(url: str, options: Optional[Dict] = None, job_id=None) -> Generation:
    """
    Create a manual generation and queue it.

    Args:
        url: Site to crawl
        options: Optional max_pages / max_depth overrides
        job_id: Optional caller-supplied job id

    Returns:
        The pending Generation

    Raises:
        InvalidURLError: if url is not an absolute http(s) URL
        DuplicateJobError: if job_id is already in use
        ValueError: if an option is not a positive integer
    """
    url = _validated_url(url)
    options = _clean_options(options)

    if job_id is not None:
        job_id = UUID(str(job_id))
        if Generation.objects.filter(job_id=job_id).exists():
            raise DuplicateJobError(job_id)

    watched = WatchedUrl.objects.active().filter(url=url).first()

    with transaction.atomic():
        generation = Generation.create_pending(
            url=url,
            trigger=GenerationTrigger.MANUAL,
            watched_url=watched,
            job_id=job_id,
            options=options,
        )

    logger.info(f"Queued generation {generation.job_id} for {url}")
    _dispatch(generation)
    return generation


def get_generation_status(job_id) -> Generation:
    """Raises GenerationNotFound for unknown job ids."""
    try:
        return Generation.objects.get(job_id=job_id)
    except (Generation.DoesNotExist, ValidationError, ValueError):
        raise GenerationNotFound(job_id)


def request_regeneration(watched_url_id) -> Generation:
    """Queue a manual generation for a watched URL."""
    watched = get_watched_url(watched_url_id)

    generation = Generation.create_pending(
        url=watched.url,
        trigger=GenerationTrigger.MANUAL,
        watched_url=watched,
    )
    logger.info(f"Queued regeneration {generation.job_id} for {watched.url}")
    _dispatch(generation)
    return generation


def delete_generation(job_id, store: Optional[ArtifactStore] = None) -> Generation:
    """
    Delete a generation's artifacts and mark it deleted.

    Deleting an already deleted generation is a no-op.

    Raises:
        GenerationNotFound: unknown job id
        GenerationInProgress: the generation is pending or in progress
    """
    generation = get_generation_status(job_id)

    if generation.status == GenerationStatus.DELETED:
        return generation
    if generation.is_running:
        raise GenerationInProgress(generation.job_id)

    store = store or ArtifactStore()
    store.remove(generation.output_reference or store.reference_for(generation.job_id))
    generation.mark_deleted()

    logger.info(f"Deleted generation {generation.job_id}")
    return generation


def read_artifact(job_id, name: str, store: Optional[ArtifactStore] = None) -> str:
    """
    Read a generated file.

    Raises:
        GenerationNotFound: unknown job id
        FileNotFoundError: the generation has no such artifact
    """
    generation = get_generation_status(job_id)
    if generation.status != GenerationStatus.COMPLETED:
        raise FileNotFoundError(f"Generation {generation.job_id} has no output")

    store = store or ArtifactStore()
    return store.read(generation.output_reference, name)


# Watch list

def get_watched_url(watched_url_id) -> WatchedUrl:
    try:
        return WatchedUrl.objects.get(pk=watched_url_id)
    except (WatchedUrl.DoesNotExist, ValueError):
        raise WatchedUrlNotFound(watched_url_id)


def watch_url(url: str, check_interval_minutes: Optional[int] = None) -> WatchedUrl:
    """
    Start watching a URL, reactivating it if it was unwatched before.

    Raises:
        InvalidURLError: if url is not an absolute http(s) URL
        ValueError: if the interval is below one minute
    """
    url = _validated_url(url)
    if check_interval_minutes is not None and int(check_interval_minutes) < 1:
        raise ValueError("check_interval_minutes must be at least 1")

    watched, created = WatchedUrl.objects.get_or_create(
        url=url,
        defaults={
            "check_interval_minutes": check_interval_minutes or default_check_interval(),
        },
    )

    if not created:
        if watched.is_active and not check_interval_minutes:
            return watched
        watched.reactivate(check_interval_minutes)

    logger.info(f"Watching {watched.url} every {watched.check_interval_minutes} minutes")
    announce_watch_list_change()
    return watched


def unwatch_url(watched_url_id) -> WatchedUrl:
    """Deactivate a watched URL; its generations are kept."""
    watched = get_watched_url(watched_url_id)
    if watched.is_active:
        watched.deactivate()
        logger.info(f"Stopped watching {watched.url}")
        announce_watch_list_change()
    return watched


def list_watched_urls(include_inactive: bool = False) -> List[WatchedUrl]:
    """
    Watched URLs, newest first.

    Each item has a recent_generations attribute with its latest
    generations.
    """
    queryset = WatchedUrl.objects.all() if include_inactive else WatchedUrl.objects.active()
    watched_urls = list(queryset.order_by("-created_at", "-id"))

    for watched in watched_urls:
        watched.recent_generations = _generations_for(
            watched.pk, limit=RECENT_GENERATIONS_PER_URL
        )
    return watched_urls


def list_generations_for_url(watched_url_id, limit: int = 10) -> List[Generation]:
    """
    Generations of a watched URL, most recent first.

    Deleted generations are included with their deleted status.
    """
    if not WatchedUrl.objects.filter(pk=watched_url_id).exists():
        raise WatchedUrlNotFound(watched_url_id)
    return _generations_for(watched_url_id, limit)


def _generations_for(watched_url_id, limit: int) -> List[Generation]:
    return list(
        Generation.objects.filter(watched_url_id=watched_url_id)
        .order_by("-created_at", "-id")[:limit]
    )


def list_recent_generations(limit: int = 50) -> List[Generation]:
    """Latest generations across all URLs."""
    return list(
        Generation.objects.select_related("watched_url")
        .order_by("-created_at", "-id")[:limit]
    )
