"""
Generation Pipeline Service.

Runs one generation end to end:

1. Claim the job (pending -> in_progress); duplicate runs are ignored
2. Crawl the site
3. Summarize pages and render llms.txt / llms-full.txt
4. Write the artifacts
5. Mark the generation completed with its output reference
6. Persist a fresh signature for the watched URL, using the same detection
   tier that decided the change, and link manual generations to a watch

Any error in steps 2-5 marks the generation failed with the error message,
removes partially written artifacts and reports to Sentry. Step 6 runs
after completion and never changes the generation's status.

ORM access is bridged with sync_to_async; everything else is async.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

from asgiref.sync import sync_to_async

from sitewatch.exceptions import EmptyCrawlError, GenerationNotFound, InvalidTransition
from sitewatch.models import Generation, GenerationTrigger, WatchedUrl
from sitewatch.monitoring import add_check_breadcrumb, capture_generation_error
from sitewatch.services.artifact_store import ArtifactStore
from sitewatch.services.change_detector import ChangeDetector
from sitewatch.services.llms_builder import LLMS_FILE, LLMS_FULL_FILE, LlmsTxtBuilder
from sitewatch.services.site_crawler import SiteCrawler
from sitewatch.services.summarizer import PageSummarizer, get_summarizer, summarize_pages
from sitewatch.signals import announce_watch_list_change
from sitewatch.utils.normalization import normalize_url

logger = logging.getLogger(__name__)


class GenerationPipeline:
    """
    Orchestrates crawl, aggregation and artifact storage for a generation.

    All collaborators are injectable; defaults are built from settings.
    """

    def __init__(
        self,
        crawler: Optional[SiteCrawler] = None,
        detector: Optional[ChangeDetector] = None,
        summarizer: Optional[PageSummarizer] = None,
        builder: Optional[LlmsTxtBuilder] = None,
        store: Optional[ArtifactStore] = None,
    ):
        self.crawler = crawler or SiteCrawler()
        self.detector = detector or ChangeDetector()
        self.summarizer = summarizer or get_summarizer()
        self.builder = builder or LlmsTxtBuilder()
        self.store = store or ArtifactStore()

    async def run(self, job_id, signature_method: Optional[str] = None) -> Optional[Generation]:
        """
        Run the generation with the given job id.

        Args:
            job_id: Generation job id
            signature_method: Detection tier that triggered an automatic
                generation; the refreshed signature uses the same tier

        Returns:
            The finished Generation, or None if another worker owns the job

        Raises:
            GenerationNotFound: if the job id is unknown
        """
        generation = await sync_to_async(self._load)(job_id)

        try:
            await sync_to_async(generation.mark_in_progress)()
        except InvalidTransition as e:
            logger.info(f"Ignoring duplicate run: {e}")
            return None

        add_check_breadcrumb(
            url=generation.url,
            message="Generation started",
            extra_data={"job_id": str(generation.job_id), "trigger": generation.trigger},
        )

        pages_crawled = 0
        page_errors = []

        try:
            options = generation.options or {}
            crawl_result = await self.crawler.crawl(
                generation.url,
                max_pages=options.get("max_pages"),
                max_depth=options.get("max_depth"),
            )
            pages_crawled = crawl_result.page_count
            page_errors = crawl_result.errors

            if not crawl_result.pages:
                raise EmptyCrawlError(generation.url, len(crawl_result.errors))

            files = await sync_to_async(self.render, thread_sensitive=False)(
                generation.url, crawl_result.pages
            )
            reference = await sync_to_async(self.store.write)(generation.job_id, files)

            await sync_to_async(generation.mark_completed)(
                reference,
                pages_crawled=pages_crawled,
                page_errors=page_errors,
            )

        except Exception as e:
            error_message = str(e) or e.__class__.__name__
            logger.exception(f"Generation {generation.job_id} failed: {error_message}")

            try:
                await sync_to_async(self.store.remove)(
                    self.store.reference_for(generation.job_id)
                )
            except OSError as cleanup_error:
                logger.warning(
                    f"Could not remove partial artifacts for {generation.job_id}: {cleanup_error}"
                )
            capture_generation_error(
                error=e,
                job_id=generation.job_id,
                url=generation.url,
                trigger=generation.trigger,
                extra_context={"pages_crawled": pages_crawled},
            )
            try:
                await sync_to_async(generation.mark_failed)(
                    error_message,
                    pages_crawled=pages_crawled,
                    page_errors=page_errors,
                )
            except InvalidTransition as transition_error:
                logger.warning(f"Could not record failure: {transition_error}")
            return generation

        logger.info(
            f"Generation {generation.job_id} completed: "
            f"{pages_crawled} pages, {len(page_errors)} page errors"
        )

        try:
            await self._refresh_watch(generation, signature_method)
        except Exception:
            logger.exception(
                f"Could not refresh watch signature after generation {generation.job_id}"
            )

        return generation

    async def close(self):
        """Release the detector's network client."""
        await self.detector.close()

    def _load(self, job_id) -> Generation:
        try:
            return Generation.objects.select_related("watched_url").get(job_id=job_id)
        except Generation.DoesNotExist:
            raise GenerationNotFound(job_id)

    def render(self, url: str, pages) -> dict:
        """Summarize pages and render both llms files."""
        domain = urlparse(url).hostname or url
        summaries = summarize_pages(self.summarizer, pages)
        site_description = self.summarizer.describe_site(domain, pages)

        return {
            LLMS_FILE: self.builder.build(domain, site_description, pages, summaries),
            LLMS_FULL_FILE: self.builder.build_full(domain, pages),
        }

    def _link_watch(self, generation: Generation):
        """
        Find the watch for a generation, creating it for a first manual run.

        Returns:
            (WatchedUrl or None, created)
        """
        if generation.watched_url_id:
            return generation.watched_url, False

        if generation.trigger != GenerationTrigger.MANUAL:
            return None, False

        watched, created = WatchedUrl.objects.get_or_create(url=normalize_url(generation.url))
        Generation.objects.filter(pk=generation.pk).update(watched_url=watched)
        generation.watched_url = watched

        if created:
            logger.info(f"Watching {watched.url} after its first successful generation")
            announce_watch_list_change()

        return watched, created

    async def _refresh_watch(self, generation: Generation, signature_method: Optional[str]):
        watched, _ = await sync_to_async(self._link_watch)(generation)
        if watched is None or not watched.is_active:
            return

        method = signature_method or watched.signature_method
        signature = None
        if method:
            signature = await self.detector.signature_for(watched.url, method)

        if signature is None:
            # The deciding tier is unavailable now; baseline with whichever answers
            signature, method = await self.detector.current_signature(watched.url)

        if signature is None:
            logger.warning(f"No signature available for {watched.url} after generation")
            return

        await sync_to_async(watched.record_check)(signature, method)
        logger.info(f"Stored {method} signature for {watched.url}")
