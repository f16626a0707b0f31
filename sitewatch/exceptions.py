"""
Exceptions raised by the sitewatch services.

Input errors (invalid URL, unknown ids, duplicate job ids) are surfaced to
API callers as 4xx responses and are never retried. FetchError stays inside
the fetcher/detector layer.
"""


class SitewatchError(Exception):
    """Base class for all sitewatch errors."""


class InvalidURLError(SitewatchError):
    """The submitted URL is not an absolute http(s) URL."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid URL: {url!r}")


class GenerationNotFound(SitewatchError):
    """No generation exists for the given job id."""

    def __init__(self, job_id):
        self.job_id = job_id
        super().__init__(f"Generation {job_id} not found")


class WatchedUrlNotFound(SitewatchError):
    """No watched URL exists for the given id."""

    def __init__(self, watched_url_id):
        self.watched_url_id = watched_url_id
        super().__init__(f"Watched URL {watched_url_id} not found")


class DuplicateJobError(SitewatchError):
    """A caller-supplied job id is already in use."""

    def __init__(self, job_id):
        self.job_id = job_id
        super().__init__(f"Job id {job_id} already exists")


class InvalidTransition(SitewatchError):
    """A generation status change that would move backwards or skip a state."""

    def __init__(self, job_id, current: str, target: str):
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(
            f"Generation {job_id}: cannot move from {current} to {target}"
        )


class GenerationInProgress(SitewatchError):
    """Operation refused because the generation is still pending or running."""

    def __init__(self, job_id):
        self.job_id = job_id
        super().__init__(f"Generation {job_id} is still running")


class FetchError(SitewatchError):
    """Transport-level failure (timeout, connection error) while fetching."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"{message} ({url})")


class EmptyCrawlError(SitewatchError):
    """A crawl finished without recording a single page."""

    def __init__(self, url: str, errors_count: int = 0):
        self.url = url
        self.errors_count = errors_count
        message = f"No pages could be crawled from {url}"
        if errors_count:
            message += f" ({errors_count} page errors)"
        super().__init__(message)
