"""
In-memory collaborators for sitewatch tests.
"""

from typing import Dict, Iterable, Optional

from sitewatch.exceptions import FetchError
from sitewatch.fetchers.base import HeaderResult, PageFetcher, RawResult


def page_html(
    title: str,
    body: str = "",
    links: Iterable[str] = (),
    canonical: Optional[str] = None,
    description: Optional[str] = None,
) -> str:
    """Build a small HTML document."""
    head = [f"<title>{title}</title>"]
    if description:
        head.append(f'<meta name="description" content="{description}">')
    if canonical:
        head.append(f'<link rel="canonical" href="{canonical}">')
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return (
        "<html><head>" + "".join(head) + "</head>"
        f"<body><h1>{title}</h1><p>{body}</p>{anchors}</body></html>"
    )


class FakeFetcher(PageFetcher):
    """
    Serves pages from a dict keyed by normalized URL.

    URLs missing from pages answer like a 404. URLs missing from headers
    make the header probe raise FetchError.
    """

    def __init__(
        self,
        pages: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, Dict[str, str]]] = None,
        head_status: Optional[Dict[str, int]] = None,
    ):
        self.pages = pages or {}
        self.headers = headers or {}
        self.head_status = head_status or {}
        self.fetched = []
        self.head_requests = []
        self.closed = False

    async def fetch_raw(self, url: str) -> RawResult:
        self.fetched.append(url)
        if url not in self.pages:
            return RawResult(
                url=url,
                final_url=url,
                status_code=404,
                headers={},
                html="",
                success=False,
                error="HTTP 404",
            )
        return RawResult(
            url=url,
            final_url=url,
            status_code=200,
            headers={"content-type": "text/html"},
            html=self.pages[url],
            success=True,
        )

    async def fetch_headers(self, url: str) -> HeaderResult:
        self.head_requests.append(url)
        if url not in self.headers:
            raise FetchError(url, "Header probe failed: connection refused")
        return HeaderResult(
            url=url,
            status_code=self.head_status.get(url, 200),
            headers=self.headers[url],
        )

    async def close(self):
        self.closed = True
