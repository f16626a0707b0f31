"""
Crawl frontier used by the site crawler.
"""

from .url_frontier import FrontierEntry, URLFrontier

__all__ = ["FrontierEntry", "URLFrontier"]
