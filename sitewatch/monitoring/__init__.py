"""
Error tracking for sitewatch.

Sentry breadcrumbs for change checks and generation steps, and exception
capture for failed generations.
"""

from .sentry_integration import add_check_breadcrumb, capture_generation_error

__all__ = [
    "add_check_breadcrumb",
    "capture_generation_error",
]
