"""
Sentry error tracking integration for sitewatch.

- Sentry SDK is configured in settings/base.py when SENTRY_DSN is set
- Breadcrumbs record each change check and generation step
- Sensitive data (cookies, tokens, API keys) is filtered from event data
- Generation failures are captured with job context

Usage:
    from sitewatch.monitoring import capture_generation_error

    try:
        await pipeline.run(job_id)
    except Exception as e:
        capture_generation_error(error=e, job_id=job_id, url=url)
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Sensitive fields to filter from Sentry events
SENSITIVE_FIELDS = {
    "cookies",
    "cookie",
    "api_key",
    "apikey",
    "api-key",
    "authorization",
    "auth",
    "password",
    "secret",
    "token",
}


def _filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Filter sensitive data from a dictionary.

    Replaces values for keys that match sensitive field names.

    Args:
        data: Dictionary potentially containing sensitive data

    Returns:
        Dictionary with sensitive values replaced
    """
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        key_lower = key.lower()

        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive_data(value)
        else:
            filtered[key] = value

    return filtered


def add_check_breadcrumb(
    url: str,
    message: str = "Change check",
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add a breadcrumb to Sentry for scheduler and pipeline context.

    Breadcrumbs help trace the sequence of operations leading to an error.

    Args:
        url: Watched or crawled URL
        message: Description of the operation
        level: Log level (info, warning, error)
        extra_data: Additional context data
    """
    breadcrumb_data = {"url": url}
    if extra_data:
        breadcrumb_data.update(_filter_sensitive_data(extra_data))

    try:
        sentry_sdk.add_breadcrumb(
            category="sitewatch",
            message=message,
            level=level,
            data=breadcrumb_data,
        )
    except Exception as e:
        logger.warning(f"Failed to add Sentry breadcrumb: {e}")


def capture_generation_error(
    error: Exception,
    job_id: Optional[str] = None,
    url: Optional[str] = None,
    trigger: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture a generation failure to Sentry with job context.

    Args:
        error: The exception that occurred
        job_id: Generation job id
        url: URL being generated
        trigger: manual or automatic
        extra_context: Additional context (filtered for sensitive data)
    """
    add_check_breadcrumb(
        url=url or "Unknown",
        message=f"Generation error: {type(error).__name__}",
        level="error",
        extra_data={"job_id": str(job_id) if job_id else None},
    )

    try:
        with sentry_sdk.new_scope() as scope:
            if trigger:
                scope.set_tag("sitewatch.trigger", trigger)
            if job_id:
                scope.set_tag("sitewatch.job_id", str(job_id))
            if url:
                scope.set_extra("generation_url", url)
            if extra_context:
                scope.set_extra("generation_context", _filter_sensitive_data(extra_context))

            sentry_sdk.capture_exception(error)

    except Exception as e:
        logger.warning(f"Failed to capture exception to Sentry: {e}")
