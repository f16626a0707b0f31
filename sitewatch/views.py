"""
Sitewatch views.

Health check endpoint for monitoring and load balancer checks.
"""

from django.conf import settings
from django.db import connection
from django.http import JsonResponse

from sitewatch.models import ACTIVE_STATUSES, Generation, WatchedUrl


def get_redis_connection():
    """
    Get Redis connection for health check.

    Returns:
        Redis client if REDIS_URL is configured, None otherwise.
    """
    redis_url = getattr(settings, "REDIS_URL", "")
    if not redis_url:
        return None

    import redis

    return redis.from_url(redis_url, socket_connect_timeout=2, socket_timeout=2)


def get_celery_worker_count():
    """
    Get the count of active Celery workers.

    Returns:
        int: Number of active workers, 0 if Celery not available.
    """
    try:
        from config.celery import app as celery_app

        inspect = celery_app.control.inspect(timeout=1.0)
        active = inspect.active()
        if active:
            return len(active)
        return 0
    except Exception:
        return 0


def health_check(request):
    """
    Health check endpoint for the sitewatch service.

    Endpoint: GET /api/health/
    No authentication required (for load balancer checks).

    Response fields:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "error"
        - redis: "connected", "not_configured", or "error"
        - celery_workers: integer count of active workers
        - watched_urls: number of active watched URLs
        - generations_in_flight: pending + in-progress generations

    Returns:
        JsonResponse: HTTP 200 for healthy, HTTP 503 for unhealthy
    """
    status = "healthy"
    http_status = 200

    database_status = "connected"
    try:
        connection.ensure_connection()
    except Exception:
        database_status = "error"
        status = "unhealthy"
        http_status = 503

    # Redis is optional for serving requests; report but do not fail
    redis_status = "not_configured"
    try:
        redis_client = get_redis_connection()
        if redis_client is not None:
            redis_status = "connected" if redis_client.ping() else "error"
    except Exception:
        redis_status = "error"

    celery_workers = get_celery_worker_count()

    watched_urls = None
    generations_in_flight = None
    if database_status == "connected":
        try:
            watched_urls = WatchedUrl.objects.active().count()
            generations_in_flight = Generation.objects.filter(
                status__in=ACTIVE_STATUSES
            ).count()
        except Exception:
            database_status = "error"
            status = "unhealthy"
            http_status = 503

    response_data = {
        "status": status,
        "database": database_status,
        "redis": redis_status,
        "celery_workers": celery_workers,
        "watched_urls": watched_urls,
        "generations_in_flight": generations_in_flight,
    }

    return JsonResponse(response_data, status=http_status)
