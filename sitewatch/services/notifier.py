"""
Notifier Service.

Fans lifecycle events out to interested parties (dashboards, websocket
gateways). Delivery is best-effort: a failed publish is logged and never
raised into the generation pipeline or the scheduler.

Events:
    {"type": "generation_update", "job_id": "...", "status": "completed"}
    {"type": "watched_urls"}
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Base notifier; subclasses deliver events."""

    def generation_updated(self, job_id: str, status: str):
        self.publish({
            "type": "generation_update",
            "job_id": str(job_id),
            "status": str(status),
        })

    def watched_urls_changed(self):
        self.publish({"type": "watched_urls"})

    @abstractmethod
    def publish(self, event: dict):
        """Deliver one event."""


class LoggingNotifier(Notifier):
    """Writes events to the log. Used in development and tests."""

    def publish(self, event: dict):
        logger.info(f"Event: {json.dumps(event)}")


class RedisNotifier(Notifier):
    """
    Publishes JSON events on a Redis pub/sub channel.

    Subscribers (e.g. a websocket gateway) relay them to connected clients.
    """

    def __init__(self, redis_client=None, channel: Optional[str] = None):
        """
        Initialize the notifier.

        Args:
            redis_client: Optional pre-configured Redis client
            channel: Pub/sub channel (default from settings)
        """
        self._redis = redis_client
        self.channel = channel or getattr(
            settings, "SITEWATCH_NOTIFY_CHANNEL", "sitewatch:events"
        )

        if self._redis is None:
            self._init_redis()

    def _init_redis(self):
        """Initialize Redis connection from settings."""
        import redis

        redis_url = getattr(settings, "REDIS_URL", None)
        if not redis_url:
            # Fall back to Celery broker URL
            redis_url = getattr(settings, "CELERY_BROKER_URL", "redis://localhost:6379/1")
        self._redis = redis.from_url(redis_url, decode_responses=True)

    def publish(self, event: dict):
        payload = {**event, "timestamp": timezone.now().isoformat()}
        try:
            self._redis.publish(self.channel, json.dumps(payload))
        except Exception as e:
            logger.warning(f"Failed to publish {event.get('type')} event: {e}")


_notifier = None


def get_notifier() -> Notifier:
    """Get or create the configured notifier."""
    global _notifier
    if _notifier is None:
        notifier_class = import_string(
            getattr(
                settings,
                "SITEWATCH_NOTIFIER_CLASS",
                "sitewatch.services.notifier.LoggingNotifier",
            )
        )
        _notifier = notifier_class()
    return _notifier


def reset_notifier():
    """Drop the cached notifier (settings changes, tests)."""
    global _notifier
    _notifier = None
