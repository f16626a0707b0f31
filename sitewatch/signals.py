"""
Django signals for the sitewatch application.

Lifecycle events are raised as Django signals by the models and services
and forwarded to the configured Notifier here, so the core never talks to
the notification transport directly.

Signals:
- generation_status_changed(job_id, status): sent on every generation
  state transition, including creation in pending
- watched_urls_changed(): sent when the watch list is modified

Both are sent after the database transaction that caused them commits,
so subscribers never hear about rows they cannot read yet.
"""

import logging

from django.db import transaction
from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)


generation_status_changed = Signal()
watched_urls_changed = Signal()


@receiver(generation_status_changed, dispatch_uid="sitewatch_notify_generation")
def notify_generation_status(sender, job_id, status, **kwargs):
    """Forward a generation transition to the notifier."""
    from sitewatch.services.notifier import get_notifier

    logger.info(f"Generation {job_id} -> {status}")
    try:
        get_notifier().generation_updated(job_id, status)
    except Exception as e:
        logger.warning(f"Notifier unavailable for generation {job_id}: {e}")


@receiver(watched_urls_changed, dispatch_uid="sitewatch_notify_watch_list")
def notify_watch_list(sender, **kwargs):
    """Forward a watch-list change to the notifier."""
    from sitewatch.services.notifier import get_notifier

    try:
        get_notifier().watched_urls_changed()
    except Exception as e:
        logger.warning(f"Notifier unavailable for watch-list update: {e}")


def announce_watch_list_change():
    """Send watched_urls_changed once the surrounding transaction commits."""
    from sitewatch.models import WatchedUrl

    transaction.on_commit(lambda: watched_urls_changed.send(sender=WatchedUrl))
