"""
Celery configuration for sitewatch.

Two queues: "default" for the periodic watch-list tick and "generate" for
crawl-and-summarize runs, so long generations never delay the tick.
"""

import os
from datetime import timedelta

from celery import Celery

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("sitewatch")

# namespace='CELERY' means all celery-related configuration keys
# should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

app.conf.task_queues = {
    "generate": {
        "exchange": "generate",
        "routing_key": "generate",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}

app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

app.conf.task_routes = {
    "sitewatch.tasks.check_watched_urls": {"queue": "default"},
    "sitewatch.tasks.run_generation": {"queue": "generate"},
}

TICK_SECONDS = int(os.getenv("SITEWATCH_MONITOR_TICK_SECONDS", "60"))

app.conf.beat_schedule = {
    "check-watched-urls": {
        "task": "sitewatch.tasks.check_watched_urls",
        "schedule": timedelta(seconds=TICK_SECONDS),
        # A tick older than one interval is superseded by the next one
        "options": {"expires": TICK_SECONDS},
    },
}
