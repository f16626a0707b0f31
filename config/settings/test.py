"""
Test settings for the sitewatch monitoring service.

Uses in-memory SQLite and eager Celery for fast test execution.
"""

import os
import tempfile
from .base import *

# Test mode
DEBUG = False

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# Test database - in-memory SQLite for speed
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Test Cache - use local memory cache
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "unique-snowflake",
    }
}

# Test Celery - run tasks synchronously
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# Test logging - minimal output
LOGGING["loggers"]["django"]["level"] = "WARNING"
LOGGING["loggers"]["sitewatch"]["level"] = "WARNING"

# Password validators disabled for faster tests
AUTH_PASSWORD_VALIDATORS = []

# Use faster password hasher for tests
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Disable Sentry in tests
SENTRY_DSN = ""

# Test fetch settings - fail fast
SITEWATCH_HEADER_PROBE_TIMEOUT = 2
SITEWATCH_PAGE_FETCH_TIMEOUT = 5
SITEWATCH_MAX_RETRIES = 1
SITEWATCH_MONITOR_BATCH_COOLDOWN = 0
SITEWATCH_CRAWL_CONCURRENCY = 3

# Generated files land in a throwaway directory
SITEWATCH_ARTIFACT_ROOT = os.path.join(tempfile.gettempdir(), "sitewatch-test-artifacts")

# No Redis in tests
SITEWATCH_NOTIFIER_CLASS = "sitewatch.services.notifier.LoggingNotifier"
