"""
Django base settings for the sitewatch monitoring service.

This module contains settings common to all environments.
For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# Quick-start development settings - unsuitable for production
# See https://docs.djangoproject.com/en/4.2/howto/deployment/checklist/

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "django-insecure-sitewatch-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party apps
    "rest_framework",
    "drf_spectacular",
    # Local apps
    "sitewatch",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"


# Database
# https://docs.djangoproject.com/en/4.2/ref/settings/#databases
# Configured in environment-specific settings (development.py, production.py, test.py)

DATABASES = {
    # Override in environment-specific settings
}


# Password validation
# https://docs.djangoproject.com/en/4.2/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


# Internationalization
# https://docs.djangoproject.com/en/4.2/topics/i18n/

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/4.2/howto/static-files/

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Default primary key field type
# https://docs.djangoproject.com/en/4.2/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Cache Configuration
# https://docs.djangoproject.com/en/4.2/topics/cache/
# Configured in environment-specific settings

CACHES = {
    # Override in environment-specific settings
}


# Redis (notification fan-out and health checks)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/2")


# Celery Configuration
# https://docs.celeryproject.org/en/stable/django/first-steps-with-django.html

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 30 * 60  # 30 minutes max for a generation


# Django REST Framework Configuration
# https://www.django-rest-framework.org/

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 100,
}


# DRF Spectacular (OpenAPI/Swagger) Configuration
# https://drf-spectacular.readthedocs.io/

SPECTACULAR_SETTINGS = {
    "TITLE": "Sitewatch API",
    "DESCRIPTION": "Watch websites for content changes and regenerate llms.txt summaries",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}


# Logging Configuration
# https://docs.djangoproject.com/en/4.2/topics/logging/

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
        "sitewatch": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}


# Sentry Configuration
# https://docs.sentry.io/platforms/python/guides/django/

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))
SENTRY_PROFILE_SAMPLE_RATE = float(os.getenv("SENTRY_PROFILE_SAMPLE_RATE", "0.0"))

# Initialize Sentry only when a DSN is configured
import sentry_sdk

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        send_default_pii=False,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        profiles_sample_rate=SENTRY_PROFILE_SAMPLE_RATE,
        environment=SENTRY_ENVIRONMENT,
    )


# Monitoring Scheduler Configuration

# Seconds between scheduler ticks
SITEWATCH_MONITOR_TICK_SECONDS = int(os.getenv("SITEWATCH_MONITOR_TICK_SECONDS", "60"))

# Number of watched URLs checked concurrently within one batch
SITEWATCH_MONITOR_BATCH_SIZE = int(os.getenv("SITEWATCH_MONITOR_BATCH_SIZE", "3"))

# Pause between batches (seconds)
SITEWATCH_MONITOR_BATCH_COOLDOWN = float(os.getenv("SITEWATCH_MONITOR_BATCH_COOLDOWN", "1.0"))

# Check interval assigned to newly watched URLs (minutes)
SITEWATCH_DEFAULT_CHECK_INTERVAL_MINUTES = int(
    os.getenv("SITEWATCH_DEFAULT_CHECK_INTERVAL_MINUTES", "60")
)

# Pending or in-progress generations older than this are failed by the
# scheduler so their URL is checked again (minutes)
SITEWATCH_STALE_GENERATION_MINUTES = int(
    os.getenv("SITEWATCH_STALE_GENERATION_MINUTES", str(2 * CELERY_TASK_TIME_LIMIT // 60))
)


# Fetching Configuration

# Timeout for the metadata-only header probe (seconds)
SITEWATCH_HEADER_PROBE_TIMEOUT = float(os.getenv("SITEWATCH_HEADER_PROBE_TIMEOUT", "10"))

# Timeout for full page fetches (seconds)
SITEWATCH_PAGE_FETCH_TIMEOUT = float(os.getenv("SITEWATCH_PAGE_FETCH_TIMEOUT", "30"))

# Maximum retries for transient fetch failures
SITEWATCH_MAX_RETRIES = int(os.getenv("SITEWATCH_MAX_RETRIES", "2"))

SITEWATCH_PAGE_FETCHER_CLASS = os.getenv(
    "SITEWATCH_PAGE_FETCHER_CLASS",
    "sitewatch.fetchers.httpx_fetcher.HttpxPageFetcher",
)


# Crawl Configuration

SITEWATCH_CRAWL_MAX_PAGES = int(os.getenv("SITEWATCH_CRAWL_MAX_PAGES", "50"))
SITEWATCH_CRAWL_MAX_DEPTH = int(os.getenv("SITEWATCH_CRAWL_MAX_DEPTH", "3"))
SITEWATCH_CRAWL_CONCURRENCY = int(os.getenv("SITEWATCH_CRAWL_CONCURRENCY", "5"))

# Fetch attempts allowed per crawl = max_pages * multiplier
SITEWATCH_CRAWL_BUDGET_MULTIPLIER = int(os.getenv("SITEWATCH_CRAWL_BUDGET_MULTIPLIER", "2"))


# Generation Output Configuration

SITEWATCH_ARTIFACT_ROOT = os.getenv("SITEWATCH_ARTIFACT_ROOT", str(BASE_DIR / "data"))

SITEWATCH_SUMMARIZER_CLASS = os.getenv(
    "SITEWATCH_SUMMARIZER_CLASS",
    "sitewatch.services.summarizer.HeuristicSummarizer",
)


# Notification Configuration

SITEWATCH_NOTIFIER_CLASS = os.getenv(
    "SITEWATCH_NOTIFIER_CLASS",
    "sitewatch.services.notifier.RedisNotifier",
)
SITEWATCH_NOTIFY_CHANNEL = os.getenv("SITEWATCH_NOTIFY_CHANNEL", "sitewatch:events")
