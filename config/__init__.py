"""
Django project package for the sitewatch monitoring service.

Loads the Celery app so that shared tasks bind to it when Django starts.
"""

from .celery import app as celery_app

__all__ = ("celery_app",)
