"""
Sitewatch application configuration.
"""

from django.apps import AppConfig


class SitewatchConfig(AppConfig):
    """Configuration for the sitewatch Django application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "sitewatch"
    verbose_name = "Site Watch"

    def ready(self):
        """
        Perform application initialization.

        Imports signal handlers so generation lifecycle and watch-list
        changes are forwarded to the configured notifier.
        """
        from sitewatch import signals  # noqa: F401
