"""
Management command to add a URL to the watch list.

Usage:
    python manage.py watch_url https://example.com
    python manage.py watch_url https://example.com --interval=30
"""

from django.core.management.base import BaseCommand, CommandError

from sitewatch.exceptions import InvalidURLError
from sitewatch.services import generation_service


class Command(BaseCommand):
    """Watch a URL for content changes."""

    help = 'Watch a URL; the monitor regenerates its llms.txt when it changes'

    def add_arguments(self, parser):
        parser.add_argument('url', help='URL to watch')
        parser.add_argument(
            '--interval',
            type=int,
            default=None,
            help='Minutes between checks (default: SITEWATCH_DEFAULT_CHECK_INTERVAL_MINUTES)',
        )

    def handle(self, *args, **options):
        try:
            watched = generation_service.watch_url(
                options['url'],
                check_interval_minutes=options['interval'],
            )
        except (InvalidURLError, ValueError) as e:
            raise CommandError(str(e))

        self.stdout.write(self.style.SUCCESS(
            f'Watching {watched.url} (id {watched.pk}) every {watched.check_interval_minutes} minutes'
        ))
