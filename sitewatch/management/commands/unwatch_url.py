"""
Management command to remove a URL from the watch list.

Usage:
    python manage.py unwatch_url 42
"""

from django.core.management.base import BaseCommand, CommandError

from sitewatch.exceptions import WatchedUrlNotFound
from sitewatch.services import generation_service


class Command(BaseCommand):
    """Stop watching a URL."""

    help = 'Stop watching a URL; its generation history is kept'

    def add_arguments(self, parser):
        parser.add_argument('watched_url_id', type=int, help='Watched URL id')

    def handle(self, *args, **options):
        try:
            watched = generation_service.unwatch_url(options['watched_url_id'])
        except WatchedUrlNotFound as e:
            raise CommandError(str(e))

        self.stdout.write(self.style.SUCCESS(f'Stopped watching {watched.url}'))
