"""
Management command to run the monitoring scheduler in the foreground.

Checks due watched URLs every tick and runs generations for changed URLs
in the same process. Use either this command or the Celery Beat
check_watched_urls task, not both.

Usage:
    python manage.py run_monitor
    python manage.py run_monitor --tick=30
    python manage.py run_monitor --once
"""

import asyncio
import logging
import signal

from django.core.management.base import BaseCommand

from sitewatch.services.monitor import AsyncioLauncher, MonitoringScheduler

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Run the watch-list monitoring scheduler."""

    help = 'Periodically check watched URLs and regenerate llms.txt when they change'

    def add_arguments(self, parser):
        parser.add_argument(
            '--tick',
            type=float,
            default=None,
            help='Seconds between scheduler ticks (default: SITEWATCH_MONITOR_TICK_SECONDS)',
        )
        parser.add_argument(
            '--once',
            action='store_true',
            help='Run a single tick, wait for started generations and exit',
        )

    def handle(self, *args, **options):
        launcher = AsyncioLauncher()
        scheduler = MonitoringScheduler(launcher=launcher, tick_seconds=options['tick'])

        if options['once']:
            report = asyncio.run(self._run_once(scheduler, launcher))
            self.stdout.write(self.style.SUCCESS(
                f"Checked {report.checked} URLs: {report.changed} changed, "
                f"{report.unchanged} unchanged, {report.errors} errors"
            ))
            return

        self.stdout.write(f'Monitoring watched URLs every {scheduler.tick_seconds}s (Ctrl+C to stop)')
        asyncio.run(self._run_forever(scheduler, launcher))
        self.stdout.write(self.style.SUCCESS('Monitor stopped'))

    async def _run_once(self, scheduler, launcher):
        try:
            report = await scheduler.run_once()
            await launcher.wait()
            return report
        finally:
            await scheduler.close()

    async def _run_forever(self, scheduler, launcher):
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        scheduler.start()
        try:
            await stop_event.wait()
        finally:
            scheduler.stop()
            if launcher.in_flight:
                logger.info(f"Waiting for {launcher.in_flight} running generation(s)")
                await launcher.wait()
            await scheduler.close()
