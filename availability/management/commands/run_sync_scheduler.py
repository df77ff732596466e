"""
Management command to run the in-process sync scheduler.

Polls for due sources and syncs them on a bounded thread pool until
interrupted. SIGINT/SIGTERM stop scheduling and wait for running syncs.

Usage:
    python manage.py run_sync_scheduler
    python manage.py run_sync_scheduler --pool-size=8 --poll-seconds=10
    python manage.py run_sync_scheduler --once
"""

import logging
import signal

from django.core.management.base import BaseCommand

from availability.scheduler import SyncScheduler

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Run the bounded worker-pool sync scheduler."""

    help = 'Run the availability sync scheduler in the foreground'

    def add_arguments(self, parser):
        parser.add_argument(
            '--pool-size',
            type=int,
            default=None,
            help='Max concurrent syncs (default: AVAILABILITY_SYNC_POOL_SIZE)',
        )
        parser.add_argument(
            '--poll-seconds',
            type=float,
            default=None,
            help='Seconds between due-source checks (default: AVAILABILITY_SCHEDULER_POLL_SECONDS)',
        )
        parser.add_argument(
            '--once',
            action='store_true',
            help='Run a single tick, wait for its syncs, and exit',
        )

    def handle(self, *args, **options):
        scheduler = SyncScheduler(pool_size=options['pool_size'])

        if options['once']:
            submitted = scheduler.tick()
            self.stdout.write(f'Submitted {len(submitted)} source(s)')
            scheduler.wait_for_in_flight()
            scheduler.shutdown(wait=True)
            self.stdout.write(self.style.SUCCESS('Done'))
            return

        def stop(signum, frame):
            self.stdout.write(self.style.WARNING('Stopping scheduler, waiting for running syncs...'))
            scheduler.shutdown(wait=False)

        signal.signal(signal.SIGINT, stop)
        signal.signal(signal.SIGTERM, stop)

        self.stdout.write(self.style.SUCCESS(f'Sync scheduler running (pool size {scheduler.pool_size})'))
        try:
            scheduler.run_forever(poll_seconds=options['poll_seconds'])
        finally:
            scheduler.shutdown(wait=True)

        self.stdout.write(self.style.SUCCESS('Sync scheduler stopped'))
