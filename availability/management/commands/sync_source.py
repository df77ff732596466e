"""
Management command to sync one source now and print the outcome.

Usage:
    python manage.py sync_source <source_id>
    python manage.py sync_source <source_id> --available=4 --status=open
    python manage.py sync_source <source_id> --json
"""

import json

from django.core.exceptions import ValidationError as InvalidValue
from django.core.management.base import BaseCommand, CommandError

from availability.models import ExternalSource
from availability.services import trigger_manual_sync
from availability.types import FetchedAvailability


class Command(BaseCommand):
    """Run an operator-initiated sync for one source."""

    help = 'Synchronize one external source immediately'

    def add_arguments(self, parser):
        parser.add_argument('source_id', help='UUID of the ExternalSource')
        parser.add_argument('--available', type=int, help='Operator-entered available seats')
        parser.add_argument('--total', type=int, help='Operator-entered total seats')
        parser.add_argument('--status', help='Operator-entered status (open, closed, full, cancelled)')
        parser.add_argument('--price', help='Operator-entered price')
        parser.add_argument(
            '--json',
            action='store_true',
            help='Print the outcome as JSON',
        )

    def handle(self, *args, **options):
        manual = {
            'available_seats': options['available'],
            'total_seats': options['total'],
            'status': options['status'],
            'price': options['price'],
        }
        values = None
        if any(value is not None for value in manual.values()):
            try:
                values = FetchedAvailability.from_dict(manual)
            except (ValueError, ArithmeticError) as e:
                raise CommandError(f"Invalid values: {e}") from e

        try:
            outcome = trigger_manual_sync(options['source_id'], manual_values=values)
        except (ExternalSource.DoesNotExist, InvalidValue) as e:
            raise CommandError(f"Source {options['source_id']} not found") from e

        if options['json']:
            self.stdout.write(json.dumps(outcome.to_dict(), indent=2))
            return

        if outcome.success:
            self.stdout.write(self.style.SUCCESS(
                f'Sync succeeded: departure {outcome.departure_id}, '
                f'{len(outcome.events)} event(s), {outcome.notifications_dispatched} notification(s)'
            ))
            for event in outcome.events:
                self.stdout.write(f'  - {event.kind}: {event.old_value} -> {event.new_value}')
        elif outcome.status == 'skipped':
            self.stdout.write(self.style.WARNING(f'Sync skipped: {outcome.error}'))
        else:
            self.stdout.write(self.style.ERROR(f'Sync failed [{outcome.error_type}]: {outcome.error}'))
