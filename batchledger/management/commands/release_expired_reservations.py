"""
Management command to release expired reservations.

Usage:
    python manage.py release_expired_reservations
    python manage.py release_expired_reservations --dry-run
"""

from django.core.management.base import BaseCommand

from batchledger import inventory
from batchledger.models import Reservation


class Command(BaseCommand):
    """Release expired reservations command."""

    help = 'Libera las reservas vencidas'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Muestra lo que se liberaría sin ejecutar',
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            expired = Reservation.objects.expired().count()
            self.stdout.write(f'{expired} reserva(s) se liberaría(n)')
        else:
            count = inventory.release_expired_reservations()
            self.stdout.write(
                self.style.SUCCESS(f'{count} reserva(s) liberada(s)')
            )
