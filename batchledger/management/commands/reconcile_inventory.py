"""
Management command to reconcile inventory against the movement log.

For every Inventory row (optionally one location), recomputes totals from
batches and compares them with the net movement volume.

Usage:
    python manage.py reconcile_inventory
    python manage.py reconcile_inventory --location almacen
"""

from django.core.management.base import BaseCommand, CommandError

from batchledger import inventory
from batchledger.models import Inventory, Location


class Command(BaseCommand):
    """Reconcile inventory command."""

    help = 'Concilia el inventario contra los movimientos'

    def add_arguments(self, parser):
        parser.add_argument(
            '--location',
            help='Código de la ubicación (todas si se omite)',
        )

    def handle(self, *args, **options):
        rows = Inventory.objects.select_related('product', 'location').order_by('location__code', 'product__sku')

        if options['location']:
            try:
                location = Location.objects.get(code=options['location'])
            except Location.DoesNotExist:
                raise CommandError(f"Ubicación no encontrada: {options['location']}") from None
            rows = rows.filter(location=location)

        drifted = 0
        checked = 0
        for row in rows:
            checked += 1
            result = inventory.reconcile(row.product, row.location)
            if not result.is_balanced:
                drifted += 1
                self.stdout.write(self.style.WARNING(
                    f'{row.product.sku} @ {row.location.code}: '
                    f'movimientos={result.movement_balance} existencia={result.on_hand} '
                    f'diferencia={result.drift}'
                ))

        if drifted:
            self.stdout.write(self.style.ERROR(
                f'{drifted} de {checked} inventario(s) con diferencias'
            ))
        else:
            self.stdout.write(self.style.SUCCESS(
                f'{checked} inventario(s) conciliado(s)'
            ))
