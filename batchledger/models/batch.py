"""
Batch model — a received lot with its own cost, date and expiry.

Every stock entry (including transfer-in) creates or tops up a Batch.
FIFO/LIFO ordering uses received_at; expiry alerts use expiry_date.

Usage:
    inventory.adjust_stock(
        product, almacen, Decimal('24'), 'unit', 'Compra OC-118',
        batch_id='LOT-2026-0301', cost=Decimal('4.50'),
        expiry_date=timezone.now() + timedelta(days=10),
    )
"""

from datetime import datetime
from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from batchledger.ledger import BatchLot
from batchledger.models.enums import BatchStatus


class BatchQuerySet(models.QuerySet):
    """Custom QuerySet for Batch with convenience filters."""

    def available(self):
        return self.filter(status=BatchStatus.AVAILABLE, quantity__gt=0)

    def expiring_before(self, moment: datetime):
        """Batches expiring on or before the given moment."""
        return self.filter(expiry_date__lte=moment, expiry_date__isnull=False)

    def expired(self):
        return self.expiring_before(timezone.now())


class Batch(models.Model):
    """
    A lot of one product at one location.

    Identity (batch_id) is immutable, quantities are not. ``quantity`` is
    the unreserved part; ``reserved_quantity`` is set aside by reservations.
    A batch with both at zero is deleted.
    """

    inventory = models.ForeignKey(
        'batchledger.Inventory',
        on_delete=models.CASCADE,
        related_name='batches',
        verbose_name=_('Inventario'),
    )
    batch_id = models.CharField(
        max_length=50,
        verbose_name=_('Lote'),
        help_text=_('Se conserva al transferir entre ubicaciones'),
    )

    quantity = models.DecimalField(
        max_digits=18, decimal_places=6, default=Decimal('0'),
        verbose_name=_('Cantidad'),
    )
    reserved_quantity = models.DecimalField(
        max_digits=18, decimal_places=6, default=Decimal('0'),
        verbose_name=_('Cantidad reservada'),
    )
    cost_per_unit = models.DecimalField(
        max_digits=14, decimal_places=6, default=Decimal('0'),
        verbose_name=_('Costo unitario'),
    )

    received_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        verbose_name=_('Fecha de recepción'),
    )
    expiry_date = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Fecha de caducidad'),
    )
    status = models.CharField(
        max_length=20,
        choices=BatchStatus.choices,
        default=BatchStatus.AVAILABLE,
        db_index=True,
        verbose_name=_('Estado'),
    )

    supplier = models.CharField(max_length=200, blank=True, default='', verbose_name=_('Proveedor'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BatchQuerySet.as_manager()

    class Meta:
        verbose_name = _('Lote')
        verbose_name_plural = _('Lotes')
        ordering = ['received_at']
        constraints = [
            models.UniqueConstraint(
                fields=['inventory', 'batch_id'],
                name='unique_batch_per_inventory',
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0) & models.Q(reserved_quantity__gte=0),
                name='batch_quantities_non_negative',
            ),
        ]
        indexes = [
            models.Index(fields=['batch_id'], name='batch_batch_id_idx'),
        ]

    @property
    def is_expired(self) -> bool:
        if self.expiry_date is None:
            return False
        return timezone.now() >= self.expiry_date

    def to_lot(self) -> BatchLot:
        return BatchLot(
            batch_id=self.batch_id,
            quantity=self.quantity,
            cost_per_unit=self.cost_per_unit,
            received_at=self.received_at,
            expiry_date=self.expiry_date,
            status=self.status,
            reserved_quantity=self.reserved_quantity,
            supplier=self.supplier,
        )

    def __str__(self) -> str:
        expiry = f" (cad: {self.expiry_date:%Y-%m-%d})" if self.expiry_date else ""
        return f"Lote {self.batch_id}: {self.quantity}{expiry}"
