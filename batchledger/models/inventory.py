"""
Inventory model — Stock of one product at one location.
"""

import logging
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils.translation import gettext_lazy as _

from batchledger.ledger import InventorySnapshot, Totals, recompute_totals

logger = logging.getLogger('batchledger')


class InventoryQuerySet(models.QuerySet):
    """QuerySet with helper filters for Inventory queries."""

    def for_product(self, product):
        return self.filter(product=product)

    def at_location(self, location):
        return self.filter(location=location)

    def low_stock(self):
        """Available at or below the product's minimum stock (when one is set)."""
        return self.filter(
            product__minimum_stock__gt=0,
            available__lte=F('product__minimum_stock'),
        )


class Inventory(models.Model):
    """
    Stock of a product at a location, as a list of Batches.

    One row per (product, location), created lazily on the first entry and
    never deleted, only drained to zero.

    Totals (available, reserved, quarantine) are a cache derived from the
    batches and rewritten on every mutation. Use recalculate() for audit.
    """

    product = models.ForeignKey(
        'batchledger.Product',
        on_delete=models.PROTECT,
        related_name='inventories',
        verbose_name=_('Producto'),
    )
    location = models.ForeignKey(
        'batchledger.Location',
        on_delete=models.PROTECT,
        related_name='inventories',
        verbose_name=_('Ubicación'),
    )

    # Totals cache (rewritten from batches by the service)
    available = models.DecimalField(
        max_digits=18, decimal_places=6, default=Decimal('0'),
        verbose_name=_('Disponible'),
    )
    reserved = models.DecimalField(
        max_digits=18, decimal_places=6, default=Decimal('0'),
        verbose_name=_('Reservado'),
    )
    quarantine = models.DecimalField(
        max_digits=18, decimal_places=6, default=Decimal('0'),
        verbose_name=_('Cuarentena'),
    )
    unit = models.CharField(max_length=20, verbose_name=_('Unidad'))

    last_updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Actualizado por'),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    objects = InventoryQuerySet.as_manager()

    class Meta:
        verbose_name = _('Inventario')
        verbose_name_plural = _('Inventarios')
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'location'],
                name='unique_inventory_product_location',
            ),
        ]
        indexes = [
            models.Index(fields=['location', 'product'], name='inventory_location_product_idx'),
        ]

    # ══════════════════════════════════════════════════════════════
    # PROPERTIES
    # ══════════════════════════════════════════════════════════════

    @property
    def totals(self) -> Totals:
        """Cached totals as a value."""
        return Totals(
            available=self.available,
            reserved=self.reserved,
            quarantine=self.quarantine,
            unit=self.unit,
        )

    @property
    def on_hand(self) -> Decimal:
        """available + reserved + quarantine."""
        return self.available + self.reserved + self.quarantine

    # ══════════════════════════════════════════════════════════════
    # METHODS
    # ══════════════════════════════════════════════════════════════

    def snapshot(self) -> InventorySnapshot:
        """Immutable copy of the current batch list."""
        return InventorySnapshot(
            unit=self.unit,
            batches=tuple(batch.to_lot() for batch in self.batches.order_by('received_at', 'pk')),
        )

    def apply_totals(self, totals: Totals) -> None:
        self.available = totals.available
        self.reserved = totals.reserved
        self.quarantine = totals.quarantine

    def save_snapshot(self, snapshot: InventorySnapshot, user=None) -> None:
        """
        Persist a snapshot: sync Batch rows, then rewrite the totals cache.

        Must run inside the transaction that locked this row.
        """
        rows = {row.batch_id: row for row in self.batches.all()}
        kept = {lot.batch_id for lot in snapshot.batches}

        stale = [row.pk for batch_id, row in rows.items() if batch_id not in kept]
        if stale:
            self.batches.filter(pk__in=stale).delete()

        for lot in snapshot.batches:
            row = rows.get(lot.batch_id)
            if row is None:
                self.batches.create(
                    batch_id=lot.batch_id,
                    quantity=lot.quantity,
                    reserved_quantity=lot.reserved_quantity,
                    cost_per_unit=lot.cost_per_unit,
                    received_at=lot.received_at,
                    expiry_date=lot.expiry_date,
                    status=lot.status,
                    supplier=lot.supplier,
                )
            elif (row.quantity, row.reserved_quantity) != (lot.quantity, lot.reserved_quantity):
                row.quantity = lot.quantity
                row.reserved_quantity = lot.reserved_quantity
                row.save(update_fields=['quantity', 'reserved_quantity', 'updated_at'])

        self.apply_totals(snapshot.totals)
        self.last_updated_by = user
        self.save(update_fields=[
            'available', 'reserved', 'quarantine', 'last_updated_by', 'updated_at',
        ])

    def recalculate(self) -> Totals:
        """
        Recompute totals from batches and save if the cache drifted.

        Use for:
        - Integrity audit
        - Correction after detected inconsistency
        """
        totals = recompute_totals(self.batches.all(), self.unit)

        if totals != self.totals:
            old = self.totals
            self.apply_totals(totals)
            self.save(update_fields=['available', 'reserved', 'quarantine', 'updated_at'])
            logger.warning(
                "inventory.recalculated",
                extra={
                    "inventory_id": self.pk,
                    "old_available": str(old.available),
                    "available": str(totals.available),
                    "old_reserved": str(old.reserved),
                    "reserved": str(totals.reserved),
                },
            )

        return totals

    def __str__(self) -> str:
        return f"{self.product} @ {self.location.code}: {self.available} {self.unit}"
