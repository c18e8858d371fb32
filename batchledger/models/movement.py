"""
Movement model — Immutable ledger of inventory changes.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from batchledger.models.enums import MovementType


class MovementQuerySet(models.QuerySet):

    def touching(self, location):
        """Movements leaving or entering a location."""
        return self.filter(models.Q(from_location=location) | models.Q(to_location=location))

    def volume(self):
        """Movements that change physical stock (reservation bookkeeping excluded)."""
        return self.exclude(movement_type=MovementType.AJUSTE)


class Movement(models.Model):
    """
    Immutable record of an inventory change.

    Rules:
    - NEVER update() or delete()
    - Corrections are new Movements in the opposite direction
    - ``quantity`` is always >= 0, in the product's base unit;
      direction comes from movement_type and the from/to locations

    This is the system of record for reconciliation.
    """

    movement_id = models.CharField(
        max_length=40,
        unique=True,
        verbose_name=_('Folio'),
    )
    movement_type = models.CharField(
        max_length=20,
        choices=MovementType.choices,
        db_index=True,
        verbose_name=_('Tipo'),
    )

    product = models.ForeignKey(
        'batchledger.Product',
        on_delete=models.PROTECT,
        related_name='movements',
        verbose_name=_('Producto'),
    )
    from_location = models.ForeignKey(
        'batchledger.Location',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='movements_out',
        verbose_name=_('Origen'),
    )
    to_location = models.ForeignKey(
        'batchledger.Location',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='movements_in',
        verbose_name=_('Destino'),
    )

    quantity = models.DecimalField(
        max_digits=18,
        decimal_places=6,
        verbose_name=_('Cantidad'),
    )
    unit = models.CharField(max_length=20, verbose_name=_('Unidad'))
    batch_id = models.CharField(
        max_length=50,
        blank=True,
        default='',
        verbose_name=_('Lote'),
    )

    reason = models.CharField(
        max_length=255,
        verbose_name=_('Motivo'),
        help_text=_('Obligatorio. Ej: "Compra OC-118", "Consumo para evento"'),
    )
    unit_cost = models.DecimalField(
        max_digits=14, decimal_places=6, default=Decimal('0'),
        verbose_name=_('Costo unitario'),
    )
    total_cost = models.DecimalField(
        max_digits=18, decimal_places=6, default=Decimal('0'),
        verbose_name=_('Costo total'),
    )
    currency = models.CharField(max_length=3, default='MXN', verbose_name=_('Moneda'))

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Realizado por'),
    )
    notes = models.TextField(blank=True, default='', verbose_name=_('Notas'))
    metadata = models.JSONField(default=dict, blank=True, verbose_name=_('Metadatos'))

    created_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Fecha/Hora'))

    objects = MovementQuerySet.as_manager()

    class Meta:
        verbose_name = _('Movimiento')
        verbose_name_plural = _('Movimientos')
        ordering = ['created_at', 'pk']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name='movement_quantity_non_negative',
            ),
        ]
        indexes = [
            models.Index(fields=['product', 'created_at'], name='movement_product_created_idx'),
            models.Index(fields=['from_location', 'created_at'], name='movement_from_created_idx'),
            models.Index(fields=['to_location', 'created_at'], name='movement_to_created_idx'),
            models.Index(fields=['movement_type', 'created_at'], name='movement_type_created_idx'),
        ]

    def save(self, *args, **kwargs):
        # Immutability check
        if self.pk:
            raise ValueError(
                "Los movimientos son inmutables. "
                "Para corregir, registre un nuevo movimiento en sentido contrario."
            )

        if not self.reason:
            raise ValueError("El motivo es obligatorio")

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Prevent deletion — movements are immutable."""
        raise ValueError(
            "Los movimientos son inmutables. "
            "Para revertir, registre un nuevo movimiento en sentido contrario."
        )

    def __str__(self) -> str:
        return f"{self.movement_id} {self.movement_type} {self.quantity} {self.unit} | {self.reason}"
