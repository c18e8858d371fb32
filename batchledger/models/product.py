"""
Product model — catalog reference with its unit graph and stock levels.
"""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _

from batchledger.units import AlternativeUnit as UnitAlternative
from batchledger.units import ProductUnits, Unit


class Product(models.Model):
    """
    A stockable product.

    Quantities are always stored in ``base_unit``. Alternative units
    (AlternativeUnit rows) say how many base units one of them holds.

    Stock levels:
        minimum_stock: safety level; at or below it a LOW_STOCK alert fires
        reorder_point: replenishment trigger; at or below it REORDER_POINT fires
    """

    sku = models.CharField(
        max_length=50,
        unique=True,
        verbose_name=_('SKU'),
    )
    name = models.CharField(
        max_length=200,
        verbose_name=_('Nombre'),
    )
    barcode = models.CharField(
        max_length=64,
        blank=True,
        default='',
        db_index=True,
        verbose_name=_('Código de barras'),
    )
    category = models.CharField(
        max_length=100,
        blank=True,
        default='',
        db_index=True,
        verbose_name=_('Categoría'),
    )

    base_unit = models.CharField(
        max_length=20,
        verbose_name=_('Unidad base'),
        help_text=_('Código de la unidad en que se guarda el stock (ej: kg, l, unit)'),
    )
    base_unit_name = models.CharField(
        max_length=50,
        blank=True,
        default='',
        verbose_name=_('Nombre de la unidad base'),
    )

    minimum_stock = models.DecimalField(
        max_digits=18,
        decimal_places=6,
        default=Decimal('0'),
        verbose_name=_('Stock mínimo'),
    )
    reorder_point = models.DecimalField(
        max_digits=18,
        decimal_places=6,
        default=Decimal('0'),
        verbose_name=_('Punto de reorden'),
    )

    is_active = models.BooleanField(default=True, verbose_name=_('Activo'))
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Producto')
        verbose_name_plural = _('Productos')
        ordering = ['name']

    @property
    def units(self) -> ProductUnits:
        """Unit graph used by the UnitConverter."""
        return ProductUnits(
            base=Unit(self.base_unit, self.base_unit_name),
            alternatives=tuple(
                UnitAlternative(alt.code, alt.conversion_factor, alt.name)
                for alt in self.alternative_units.order_by('code')
            ),
        )

    def __str__(self) -> str:
        return f"{self.name} ({self.sku})"


class AlternativeUnit(models.Model):
    """Alternative unit: ``conversion_factor`` base units make one of it."""

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name='alternative_units',
        verbose_name=_('Producto'),
    )
    code = models.CharField(max_length=20, verbose_name=_('Código'))
    name = models.CharField(max_length=50, blank=True, default='', verbose_name=_('Nombre'))
    conversion_factor = models.DecimalField(
        max_digits=18,
        decimal_places=6,
        verbose_name=_('Factor de conversión'),
        help_text=_('Unidades base por cada unidad alternativa (ej: caja = 12)'),
    )

    class Meta:
        verbose_name = _('Unidad alternativa')
        verbose_name_plural = _('Unidades alternativas')
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'code'],
                name='unique_alternative_unit_per_product',
            ),
            models.CheckConstraint(
                condition=models.Q(conversion_factor__gt=0),
                name='alternative_unit_factor_positive',
            ),
        ]

    def __str__(self) -> str:
        return f"1 {self.code} = {self.conversion_factor} {self.product.base_unit}"
