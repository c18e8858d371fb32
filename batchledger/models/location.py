"""
Location model — Where stock is kept.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Location(models.Model):
    """
    A place that holds stock: warehouse, kitchen, bar, event venue.

    Locations are stable entities, created during system setup.

    Examples:
        Location.objects.create(code='almacen', name='Almacén Central')
        Location.objects.create(code='cocina', name='Cocina')
    """

    code = models.SlugField(
        unique=True,
        max_length=50,
        verbose_name=_('Código'),
        help_text=_('Identificador único (ej: almacen, cocina)'),
    )
    name = models.CharField(
        max_length=100,
        verbose_name=_('Nombre'),
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name=_('Activa'),
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        verbose_name=_('Metadatos'),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Ubicación')
        verbose_name_plural = _('Ubicaciones')
        ordering = ['code']

    def __str__(self) -> str:
        return self.name
