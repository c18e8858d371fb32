"""
InventoryAlert model — threshold and expiry alerts per product and location.

Alerts are created by the service after every successful mutation and are
only deactivated through an explicit resolve:

    from batchledger import inventory
    inventory.get_active_alerts(product=product, location=almacen)
    inventory.resolve_alert(alert.alert_id, user=request.user, resolution='Pedido enviado')
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from batchledger.models.enums import AlertPriority, AlertType


class InventoryAlertQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)


class InventoryAlert(models.Model):
    """
    A triggered stock condition.

    Re-evaluation never overwrites an existing alert: each trigger inserts a
    new row, so repeated mutations below a threshold leave several active
    alerts of the same kind until someone resolves them.
    """

    alert_id = models.CharField(max_length=40, unique=True, verbose_name=_('Folio'))
    alert_type = models.CharField(
        max_length=20,
        choices=AlertType.choices,
        db_index=True,
        verbose_name=_('Tipo'),
    )
    priority = models.CharField(
        max_length=10,
        choices=AlertPriority.choices,
        verbose_name=_('Prioridad'),
    )

    product = models.ForeignKey(
        'batchledger.Product',
        on_delete=models.CASCADE,
        related_name='alerts',
        verbose_name=_('Producto'),
    )
    location = models.ForeignKey(
        'batchledger.Location',
        on_delete=models.CASCADE,
        related_name='alerts',
        verbose_name=_('Ubicación'),
    )
    batch_id = models.CharField(max_length=50, blank=True, default='', verbose_name=_('Lote'))

    title = models.CharField(max_length=200, verbose_name=_('Título'))
    message = models.TextField(verbose_name=_('Mensaje'))

    threshold = models.DecimalField(
        max_digits=18, decimal_places=6, null=True, blank=True,
        verbose_name=_('Umbral'),
    )
    current_value = models.DecimalField(
        max_digits=18, decimal_places=6, null=True, blank=True,
        verbose_name=_('Valor actual'),
    )
    unit = models.CharField(max_length=20, blank=True, default='', verbose_name=_('Unidad'))
    expiry_date = models.DateTimeField(null=True, blank=True, verbose_name=_('Caducidad'))

    is_active = models.BooleanField(default=True, verbose_name=_('Activa'))
    is_acknowledged = models.BooleanField(default=False, verbose_name=_('Atendida'))
    acknowledged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Atendida por'),
    )
    acknowledged_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Atendida el'))
    resolution_notes = models.TextField(blank=True, default='', verbose_name=_('Resolución'))
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True, verbose_name=_('Creada'))

    objects = InventoryAlertQuerySet.as_manager()

    class Meta:
        verbose_name = _('Alerta de inventario')
        verbose_name_plural = _('Alertas de inventario')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['product', 'location', 'is_active'], name='alert_product_location_idx'),
            models.Index(fields=['alert_type', 'is_active'], name='alert_type_active_idx'),
        ]

    def __str__(self) -> str:
        return f"[{self.priority}] {self.title}"
