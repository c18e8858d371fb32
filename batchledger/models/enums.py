"""
Enums for batchledger models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class BatchStatus(models.TextChoices):
    """
    Batch status.

    Only AVAILABLE batches count toward totals.available and can be consumed.
    DEPLETED is never stored: a drained batch is removed and its Movement
    remains as the record.
    """
    AVAILABLE = 'available', _('Disponible')
    QUARANTINE = 'quarantine', _('Cuarentena')
    DEPLETED = 'depleted', _('Agotado')


class MovementType(models.TextChoices):
    """Kind of inventory change."""
    ENTRADA = 'ENTRADA', _('Entrada')              # Stock received
    SALIDA = 'SALIDA', _('Salida')                 # Stock consumed/removed
    TRANSFERENCIA = 'TRANSFERENCIA', _('Transferencia')  # Between locations
    AJUSTE = 'AJUSTE', _('Ajuste')                 # Reservation bookkeeping


class ReservationStatus(models.TextChoices):
    """Reservation lifecycle status."""
    ACTIVE = 'active', _('Activa')
    RELEASED = 'released', _('Liberada')      # Cancelled, expired or partially returned


class AlertType(models.TextChoices):
    LOW_STOCK = 'LOW_STOCK', _('Stock bajo')
    REORDER_POINT = 'REORDER_POINT', _('Punto de reorden')
    EXPIRY_WARNING = 'EXPIRY_WARNING', _('Próximo a caducar')
    EXPIRED_PRODUCT = 'EXPIRED_PRODUCT', _('Producto caducado')


class AlertPriority(models.TextChoices):
    LOW = 'LOW', _('Baja')
    MEDIUM = 'MEDIUM', _('Media')
    HIGH = 'HIGH', _('Alta')
    CRITICAL = 'CRITICAL', _('Crítica')


# Highest first, for ordering active alerts
PRIORITY_RANK = {
    AlertPriority.CRITICAL: 4,
    AlertPriority.HIGH: 3,
    AlertPriority.MEDIUM: 2,
    AlertPriority.LOW: 1,
}
