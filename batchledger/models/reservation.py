"""
Reservation model — quantity set aside from available stock.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from batchledger.models.enums import ReservationStatus


class ReservationQuerySet(models.QuerySet):

    def active(self):
        return self.filter(status=ReservationStatus.ACTIVE)

    def expired(self, now=None):
        """Active reservations whose expires_at has passed."""
        now = now or timezone.now()
        return self.active().filter(expires_at__isnull=False, expires_at__lte=now)


class Reservation(models.Model):
    """
    Quantity moved from ``available`` to ``reserved`` for an order or event.

    LIFECYCLE:

        ACTIVE ──release_reservation()──► RELEASED
           │
           └──release_expired_reservations() (expires_at passed)──► RELEASED

    A partial release splits the record: the released part becomes a new
    RELEASED row and the ACTIVE row keeps the remainder.

    The batch-level split lives in Batch.reserved_quantity; this row is the
    lifecycle record (who, for what, until when).
    """

    inventory = models.ForeignKey(
        'batchledger.Inventory',
        on_delete=models.PROTECT,
        related_name='reservations',
        verbose_name=_('Inventario'),
    )
    quantity = models.DecimalField(
        max_digits=18,
        decimal_places=6,
        verbose_name=_('Cantidad'),
    )
    reserved_for = models.CharField(
        max_length=200,
        blank=True,
        default='',
        verbose_name=_('Reservado para'),
        help_text=_('Pedido, evento o cliente'),
    )
    status = models.CharField(
        max_length=20,
        choices=ReservationStatus.choices,
        default=ReservationStatus.ACTIVE,
        db_index=True,
        verbose_name=_('Estado'),
    )
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Expira'),
        help_text=_('Si sigue activa en esta fecha, se libera automáticamente'),
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Creada por'),
    )
    created_at = models.DateTimeField(default=timezone.now)
    resolved_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Resuelta'),
    )
    metadata = models.JSONField(default=dict, blank=True)

    objects = ReservationQuerySet.as_manager()

    class Meta:
        verbose_name = _('Reserva')
        verbose_name_plural = _('Reservas')
        indexes = [
            models.Index(fields=['status', 'expires_at'], name='reservation_status_expiry_idx'),
            models.Index(fields=['inventory', 'status'], name='reservation_inventory_idx'),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return timezone.now() > self.expires_at

    def __str__(self) -> str:
        target = f" → {self.reserved_for}" if self.reserved_for else ""
        return f"{self.quantity} [{self.status}]{target}"
