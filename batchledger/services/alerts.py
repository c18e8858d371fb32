"""
Inventory alerts — threshold and expiry evaluation, listing and resolution.

evaluate_alerts() runs inside every mutating operation, after the inventory
and movement are written. Each triggered condition inserts a new
InventoryAlert; notification is scheduled with transaction.on_commit so a
rolled-back mutation never notifies.

Usage:
    from batchledger import inventory

    inventory.get_active_alerts(location=almacen)
    inventory.resolve_alert('ALERT-1760871234567-p0q8z1m4c', user=user)
"""

import functools
import logging
import math
from datetime import datetime, timedelta

from django.db import transaction
from django.db.models import Case, IntegerField, Value, When
from django.utils import timezone

from batchledger.conf import batchledger_settings
from batchledger.exceptions import StockError
from batchledger.identifiers import new_alert_id
from batchledger.ledger import InventorySnapshot
from batchledger.models.alert import InventoryAlert
from batchledger.models.enums import PRIORITY_RANK, AlertPriority, AlertType
from batchledger.notifications import get_alert_dispatcher
from batchledger.protocols.notifications import AlertPayload

logger = logging.getLogger('batchledger')

SECONDS_PER_DAY = 24 * 60 * 60


def evaluate_alerts(inventory, snapshot: InventorySnapshot,
                    now: datetime | None = None) -> list[InventoryAlert]:
    """
    Check stock levels and batch expiry for one product+location.

    Conditions:
    - available <= minimum_stock            → LOW_STOCK (CRITICAL at zero, else HIGH)
    - available <= reorder_point            → REORDER_POINT (MEDIUM)
    - batch expiry <= now                   → EXPIRED_PRODUCT (CRITICAL)
    - now < expiry <= now + warning window  → EXPIRY_WARNING
      (HIGH when EXPIRY_CRITICAL_DAYS or fewer remain, else MEDIUM)

    Levels set to zero are not checked.

    Returns:
        Created alerts, in the order above
    """
    now = now or timezone.now()
    product = inventory.product
    location = inventory.location
    totals = snapshot.totals
    available = totals.available
    pending = []

    if product.minimum_stock and available <= product.minimum_stock:
        pending.append(InventoryAlert(
            alert_type=AlertType.LOW_STOCK,
            priority=AlertPriority.CRITICAL if available == 0 else AlertPriority.HIGH,
            title=f"Stock bajo: {product.name}",
            message=(
                f"El stock actual ({available}) está por debajo del mínimo "
                f"({product.minimum_stock})"
            ),
            threshold=product.minimum_stock,
            current_value=available,
            unit=totals.unit,
        ))

    if product.reorder_point and available <= product.reorder_point:
        pending.append(InventoryAlert(
            alert_type=AlertType.REORDER_POINT,
            priority=AlertPriority.MEDIUM,
            title=f"Punto de reorden alcanzado: {product.name}",
            message=f"Es momento de realizar un pedido. Stock actual: {available}",
            threshold=product.reorder_point,
            current_value=available,
            unit=totals.unit,
        ))

    warning_limit = now + timedelta(days=batchledger_settings.EXPIRY_WARNING_DAYS)
    for lot in snapshot.batches:
        if lot.expiry_date is None:
            continue

        if lot.expiry_date <= now:
            pending.append(InventoryAlert(
                alert_type=AlertType.EXPIRED_PRODUCT,
                priority=AlertPriority.CRITICAL,
                batch_id=lot.batch_id,
                title=f"Producto caducado: {product.name}",
                message=f"El lote {lot.batch_id} caducó el {lot.expiry_date:%d/%m/%Y}",
                current_value=lot.quantity + lot.reserved_quantity,
                unit=totals.unit,
                expiry_date=lot.expiry_date,
            ))
        elif lot.expiry_date <= warning_limit:
            days = days_until(lot.expiry_date, now)
            pending.append(InventoryAlert(
                alert_type=AlertType.EXPIRY_WARNING,
                priority=(
                    AlertPriority.HIGH
                    if days <= batchledger_settings.EXPIRY_CRITICAL_DAYS
                    else AlertPriority.MEDIUM
                ),
                batch_id=lot.batch_id,
                title=f"Producto próximo a caducar: {product.name}",
                message=f"El lote {lot.batch_id} caduca en {days} días",
                current_value=lot.quantity + lot.reserved_quantity,
                unit=totals.unit,
                expiry_date=lot.expiry_date,
                metadata={'days_until_expiry': days},
            ))

    created = []
    for alert in pending:
        alert.alert_id = new_alert_id()
        alert.product = product
        alert.location = location
        alert.save()
        created.append(alert)

        logger.warning(
            "inventory.alert.created",
            extra={
                "alert_id": alert.alert_id,
                "alert_type": alert.alert_type,
                "priority": alert.priority,
                "product": product.sku,
                "location": location.code,
                "current_value": str(alert.current_value),
            },
        )
        transaction.on_commit(functools.partial(_dispatch, build_payload(alert)))

    return created


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days until ``moment``, rounded up."""
    return math.ceil((moment - now).total_seconds() / SECONDS_PER_DAY)


def build_payload(alert: InventoryAlert) -> AlertPayload:
    return AlertPayload(
        user_id=batchledger_settings.ALERT_RECIPIENT,
        alert_type=alert.alert_type,
        priority=alert.priority,
        product_id=alert.product_id,
        product_name=alert.product.name,
        location_code=alert.location.code,
        alert_id=alert.alert_id,
        threshold=alert.threshold,
        current_value=alert.current_value,
        unit=alert.unit or 'unidad',
        expiry_date=alert.expiry_date,
        batch_id=alert.batch_id or None,
        days_until_expiry=alert.metadata.get('days_until_expiry'),
    )


def _dispatch(payload: AlertPayload) -> None:
    get_alert_dispatcher().submit(payload)


def _priority_rank():
    return Case(
        *[When(priority=priority, then=Value(rank)) for priority, rank in PRIORITY_RANK.items()],
        default=Value(0),
        output_field=IntegerField(),
    )


class InventoryAlerts:
    """Alert listing and resolution methods."""

    @classmethod
    def get_active_alerts(cls, product=None, location=None, alert_type=None):
        """
        Active alerts, highest priority first, then newest first.

        Args:
            product: Filter by product (None = all)
            location: Filter by location (None = all)
            alert_type: Filter by AlertType (None = all)
        """
        qs = InventoryAlert.objects.active().select_related('product', 'location')
        if product is not None:
            qs = qs.filter(product=product)
        if location is not None:
            qs = qs.filter(location=location)
        if alert_type:
            qs = qs.filter(alert_type=alert_type)
        return qs.annotate(priority_rank=_priority_rank()).order_by('-priority_rank', '-created_at', '-pk')

    @classmethod
    def resolve_alert(cls, alert_id: str, user=None, resolution: str = '') -> InventoryAlert:
        """
        Mark an alert as resolved (inactive and acknowledged).

        Resolving an already resolved alert returns it unchanged.

        Raises:
            StockError('NOT_FOUND'): Unknown alert_id
        """
        with transaction.atomic():
            try:
                alert = InventoryAlert.objects.select_for_update().get(alert_id=alert_id)
            except InventoryAlert.DoesNotExist:
                raise StockError('NOT_FOUND', entity='InventoryAlert', alert_id=alert_id) from None

            if not alert.is_active:
                return alert

            alert.is_active = False
            alert.is_acknowledged = True
            alert.acknowledged_by = user
            alert.acknowledged_at = timezone.now()
            alert.resolution_notes = resolution or ''
            alert.save(update_fields=[
                'is_active', 'is_acknowledged', 'acknowledged_by',
                'acknowledged_at', 'resolution_notes',
            ])
            logger.info(
                "inventory.alert.resolved",
                extra={"alert_id": alert_id, "resolution": resolution},
            )
            return alert


def count_active(location=None) -> int:
    qs = InventoryAlert.objects.active()
    if location is not None:
        qs = qs.filter(location=location)
    return qs.count()