"""
Inventory reservations — move quantity between available and reserved.

Reserving never creates or destroys a batch: the quantity moves from
Batch.quantity to Batch.reserved_quantity (oldest batches first) and back
(newest first) on release. Each call logs an AJUSTE movement flagged in
metadata['reservation'] so reconciliation can leave it out of the volume.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from batchledger import ledger
from batchledger.conf import batchledger_settings
from batchledger.exceptions import StockError
from batchledger.models.enums import MovementType, ReservationStatus
from batchledger.models.reservation import Reservation
from batchledger.services.alerts import evaluate_alerts
from batchledger.services.common import (
    StockOperation,
    atomic_operation,
    get_inventory_or_404,
    record_movement,
    require_positive,
    to_base_quantity,
)

logger = logging.getLogger('batchledger')


def _parts(allocation: ledger.Allocation) -> list[dict]:
    return [{'batch_id': batch_id, 'quantity': str(qty)} for batch_id, qty in allocation.parts]


class InventoryReservations:
    """Reservation lifecycle methods."""

    @classmethod
    @atomic_operation
    def reserve_stock(cls, product, location, quantity, unit, user=None,
                      reserved_for='', expires_at=None, notes='') -> StockOperation:
        """
        Set aside available stock.

        Returns:
            StockOperation with the created Reservation in ``reservations``

        Raises:
            StockError('NOT_FOUND'): no inventory at the location
            StockError('INVALID_QUANTITY'): quantity <= 0
            StockError('INSUFFICIENT_STOCK'): available < quantity
        """
        inventory = get_inventory_or_404(product, location)
        base_quantity = to_base_quantity(product, quantity, unit)
        require_positive(base_quantity, requested=quantity)

        allocation = ledger.reserve(inventory.snapshot(), base_quantity)
        inventory.save_snapshot(allocation.snapshot, user=user)

        reservation = Reservation.objects.create(
            inventory=inventory,
            quantity=base_quantity,
            reserved_for=reserved_for or '',
            expires_at=expires_at,
            created_by=user,
            metadata={'batches': _parts(allocation), 'notes': notes or ''},
        )
        movement = record_movement(
            MovementType.AJUSTE,
            product,
            base_quantity,
            f"Reserva para {reserved_for}" if reserved_for else "Reserva de stock",
            from_location=location,
            to_location=location,
            batch_id=allocation.parts[0][0] if len(allocation.parts) == 1 else '',
            user=user,
            notes=notes,
            metadata={
                'reservation': 'reserve',
                'reservation_id': reservation.pk,
                'batches': _parts(allocation),
            },
        )
        alerts = evaluate_alerts(inventory, allocation.snapshot)

        logger.info(
            "inventory.reserve",
            extra={
                "product": product.sku,
                "location": location.code,
                "qty": str(base_quantity),
                "reserved_for": reserved_for,
                "reservation_id": reservation.pk,
            },
        )
        return StockOperation(
            inventory=inventory,
            movements=(movement,),
            alerts=tuple(alerts),
            reservations=(reservation,),
        )

    @classmethod
    @atomic_operation
    def release_reservation(cls, product, location, quantity=None, user=None,
                            unit=None, reservation_id=None) -> StockOperation:
        """
        Return reserved stock to available.

        ``unit`` defaults to the product's base unit. With ``reservation_id``
        only that reservation is released and ``quantity`` defaults to all
        of it. Without it, active reservations are released newest first;
        a reservation only partly covered is split in two rows.

        Raises:
            StockError('NOT_FOUND'): no inventory, or unknown/inactive reservation
            StockError('INVALID_QUANTITY'): quantity <= 0
            StockError('INSUFFICIENT_RESERVED'): more than is reserved
        """
        inventory = get_inventory_or_404(product, location)

        target = None
        if reservation_id is not None:
            target = (
                Reservation.objects.select_for_update()
                .filter(pk=reservation_id, inventory=inventory)
                .active()
                .first()
            )
            if target is None:
                raise StockError('NOT_FOUND', entity='Reservation', reservation_id=reservation_id)

        if quantity is None:
            if target is None:
                raise StockError('INVALID_QUANTITY', requested=quantity)
            base_quantity = target.quantity
        else:
            base_quantity = to_base_quantity(product, quantity, unit or product.base_unit)
        require_positive(base_quantity, requested=quantity)

        if target is not None and base_quantity > target.quantity:
            raise StockError(
                'INSUFFICIENT_RESERVED',
                f"La reserva tiene {target.quantity}, se pidió liberar {base_quantity}",
                reserved=target.quantity,
                requested=base_quantity,
                reservation_id=target.pk,
            )

        allocation = ledger.release(inventory.snapshot(), base_quantity)
        inventory.save_snapshot(allocation.snapshot, user=user)

        if target is not None:
            candidates = [target]
        else:
            candidates = list(
                Reservation.objects.select_for_update()
                .filter(inventory=inventory)
                .active()
                .order_by('-created_at', '-pk')
            )
        resolved = cls._resolve(candidates, base_quantity)

        movement = record_movement(
            MovementType.AJUSTE,
            product,
            base_quantity,
            "Liberación de reserva",
            from_location=location,
            to_location=location,
            batch_id=allocation.parts[0][0] if len(allocation.parts) == 1 else '',
            user=user,
            metadata={
                'reservation': 'release',
                'reservation_ids': [r.pk for r in resolved],
                'batches': _parts(allocation),
            },
        )
        alerts = evaluate_alerts(inventory, allocation.snapshot)

        logger.info(
            "inventory.release",
            extra={
                "product": product.sku,
                "location": location.code,
                "qty": str(base_quantity),
                "reservations": len(resolved),
            },
        )
        return StockOperation(
            inventory=inventory,
            movements=(movement,),
            alerts=tuple(alerts),
            reservations=tuple(resolved),
        )

    @classmethod
    def release_expired_reservations(cls) -> int:
        """
        Release all active reservations whose expires_at has passed.

        Returns:
            Number of reservations released

        Concurrency:
            - Each batch runs under its own transaction.atomic()
            - Uses select_for_update() with SKIP LOCKED
            - A reservation that fails to release is logged and skipped
        """
        total = 0
        skipped = set()
        batch_size = batchledger_settings.EXPIRED_BATCH_SIZE

        while True:
            with transaction.atomic():
                expired = list(
                    Reservation.objects.select_for_update(skip_locked=True)
                    .expired()
                    .exclude(pk__in=skipped)
                    .select_related('inventory__product', 'inventory__location')
                    .order_by('expires_at', 'pk')[:batch_size]
                )
                if not expired:
                    break

                for reservation in expired:
                    inventory = reservation.inventory
                    try:
                        cls.release_reservation(
                            inventory.product,
                            inventory.location,
                            reservation_id=reservation.pk,
                        )
                    except StockError as e:
                        skipped.add(reservation.pk)
                        logger.error(
                            "inventory.reservation.expire_failed",
                            extra={"reservation_id": reservation.pk, "code": e.code},
                        )
                    else:
                        total += 1

        if total:
            logger.info(
                "inventory.reservations.expired_released",
                extra={"released": total},
            )
        return total

    # ══════════════════════════════════════════════════════════════
    # INTERNAL
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _resolve(cls, candidates, quantity: Decimal) -> list[Reservation]:
        """Mark reservations released until ``quantity`` is covered."""
        now = timezone.now()
        remaining = quantity
        resolved = []

        for reservation in candidates:
            if remaining <= 0:
                break

            if reservation.quantity <= remaining:
                remaining -= reservation.quantity
                reservation.status = ReservationStatus.RELEASED
                reservation.resolved_at = now
                reservation.save(update_fields=['status', 'resolved_at'])
                resolved.append(reservation)
                continue

            # Partial: keep the rest active, record the released part
            reservation.quantity -= remaining
            reservation.save(update_fields=['quantity'])
            resolved.append(Reservation.objects.create(
                inventory=reservation.inventory,
                quantity=remaining,
                reserved_for=reservation.reserved_for,
                status=ReservationStatus.RELEASED,
                expires_at=reservation.expires_at,
                created_by=reservation.created_by,
                created_at=reservation.created_at,
                resolved_at=now,
                metadata={**reservation.metadata, 'split_from': reservation.pk},
            ))
            remaining = Decimal('0')

        return resolved
