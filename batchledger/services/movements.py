"""
Inventory movements — state-changing operations (adjust, transfer, consume).

Every method runs under one transaction: the Inventory row is locked with
select_for_update(), the quantity is normalized to the product's base unit,
batches are changed through the ledger functions, totals are rewritten from
the batch list, the Movement is appended and alerts are evaluated. Any
StockError rolls all of it back.
"""

import logging
from decimal import Decimal

from django.utils import timezone

from batchledger import ledger
from batchledger.exceptions import StockError
from batchledger.identifiers import new_batch_id
from batchledger.models.enums import MovementType
from batchledger.models.inventory import Inventory
from batchledger.services.alerts import evaluate_alerts
from batchledger.services.common import (
    ZERO,
    StockOperation,
    atomic_operation,
    batch_lines,
    inventory_not_found,
    lock_inventory,
    lock_or_create_inventory,
    record_movement,
    require_positive,
    to_base_quantity,
)
from batchledger.units import PRECISION

logger = logging.getLogger('batchledger')


def _single_batch_id(lots) -> str:
    """The batch id when exactly one batch was involved, else ''."""
    return lots[0].batch_id if len(lots) == 1 else ''


class InventoryMovements:
    """State-changing inventory methods."""

    @classmethod
    @atomic_operation
    def adjust_stock(cls, product, location, quantity, unit, reason,
                     user=None, batch_id=None, cost=None, expiry_date=None,
                     notes='', received_at=None) -> StockOperation:
        """
        General stock adjustment.

        Positive quantity (after conversion to base unit) → ENTRADA:
        appends a batch with ``batch_id`` (generated when empty), ``cost``
        per base unit and ``expiry_date``.

        Negative quantity → SALIDA: depletes available batches FIFO.

        Raises:
            StockError('REASON_REQUIRED'): empty reason
            StockError('INVALID_QUANTITY'): zero after conversion
            StockError('CONVERSION_ERROR'): bad value or unknown unit
            StockError('INSUFFICIENT_STOCK'): SALIDA larger than available
            StockError('INVALID_BATCH'): batch_id already held with other cost or dates

        Concurrency:
            - Runs under transaction.atomic(), retried on write conflicts
            - Uses select_for_update() on Inventory
            - Checks availability after the lock
        """
        if not reason:
            raise StockError('REASON_REQUIRED')

        inventory = lock_inventory(product, location)
        base_quantity = to_base_quantity(product, quantity, unit, allow_negative=True)
        if base_quantity == 0:
            raise StockError('INVALID_QUANTITY', requested=quantity)

        if base_quantity > 0:
            if inventory is None:
                inventory = lock_or_create_inventory(product, location)
            return cls._receive(
                inventory, base_quantity, reason, user=user, batch_id=batch_id,
                cost=cost, expiry_date=expiry_date, notes=notes,
                received_at=received_at, entered=(quantity, unit),
            )

        if inventory is None:
            amount = -base_quantity
            raise StockError(
                'INSUFFICIENT_STOCK',
                f"Stock insuficiente. Disponible: 0, Solicitado: {amount}",
                available=ZERO,
                requested=amount,
                shortfall=amount,
                unit=product.base_unit,
            )
        return cls._issue(
            inventory, -base_quantity, reason, user=user, notes=notes,
            entered=(quantity, unit),
        )

    @classmethod
    def consume_stock(cls, product, location, quantity, unit, consumed_for,
                      user=None, notes='') -> StockOperation:
        """
        Consume stock for an order, event or recipe.

        Shortcut for adjust_stock() with the quantity negated and reason
        "Consumo para <consumed_for>".
        """
        if (isinstance(quantity, bool)
                or not isinstance(quantity, (int, float, Decimal))
                or not Decimal(str(quantity)).is_finite()):
            raise StockError(
                'CONVERSION_ERROR',
                f"Valor inválido para conversión: {quantity!r}",
                value=quantity,
                from_unit=unit,
                to_unit=product.base_unit,
                reason='INVALID_VALUE',
            )
        if quantity <= 0:
            raise StockError('INVALID_QUANTITY', requested=quantity)

        return cls.adjust_stock(
            product,
            location,
            -quantity,
            unit,
            f"Consumo para {consumed_for}",
            user=user,
            notes=notes,
        )

    @classmethod
    @atomic_operation
    def transfer_stock(cls, product, from_location, to_location, quantity, unit,
                       user=None, notes='') -> StockOperation:
        """
        Move stock between locations, preserving batch identity.

        Batches leave the source FIFO and arrive at the destination with the
        same batch_id, cost, received date and expiry.

        Raises:
            StockError('INVALID_QUANTITY'): quantity <= 0 or same location
            StockError('NOT_FOUND'): no inventory at the source
            StockError('INSUFFICIENT_STOCK'): source lacks quantity

        Concurrency:
            - Both Inventory rows are locked in primary-key order
        """
        if from_location.pk == to_location.pk:
            raise StockError(
                'INVALID_QUANTITY',
                "Origen y destino deben ser ubicaciones distintas",
                from_location=from_location.code,
                to_location=to_location.code,
            )

        if not Inventory.objects.filter(product=product, location=from_location).exists():
            raise inventory_not_found(product, from_location)
        Inventory.objects.get_or_create(
            product=product,
            location=to_location,
            defaults={'unit': product.base_unit},
        )

        # Lock both rows in a stable order
        locked = {
            inv.location_id: inv
            for inv in Inventory.objects.select_for_update()
            .select_related('product', 'location')
            .filter(product=product, location__in=[from_location, to_location])
            .order_by('pk')
        }
        source = locked[from_location.pk]
        destination = locked[to_location.pk]

        base_quantity = to_base_quantity(product, quantity, unit)
        require_positive(base_quantity, requested=quantity)

        outcome = ledger.consume(source.snapshot(), base_quantity)
        arriving = destination.snapshot()
        for lot in outcome.lots:
            arriving = ledger.add_batch(arriving, lot)

        source.save_snapshot(outcome.snapshot, user=user)
        destination.save_snapshot(arriving, user=user)

        movement = record_movement(
            MovementType.TRANSFERENCIA,
            product,
            base_quantity,
            f"Transferencia {from_location.code} → {to_location.code}",
            from_location=from_location,
            to_location=to_location,
            batch_id=_single_batch_id(outcome.lots),
            total_cost=outcome.total_cost,
            user=user,
            notes=notes,
            metadata={
                'batches': batch_lines(outcome.lots),
                'entered': {'quantity': str(quantity), 'unit': unit},
            },
        )

        alerts = (
            evaluate_alerts(source, outcome.snapshot)
            + evaluate_alerts(destination, arriving)
        )

        logger.info(
            "inventory.transfer",
            extra={
                "product": product.sku,
                "qty": str(base_quantity),
                "from": from_location.code,
                "to": to_location.code,
                "batches": len(outcome.lots),
                "movement_id": movement.movement_id,
            },
        )
        return StockOperation(
            inventory=destination,
            movements=(movement,),
            alerts=tuple(alerts),
            consumed=outcome.lots,
            source=source,
        )

    # ══════════════════════════════════════════════════════════════
    # INTERNAL
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _receive(cls, inventory, quantity: Decimal, reason, user, batch_id,
                 cost, expiry_date, notes, received_at, entered) -> StockOperation:
        product = inventory.product
        cost_per_unit = Decimal(str(cost)) if cost is not None else ZERO
        if cost_per_unit < 0:
            raise StockError('INVALID_BATCH', "El costo no puede ser negativo", cost=cost_per_unit)

        lot = ledger.BatchLot(
            batch_id=batch_id or new_batch_id(),
            quantity=quantity,
            cost_per_unit=cost_per_unit,
            received_at=received_at or timezone.now(),
            expiry_date=expiry_date,
        )
        snapshot = ledger.add_batch(inventory.snapshot(), lot)
        inventory.save_snapshot(snapshot, user=user)

        movement = record_movement(
            MovementType.ENTRADA,
            product,
            quantity,
            reason,
            to_location=inventory.location,
            batch_id=lot.batch_id,
            total_cost=(quantity * cost_per_unit).quantize(PRECISION),
            user=user,
            notes=notes,
            metadata={'entered': {'quantity': str(entered[0]), 'unit': entered[1]}},
        )
        alerts = evaluate_alerts(inventory, snapshot)

        logger.info(
            "inventory.entrada",
            extra={
                "product": product.sku,
                "location": inventory.location.code,
                "qty": str(quantity),
                "batch_id": lot.batch_id,
                "reason": reason,
                "movement_id": movement.movement_id,
            },
        )
        return StockOperation(inventory=inventory, movements=(movement,), alerts=tuple(alerts))

    @classmethod
    def _issue(cls, inventory, quantity: Decimal, reason, user, notes, entered) -> StockOperation:
        product = inventory.product

        # Physical depletion is always FIFO
        outcome = ledger.consume(inventory.snapshot(), quantity)
        inventory.save_snapshot(outcome.snapshot, user=user)

        movement = record_movement(
            MovementType.SALIDA,
            product,
            quantity,
            reason,
            from_location=inventory.location,
            batch_id=_single_batch_id(outcome.lots),
            total_cost=outcome.total_cost,
            user=user,
            notes=notes,
            metadata={
                'batches': batch_lines(outcome.lots),
                'entered': {'quantity': str(entered[0]), 'unit': entered[1]},
            },
        )
        alerts = evaluate_alerts(inventory, outcome.snapshot)

        logger.info(
            "inventory.salida",
            extra={
                "product": product.sku,
                "location": inventory.location.code,
                "qty": str(quantity),
                "cost": str(outcome.total_cost),
                "reason": reason,
                "movement_id": movement.movement_id,
            },
        )
        return StockOperation(
            inventory=inventory,
            movements=(movement,),
            alerts=tuple(alerts),
            consumed=outcome.lots,
        )
