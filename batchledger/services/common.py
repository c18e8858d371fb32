"""
Shared helpers for inventory services.

Transaction wrapper, unit normalization, row locking and movement writing.
"""

import functools
import logging
import time
from dataclasses import dataclass
from decimal import Decimal

from django.db import IntegrityError, OperationalError, transaction

from batchledger.conf import batchledger_settings
from batchledger.exceptions import StockError
from batchledger.identifiers import new_movement_id
from batchledger.ledger import BatchLot
from batchledger.models.inventory import Inventory
from batchledger.models.movement import Movement
from batchledger.units import PRECISION, get_unit_converter

logger = logging.getLogger('batchledger')

ZERO = Decimal('0')


@dataclass(frozen=True)
class StockOperation:
    """
    Outcome of a mutating operation.

    Attributes:
        inventory: Inventory row after the change (destination for transfers)
        movements: Movements written
        alerts: Alerts created by the evaluation pass
        consumed: Batch parts taken (SALIDA and TRANSFERENCIA)
        reservations: Reservation rows created or resolved
        source: Source Inventory row (transfers only)
    """

    inventory: Inventory
    movements: tuple = ()
    alerts: tuple = ()
    consumed: tuple[BatchLot, ...] = ()
    reservations: tuple = ()
    source: Inventory | None = None

    @property
    def movement(self) -> Movement | None:
        return self.movements[0] if self.movements else None

    @property
    def total_cost(self) -> Decimal:
        return sum((m.total_cost for m in self.movements), ZERO)


def atomic_operation(func):
    """
    Run ``func`` inside transaction.atomic().

    IntegrityError/OperationalError (deadlock, serialization failure, lock
    timeout) become StockError('TRANSACTION_CONFLICT'). When the call owns
    the outermost transaction it is retried with linear backoff first;
    inside a caller's atomic block it is never retried.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        owns_transaction = not transaction.get_connection().in_atomic_block
        retries = batchledger_settings.TRANSACTION_MAX_RETRIES if owns_transaction else 0
        delay_ms = batchledger_settings.TRANSACTION_RETRY_DELAY_MS
        attempt = 0

        while True:
            attempt += 1
            try:
                with transaction.atomic():
                    return func(*args, **kwargs)
            except (IntegrityError, OperationalError) as e:
                if attempt > retries:
                    logger.error(
                        "inventory.transaction_conflict",
                        extra={
                            "operation": func.__name__,
                            "attempts": attempt,
                            "error": str(e),
                        },
                    )
                    raise StockError(
                        'TRANSACTION_CONFLICT',
                        operation=func.__name__,
                        attempts=attempt,
                        detail=str(e),
                    ) from e
                logger.warning(
                    "inventory.transaction_retry",
                    extra={
                        "operation": func.__name__,
                        "attempt": attempt,
                        "error": str(e),
                    },
                )
                if delay_ms:
                    time.sleep(delay_ms * attempt / 1000)

    return wrapper


def to_base_quantity(product, quantity, unit: str, allow_negative: bool = False) -> Decimal:
    """
    Normalize a human-entered quantity to the product's base unit.

    Raises:
        StockError('CONVERSION_ERROR'): invalid value or no conversion path
    """
    result = get_unit_converter().convert(
        quantity,
        unit,
        product.base_unit,
        product_units=product.units,
        allow_negative=allow_negative,
    )
    if not result.success:
        raise StockError(
            'CONVERSION_ERROR',
            result.error,
            value=quantity,
            from_unit=unit,
            to_unit=product.base_unit,
            reason=result.error_code,
        )
    return result.converted_value


def require_positive(quantity: Decimal, requested=None) -> None:
    if quantity <= 0:
        raise StockError('INVALID_QUANTITY', requested=requested if requested is not None else quantity)


def lock_inventory(product, location) -> Inventory | None:
    """Inventory row for (product, location) under select_for_update, or None."""
    return (
        Inventory.objects
        .select_for_update()
        .select_related('product', 'location')
        .filter(product=product, location=location)
        .first()
    )


def lock_or_create_inventory(product, location) -> Inventory:
    """Locked Inventory row, created on first stock entry."""
    inventory = lock_inventory(product, location)
    if inventory is None:
        Inventory.objects.get_or_create(
            product=product,
            location=location,
            defaults={'unit': product.base_unit},
        )
        inventory = lock_inventory(product, location)
    return inventory


def get_inventory_or_404(product, location) -> Inventory:
    """
    Locked Inventory row that must already exist.

    Raises:
        StockError('NOT_FOUND')
    """
    inventory = lock_inventory(product, location)
    if inventory is None:
        raise inventory_not_found(product, location)
    return inventory


def inventory_not_found(product, location) -> StockError:
    return StockError(
        'NOT_FOUND',
        f"No hay inventario de {product} en {location}",
        entity='Inventory',
        product_id=product.pk,
        location_id=location.pk,
    )


def batch_lines(lots) -> list[dict]:
    """JSON-friendly batch parts for Movement.metadata."""
    return [
        {
            'batch_id': lot.batch_id,
            'quantity': str(lot.quantity),
            'cost_per_unit': str(lot.cost_per_unit),
        }
        for lot in lots
    ]


def record_movement(movement_type, product, quantity: Decimal, reason: str, *,
                    from_location=None, to_location=None, batch_id='',
                    total_cost=ZERO, user=None, notes='', metadata=None) -> Movement:
    """Append a Movement. Unit cost is derived from total_cost / quantity."""
    unit_cost = (total_cost / quantity).quantize(PRECISION) if quantity else ZERO
    return Movement.objects.create(
        movement_id=new_movement_id(),
        movement_type=movement_type,
        product=product,
        from_location=from_location,
        to_location=to_location,
        quantity=quantity,
        unit=product.base_unit,
        batch_id=batch_id or '',
        reason=reason,
        unit_cost=unit_cost,
        total_cost=total_cost,
        currency=batchledger_settings.CURRENCY,
        performed_by=user,
        notes=notes or '',
        metadata=metadata or {},
    )
