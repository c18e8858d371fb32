"""
Ledger functions — pure batch-list mutations.

Each function takes an immutable InventorySnapshot and returns a new one;
nothing here touches the database. The service loads a snapshot from the
locked Inventory row, applies one of these, and writes the result back.
Totals are always derived from the batch list, never carried separately.

    snapshot = InventorySnapshot(unit='kg', batches=(...))
    outcome = consume(snapshot, Decimal('7'))
    outcome.snapshot.totals.available
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from batchledger import costing
from batchledger.exceptions import StockError

ZERO = Decimal('0')

AVAILABLE = 'available'
QUARANTINE = 'quarantine'


@dataclass(frozen=True)
class BatchLot:
    """Value copy of a batch. ``quantity`` is the unreserved available part."""

    batch_id: str
    quantity: Decimal
    cost_per_unit: Decimal
    received_at: datetime
    expiry_date: datetime | None = None
    status: str = AVAILABLE
    reserved_quantity: Decimal = ZERO
    supplier: str = ''

    @property
    def is_empty(self) -> bool:
        return self.quantity == 0 and self.reserved_quantity == 0


@dataclass(frozen=True)
class Totals:
    available: Decimal
    reserved: Decimal
    quarantine: Decimal
    unit: str


@dataclass(frozen=True)
class InventorySnapshot:
    unit: str
    batches: tuple[BatchLot, ...] = ()

    @property
    def totals(self) -> Totals:
        return recompute_totals(self.batches, self.unit)

    def batch(self, batch_id: str) -> BatchLot | None:
        for lot in self.batches:
            if lot.batch_id == batch_id:
                return lot
        return None


@dataclass(frozen=True)
class Consumption:
    """Outcome of a depletion: the new snapshot and the parts taken."""

    snapshot: InventorySnapshot
    lots: tuple[BatchLot, ...]
    total_cost: Decimal

    @property
    def quantity(self) -> Decimal:
        return sum((lot.quantity for lot in self.lots), ZERO)


@dataclass(frozen=True)
class Allocation:
    """Reserved (or released) quantity per batch."""

    snapshot: InventorySnapshot
    parts: tuple[tuple[str, Decimal], ...]


def recompute_totals(batches, unit: str) -> Totals:
    """Totals derived from the batch list."""
    available = reserved = quarantine = ZERO
    for lot in batches:
        if lot.status == AVAILABLE:
            available += lot.quantity
        elif lot.status == QUARANTINE:
            quarantine += lot.quantity
        reserved += lot.reserved_quantity
    return Totals(available=available, reserved=reserved, quarantine=quarantine, unit=unit)


def add_batch(snapshot: InventorySnapshot, lot: BatchLot) -> InventorySnapshot:
    """
    Append a received batch.

    A lot arriving with an id already present is merged into it only when
    cost, received date and expiry date all match (stock transferred back
    to a location it left). Any other reuse of the id is rejected.

    Raises:
        StockError('INVALID_QUANTITY'): lot quantity <= 0
        StockError('INVALID_BATCH'): same id with a different cost, received
            date or expiry date
    """
    if lot.quantity <= 0:
        raise StockError('INVALID_QUANTITY', requested=lot.quantity)

    existing = snapshot.batch(lot.batch_id)
    if existing is None:
        return replace(snapshot, batches=snapshot.batches + (lot,))

    if existing.cost_per_unit != lot.cost_per_unit:
        raise StockError(
            'INVALID_BATCH',
            f"El lote {lot.batch_id} ya existe con otro costo",
            batch_id=lot.batch_id,
            existing_cost=existing.cost_per_unit,
            cost=lot.cost_per_unit,
        )
    if (existing.received_at, existing.expiry_date) != (lot.received_at, lot.expiry_date):
        raise StockError(
            'INVALID_BATCH',
            f"El lote {lot.batch_id} ya existe con otra fecha de recepción o caducidad",
            batch_id=lot.batch_id,
            existing_expiry=existing.expiry_date,
            expiry_date=lot.expiry_date,
        )
    merged = replace(existing, quantity=existing.quantity + lot.quantity)
    return _replace_lots(snapshot, {merged.batch_id: merged})


def consume(snapshot: InventorySnapshot, quantity: Decimal,
            method: str = costing.FIFO) -> Consumption:
    """
    Deplete ``quantity`` from available batches in ``method`` order.

    Batches drained to zero (with nothing reserved) are removed.

    Raises:
        StockError('INSUFFICIENT_STOCK'): available < quantity; the snapshot
            passed in is left untouched.
    """
    _require_positive(quantity)
    available = snapshot.totals.available
    if available < quantity:
        raise StockError(
            'INSUFFICIENT_STOCK',
            f"Stock insuficiente. Disponible: {available}, Solicitado: {quantity}",
            available=available,
            requested=quantity,
            shortfall=quantity - available,
            unit=snapshot.unit,
        )

    plan = costing.calculate_cost_by_method(snapshot.batches, quantity, method)
    updated = {}
    taken = []
    for line in plan.batches_used:
        lot = snapshot.batch(line.batch_id)
        updated[lot.batch_id] = replace(lot, quantity=lot.quantity - line.quantity)
        taken.append(replace(lot, quantity=line.quantity, reserved_quantity=ZERO))

    return Consumption(
        snapshot=_replace_lots(snapshot, updated),
        lots=tuple(taken),
        total_cost=plan.total_cost,
    )


def reserve(snapshot: InventorySnapshot, quantity: Decimal) -> Allocation:
    """
    Move ``quantity`` from available to reserved, oldest batches first.

    Raises:
        StockError('INSUFFICIENT_STOCK'): available < quantity
    """
    _require_positive(quantity)
    available = snapshot.totals.available
    if available < quantity:
        raise StockError(
            'INSUFFICIENT_STOCK',
            f"Stock insuficiente para reservar. Disponible: {available}, Solicitado: {quantity}",
            available=available,
            requested=quantity,
            shortfall=quantity - available,
            unit=snapshot.unit,
        )

    remaining = quantity
    updated = {}
    parts = []
    for lot in costing.sort_batches(snapshot.batches, costing.FIFO):
        if remaining <= 0:
            break
        moved = min(lot.quantity, remaining)
        updated[lot.batch_id] = replace(
            lot,
            quantity=lot.quantity - moved,
            reserved_quantity=lot.reserved_quantity + moved,
        )
        parts.append((lot.batch_id, moved))
        remaining -= moved

    return Allocation(snapshot=_replace_lots(snapshot, updated), parts=tuple(parts))


def release(snapshot: InventorySnapshot, quantity: Decimal) -> Allocation:
    """
    Move ``quantity`` from reserved back to available, newest batches first.

    Raises:
        StockError('INSUFFICIENT_RESERVED'): reserved < quantity
    """
    _require_positive(quantity)
    reserved = snapshot.totals.reserved
    if reserved < quantity:
        raise StockError(
            'INSUFFICIENT_RESERVED',
            f"Reserva insuficiente. Reservado: {reserved}, Solicitado: {quantity}",
            reserved=reserved,
            requested=quantity,
            unit=snapshot.unit,
        )

    holders = sorted(
        (lot for lot in snapshot.batches if lot.reserved_quantity > 0),
        key=lambda lot: lot.received_at,
        reverse=True,
    )
    remaining = quantity
    updated = {}
    parts = []
    for lot in holders:
        if remaining <= 0:
            break
        moved = min(lot.reserved_quantity, remaining)
        updated[lot.batch_id] = replace(
            lot,
            quantity=lot.quantity + moved,
            reserved_quantity=lot.reserved_quantity - moved,
        )
        parts.append((lot.batch_id, moved))
        remaining -= moved

    return Allocation(snapshot=_replace_lots(snapshot, updated), parts=tuple(parts))


def _replace_lots(snapshot: InventorySnapshot, updated: dict[str, BatchLot]) -> InventorySnapshot:
    batches = tuple(
        updated.get(lot.batch_id, lot)
        for lot in snapshot.batches
    )
    return replace(snapshot, batches=tuple(lot for lot in batches if not lot.is_empty))


def _require_positive(quantity: Decimal) -> None:
    if quantity is None or quantity <= 0:
        raise StockError('INVALID_QUANTITY', requested=quantity)
