"""
Tests for the inventory service API.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from batchledger import StockError, inventory
from batchledger.ledger import recompute_totals
from batchledger.models import (
    AlertPriority,
    AlertType,
    Batch,
    Inventory,
    InventoryAlert,
    Movement,
    MovementType,
    Reservation,
    ReservationStatus,
)


pytestmark = pytest.mark.django_db


def receive(product, location, quantity, cost, batch_id=None, received_at=None, **kwargs):
    """Stock entry in the product's base unit."""
    return inventory.adjust_stock(
        product, location, Decimal(quantity), product.base_unit, 'Compra',
        cost=Decimal(cost), batch_id=batch_id, received_at=received_at, **kwargs
    )


def batch_rows(product, location):
    return {
        b.batch_id: b.quantity
        for b in Batch.objects.filter(inventory__product=product, inventory__location=location)
    }


@pytest.fixture
def stocked(harina, almacen, base_time):
    """harina @ almacen: B1 5 kg @ 10 (day 1), B2 5 kg @ 12 (day 2)."""
    receive(harina, almacen, '5', '10', 'B1', base_time)
    receive(harina, almacen, '5', '12', 'B2', base_time + timedelta(days=1))
    return Inventory.objects.get(product=harina, location=almacen)


class TestAdjustStockEntrada:
    """Positive adjustments append a batch."""

    def test_first_entry_creates_inventory(self, harina, almacen, user):
        op = inventory.adjust_stock(
            harina, almacen, Decimal('2'), 'kg', 'Compra OC-118',
            user=user, batch_id='LOT-1', cost=Decimal('18'),
        )

        assert op.inventory.available == Decimal('2')
        assert op.inventory.unit == 'kg'
        assert op.inventory.last_updated_by == user
        assert batch_rows(harina, almacen) == {'LOT-1': Decimal('2')}

        movement = op.movement
        assert movement.movement_type == MovementType.ENTRADA
        assert movement.to_location == almacen
        assert movement.from_location is None
        assert movement.quantity == Decimal('2')
        assert movement.unit == 'kg'
        assert movement.batch_id == 'LOT-1'
        assert movement.unit_cost == Decimal('18')
        assert movement.total_cost == Decimal('36')
        assert movement.performed_by == user
        assert movement.movement_id.startswith('MOV-')

    def test_entry_is_converted_to_base_unit(self, harina, almacen):
        op = inventory.adjust_stock(harina, almacen, 500, 'g', 'Compra')

        assert op.inventory.available == Decimal('0.5')
        assert op.movement.metadata['entered'] == {'quantity': '500', 'unit': 'g'}

    def test_alternative_unit_entry(self, huevo, almacen):
        op = inventory.adjust_stock(huevo, almacen, 2, 'dozen', 'Compra', cost=Decimal('3'))

        assert op.inventory.available == Decimal('24')
        assert op.movement.total_cost == Decimal('72')

    def test_generated_batch_id(self, harina, almacen):
        op = inventory.adjust_stock(harina, almacen, 1, 'kg', 'Compra')
        batch_id = op.movement.batch_id

        assert len(batch_id) == 12
        assert batch_id == batch_id.upper()

    def test_each_entry_is_a_new_batch(self, stocked):
        assert stocked.batches.count() == 2
        assert stocked.available == Decimal('10')

    def test_reused_batch_id_keeps_its_own_expiry(self, harina, almacen):
        """A second entry under an existing id is refused, not folded in."""
        now = timezone.now()
        receive(harina, almacen, '10', '10', 'L1', expiry_date=now + timedelta(days=60))

        with pytest.raises(StockError) as exc:
            receive(harina, almacen, '4', '10', 'L1', expiry_date=now + timedelta(days=2))

        assert exc.value.code == 'INVALID_BATCH'
        batch = Batch.objects.get(batch_id='L1')
        assert batch.quantity == Decimal('10')
        assert batch.expiry_date == now + timedelta(days=60)
        assert Movement.objects.count() == 1

    def test_negative_cost_rejected(self, harina, almacen):
        with pytest.raises(StockError) as exc:
            inventory.adjust_stock(harina, almacen, 1, 'kg', 'Compra', cost=Decimal('-1'))

        assert exc.value.code == 'INVALID_BATCH'
        assert not Inventory.objects.exists()


class TestAdjustStockSalida:
    """Negative adjustments deplete batches FIFO."""

    def test_fifo_depletion(self, harina, almacen, stocked):
        op = inventory.adjust_stock(harina, almacen, Decimal('-7'), 'kg', 'Merma')

        assert op.inventory.available == Decimal('3')
        assert batch_rows(harina, almacen) == {'B2': Decimal('3')}
        assert op.movement.movement_type == MovementType.SALIDA
        assert op.movement.from_location == almacen
        assert op.movement.quantity == Decimal('7')
        assert op.movement.total_cost == Decimal('74')
        assert op.movement.batch_id == ''
        assert [lot.batch_id for lot in op.consumed] == ['B1', 'B2']

    def test_insufficient_stock_rolls_back(self, harina, almacen, stocked):
        before_batches = batch_rows(harina, almacen)
        before_moves = list(Movement.objects.values_list('movement_id', flat=True))

        with pytest.raises(StockError) as exc:
            inventory.adjust_stock(harina, almacen, Decimal('-12'), 'kg', 'Merma')

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        assert exc.value.available == Decimal('10')
        assert exc.value.requested == Decimal('12')
        assert exc.value.shortfall == Decimal('2')

        stocked.refresh_from_db()
        assert stocked.available == Decimal('10')
        assert batch_rows(harina, almacen) == before_batches
        assert list(Movement.objects.values_list('movement_id', flat=True)) == before_moves

    def test_salida_without_inventory(self, harina, almacen):
        with pytest.raises(StockError) as exc:
            inventory.adjust_stock(harina, almacen, -1, 'kg', 'Merma')

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        assert exc.value.available == Decimal('0')
        assert not Inventory.objects.exists()


class TestAdjustStockValidation:
    """Bad input is rejected before anything is written."""

    def test_reason_required(self, harina, almacen):
        with pytest.raises(StockError) as exc:
            inventory.adjust_stock(harina, almacen, 1, 'kg', '')
        assert exc.value.code == 'REASON_REQUIRED'

    def test_zero_quantity(self, harina, almacen):
        with pytest.raises(StockError) as exc:
            inventory.adjust_stock(harina, almacen, 0, 'kg', 'Ajuste')
        assert exc.value.code == 'INVALID_QUANTITY'

    def test_unknown_unit(self, harina, almacen):
        with pytest.raises(StockError) as exc:
            inventory.adjust_stock(harina, almacen, 1, 'gal', 'Compra')

        assert exc.value.code == 'CONVERSION_ERROR'
        assert exc.value.data['from_unit'] == 'gal'
        assert exc.value.data['to_unit'] == 'kg'
        assert exc.value.data['reason'] == 'NO_CONVERSION_PATH'

    @pytest.mark.parametrize('quantity', [1e22, Decimal('1e22')])
    def test_quantity_too_large(self, harina, almacen, quantity):
        with pytest.raises(StockError) as exc:
            inventory.adjust_stock(harina, almacen, quantity, 'kg', 'Compra')

        assert exc.value.code == 'CONVERSION_ERROR'
        assert exc.value.data['reason'] == 'INVALID_VALUE'
        assert not Inventory.objects.exists()

    def test_error_as_dict(self, harina, almacen):
        with pytest.raises(StockError) as exc:
            inventory.adjust_stock(harina, almacen, -3, 'kg', 'Merma')

        payload = exc.value.as_dict()
        assert payload['success'] is False
        assert payload['error']['code'] == 'INSUFFICIENT_STOCK'
        assert Decimal(payload['error']['data']['requested']) == Decimal('3')


class TestConsumeStock:
    """consume_stock() is a negated adjust_stock()."""

    def test_consume(self, harina, almacen, stocked, user):
        op = inventory.consume_stock(harina, almacen, 1500, 'g', 'Evento #12', user=user)

        assert op.inventory.available == Decimal('8.5')
        assert op.movement.reason == 'Consumo para Evento #12'
        assert op.movement.movement_type == MovementType.SALIDA
        assert op.movement.total_cost == Decimal('15')

    @pytest.mark.parametrize('quantity', [0, -2])
    def test_non_positive(self, harina, almacen, stocked, quantity):
        with pytest.raises(StockError) as exc:
            inventory.consume_stock(harina, almacen, quantity, 'kg', 'Evento')
        assert exc.value.code == 'INVALID_QUANTITY'

    @pytest.mark.parametrize('quantity', ['2', float('nan'), None])
    def test_invalid_value(self, harina, almacen, stocked, quantity):
        with pytest.raises(StockError) as exc:
            inventory.consume_stock(harina, almacen, quantity, 'kg', 'Evento')
        assert exc.value.code == 'CONVERSION_ERROR'

    def test_cannot_consume_reserved(self, harina, almacen, stocked):
        inventory.reserve_stock(harina, almacen, 8, 'kg')

        with pytest.raises(StockError) as exc:
            inventory.consume_stock(harina, almacen, 3, 'kg', 'Evento')
        assert exc.value.available == Decimal('2')


class TestTransferStock:
    """Transfers move batches with their identity and cost."""

    def test_preserves_batch_identity_and_cost(self, harina, almacen, cocina, base_time):
        receive(harina, almacen, '8', '10', 'LOT-A', base_time,
                expiry_date=base_time + timedelta(days=30))

        op = inventory.transfer_stock(harina, almacen, cocina, 5, 'kg')

        arrived = Batch.objects.get(inventory__location=cocina)
        assert arrived.batch_id == 'LOT-A'
        assert arrived.quantity == Decimal('5')
        assert arrived.cost_per_unit == Decimal('10')
        assert arrived.received_at == base_time
        assert arrived.expiry_date == base_time + timedelta(days=30)

        assert op.inventory.location == cocina
        assert op.inventory.available == Decimal('5')
        assert op.source.available == Decimal('3')

        movement = op.movement
        assert movement.movement_type == MovementType.TRANSFERENCIA
        assert movement.from_location == almacen
        assert movement.to_location == cocina
        assert movement.batch_id == 'LOT-A'
        assert movement.total_cost == Decimal('50')

    def test_spans_batches_fifo(self, harina, almacen, cocina, stocked):
        inventory.transfer_stock(harina, almacen, cocina, 7, 'kg')

        assert batch_rows(harina, almacen) == {'B2': Decimal('3')}
        arrived = {b.batch_id: (b.quantity, b.cost_per_unit)
                   for b in Batch.objects.filter(inventory__location=cocina)}
        assert arrived == {
            'B1': (Decimal('5'), Decimal('10')),
            'B2': (Decimal('2'), Decimal('12')),
        }

    def test_transfer_back_merges_batch(self, harina, almacen, cocina, base_time):
        receive(harina, almacen, '10', '10', 'LOT-A', base_time)
        inventory.transfer_stock(harina, almacen, cocina, 4, 'kg')
        inventory.transfer_stock(harina, cocina, almacen, 1, 'kg')

        assert batch_rows(harina, almacen) == {'LOT-A': Decimal('7')}
        assert batch_rows(harina, cocina) == {'LOT-A': Decimal('3')}

    def test_same_location(self, harina, almacen, stocked):
        with pytest.raises(StockError) as exc:
            inventory.transfer_stock(harina, almacen, almacen, 1, 'kg')
        assert exc.value.code == 'INVALID_QUANTITY'

    def test_missing_source(self, harina, almacen, cocina):
        with pytest.raises(StockError) as exc:
            inventory.transfer_stock(harina, cocina, almacen, 1, 'kg')
        assert exc.value.code == 'NOT_FOUND'

    def test_insufficient_rolls_back_destination(self, harina, almacen, cocina, stocked):
        with pytest.raises(StockError) as exc:
            inventory.transfer_stock(harina, almacen, cocina, 11, 'kg')

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        assert not Inventory.objects.filter(location=cocina).exists()
        assert batch_rows(harina, almacen) == {'B1': Decimal('5'), 'B2': Decimal('5')}


class TestReservations:
    """reserve_stock / release_reservation / release_expired_reservations."""

    def test_reserve(self, harina, almacen, stocked, user):
        op = inventory.reserve_stock(
            harina, almacen, 4, 'kg', user=user, reserved_for='Pedido #88',
        )

        assert op.inventory.available == Decimal('6')
        assert op.inventory.reserved == Decimal('4')

        reservation = op.reservations[0]
        assert reservation.quantity == Decimal('4')
        assert reservation.status == ReservationStatus.ACTIVE
        assert reservation.created_by == user

        movement = op.movement
        assert movement.movement_type == MovementType.AJUSTE
        assert movement.from_location == almacen
        assert movement.to_location == almacen
        assert movement.metadata['reservation'] == 'reserve'
        assert movement.reason == 'Reserva para Pedido #88'

        b1 = Batch.objects.get(batch_id='B1')
        assert (b1.quantity, b1.reserved_quantity) == (Decimal('1'), Decimal('4'))

    def test_reserve_without_inventory(self, harina, almacen):
        with pytest.raises(StockError) as exc:
            inventory.reserve_stock(harina, almacen, 1, 'kg')
        assert exc.value.code == 'NOT_FOUND'

    def test_reserve_more_than_available(self, harina, almacen, stocked):
        with pytest.raises(StockError) as exc:
            inventory.reserve_stock(harina, almacen, 11, 'kg')

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        assert not Reservation.objects.exists()

    def test_partial_release_splits_reservation(self, harina, almacen, stocked):
        reservation = inventory.reserve_stock(harina, almacen, 4, 'kg').reservations[0]

        op = inventory.release_reservation(harina, almacen, 1)

        reservation.refresh_from_db()
        assert reservation.status == ReservationStatus.ACTIVE
        assert reservation.quantity == Decimal('3')

        released = op.reservations[0]
        assert released.status == ReservationStatus.RELEASED
        assert released.quantity == Decimal('1')
        assert released.metadata['split_from'] == reservation.pk

        assert op.inventory.available == Decimal('7')
        assert op.inventory.reserved == Decimal('3')
        assert op.movement.metadata['reservation'] == 'release'

    def test_release_newest_first(self, harina, almacen, stocked):
        first = inventory.reserve_stock(harina, almacen, 2, 'kg').reservations[0]
        second = inventory.reserve_stock(harina, almacen, 3, 'kg').reservations[0]

        inventory.release_reservation(harina, almacen, 3)

        first.refresh_from_db()
        second.refresh_from_db()
        assert first.status == ReservationStatus.ACTIVE
        assert second.status == ReservationStatus.RELEASED

    def test_release_by_id_defaults_to_all_of_it(self, harina, almacen, stocked):
        reservation = inventory.reserve_stock(harina, almacen, 4, 'kg').reservations[0]

        op = inventory.release_reservation(harina, almacen, reservation_id=reservation.pk)

        reservation.refresh_from_db()
        assert reservation.status == ReservationStatus.RELEASED
        assert reservation.resolved_at is not None
        assert op.inventory.reserved == Decimal('0')
        assert op.inventory.available == Decimal('10')

    def test_release_in_other_unit(self, harina, almacen, stocked):
        inventory.reserve_stock(harina, almacen, 4, 'kg')
        op = inventory.release_reservation(harina, almacen, 500, unit='g')
        assert op.inventory.reserved == Decimal('3.5')

    def test_release_more_than_reserved(self, harina, almacen, stocked):
        inventory.reserve_stock(harina, almacen, 2, 'kg')

        with pytest.raises(StockError) as exc:
            inventory.release_reservation(harina, almacen, 3)
        assert exc.value.code == 'INSUFFICIENT_RESERVED'

    def test_release_unknown_reservation(self, harina, almacen, stocked):
        with pytest.raises(StockError) as exc:
            inventory.release_reservation(harina, almacen, reservation_id=999)
        assert exc.value.code == 'NOT_FOUND'

    def test_release_expired(self, harina, almacen, stocked):
        expired = inventory.reserve_stock(
            harina, almacen, 2, 'kg', expires_at=timezone.now() - timedelta(hours=1),
        ).reservations[0]
        current = inventory.reserve_stock(
            harina, almacen, 3, 'kg', expires_at=timezone.now() + timedelta(days=1),
        ).reservations[0]

        assert inventory.release_expired_reservations() == 1

        expired.refresh_from_db()
        current.refresh_from_db()
        assert expired.status == ReservationStatus.RELEASED
        assert current.status == ReservationStatus.ACTIVE
        stocked.refresh_from_db()
        assert stocked.reserved == Decimal('3')

    def test_release_expired_nothing_due(self, harina, almacen, stocked):
        inventory.reserve_stock(harina, almacen, 2, 'kg')
        assert inventory.release_expired_reservations() == 0


class TestAlerts:
    """Alert evaluation after each mutation."""

    def test_low_stock_on_drop(self, leche, almacen):
        """minimum 10: 12 → 8 gives exactly one LOW_STOCK alert."""
        entry = inventory.adjust_stock(leche, almacen, 12, 'l', 'Compra', cost=Decimal('21.5'))
        assert entry.alerts == ()

        op = inventory.consume_stock(leche, almacen, 4, 'l', 'Evento')

        assert len(op.alerts) == 1
        alert = op.alerts[0]
        assert alert.alert_type == AlertType.LOW_STOCK
        assert alert.priority == AlertPriority.HIGH
        assert alert.current_value == Decimal('8')
        assert alert.threshold == Decimal('10')
        assert alert.alert_id.startswith('ALERT-')
        assert InventoryAlert.objects.filter(alert_type=AlertType.LOW_STOCK).count() == 1

    def test_low_stock_at_zero_is_critical(self, leche, almacen):
        inventory.adjust_stock(leche, almacen, 12, 'l', 'Compra')
        op = inventory.consume_stock(leche, almacen, 12, 'l', 'Evento')

        assert op.alerts[0].priority == AlertPriority.CRITICAL

    def test_reorder_point(self, leche, almacen):
        leche.reorder_point = Decimal('15')
        leche.save()

        op = inventory.adjust_stock(leche, almacen, 12, 'l', 'Compra')

        assert [a.alert_type for a in op.alerts] == [AlertType.REORDER_POINT]
        assert op.alerts[0].priority == AlertPriority.MEDIUM

    def test_zero_threshold_is_not_checked(self, harina, almacen, stocked):
        op = inventory.consume_stock(harina, almacen, 10, 'kg', 'Evento')
        assert op.alerts == ()

    def test_expiry_warning_high(self, harina, almacen):
        op = inventory.adjust_stock(
            harina, almacen, 1, 'kg', 'Compra',
            expiry_date=timezone.now() + timedelta(days=2),
        )

        alert = op.alerts[0]
        assert alert.alert_type == AlertType.EXPIRY_WARNING
        assert alert.priority == AlertPriority.HIGH
        assert alert.metadata['days_until_expiry'] == 2
        assert alert.batch_id == op.movement.batch_id

    def test_expiry_warning_medium(self, harina, almacen):
        op = inventory.adjust_stock(
            harina, almacen, 1, 'kg', 'Compra',
            expiry_date=timezone.now() + timedelta(days=5),
        )
        assert op.alerts[0].priority == AlertPriority.MEDIUM

    def test_far_expiry_has_no_alert(self, harina, almacen):
        op = inventory.adjust_stock(
            harina, almacen, 1, 'kg', 'Compra',
            expiry_date=timezone.now() + timedelta(days=30),
        )
        assert op.alerts == ()

    def test_expired_product(self, harina, almacen):
        op = inventory.adjust_stock(
            harina, almacen, 1, 'kg', 'Compra',
            expiry_date=timezone.now() - timedelta(days=1),
        )

        assert op.alerts[0].alert_type == AlertType.EXPIRED_PRODUCT
        assert op.alerts[0].priority == AlertPriority.CRITICAL

    def test_rolled_back_operation_leaves_no_alert(self, leche, almacen):
        inventory.adjust_stock(leche, almacen, 12, 'l', 'Compra')

        with pytest.raises(StockError):
            inventory.consume_stock(leche, almacen, 20, 'l', 'Evento')
        assert not InventoryAlert.objects.exists()

    def test_active_alerts_by_priority(self, leche, almacen, cocina):
        inventory.adjust_stock(
            leche, almacen, 5, 'l', 'Compra',
            expiry_date=timezone.now() - timedelta(days=1),
        )

        alerts = list(inventory.get_active_alerts(location=almacen))

        assert [a.priority for a in alerts] == [AlertPriority.CRITICAL, AlertPriority.HIGH]
        assert list(inventory.get_active_alerts(location=cocina)) == []
        assert [a.alert_type for a in inventory.get_active_alerts(alert_type=AlertType.LOW_STOCK)] == [
            AlertType.LOW_STOCK,
        ]

    def test_resolve_alert(self, leche, almacen, user):
        alert = inventory.adjust_stock(leche, almacen, 5, 'l', 'Compra').alerts[0]

        resolved = inventory.resolve_alert(alert.alert_id, user=user, resolution='Pedido enviado')

        assert not resolved.is_active
        assert resolved.is_acknowledged
        assert resolved.acknowledged_by == user
        assert resolved.acknowledged_at is not None
        assert resolved.resolution_notes == 'Pedido enviado'
        assert not inventory.get_active_alerts(product=leche).exists()

    def test_resolve_twice_is_noop(self, leche, almacen, user):
        alert = inventory.adjust_stock(leche, almacen, 5, 'l', 'Compra').alerts[0]
        first = inventory.resolve_alert(alert.alert_id, user=user)

        second = inventory.resolve_alert(alert.alert_id)

        assert second.acknowledged_at == first.acknowledged_at
        assert second.acknowledged_by == user

    def test_resolve_unknown_alert(self):
        with pytest.raises(StockError) as exc:
            inventory.resolve_alert('ALERT-0-missing')
        assert exc.value.code == 'NOT_FOUND'


class TestConservation:
    """Totals always match the batches and the movement log."""

    def test_totals_match_batches_and_movements(self, harina, almacen, cocina, stocked):
        inventory.transfer_stock(harina, almacen, cocina, 3, 'kg')
        inventory.reserve_stock(harina, almacen, 2, 'kg')
        inventory.consume_stock(harina, almacen, 1, 'kg', 'Evento')
        inventory.adjust_stock(harina, almacen, 4, 'kg', 'Compra', cost=Decimal('11'))
        inventory.transfer_stock(harina, cocina, almacen, 1, 'kg')
        inventory.release_reservation(harina, almacen, 1)

        for location in (almacen, cocina):
            row = Inventory.objects.get(product=harina, location=location)
            from_batches = recompute_totals(row.batches.all(), row.unit)
            assert row.totals == from_batches

            result = inventory.reconcile(harina, location)
            assert result.is_balanced
            assert result.on_hand == row.on_hand

        assert Inventory.objects.get(product=harina, location=almacen).on_hand == Decimal('11')
        assert Inventory.objects.get(product=harina, location=cocina).on_hand == Decimal('2')


class TestMovementImmutability:
    """Movements are append-only."""

    def test_cannot_update(self, harina, almacen, stocked):
        movement = Movement.objects.first()
        movement.reason = 'Otra'

        with pytest.raises(ValueError):
            movement.save()

    def test_cannot_delete(self, harina, almacen, stocked):
        with pytest.raises(ValueError):
            Movement.objects.first().delete()
