"""
Pytest fixtures for batchledger tests.
"""

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from batchledger.adapters.gateway import get_notification_gateway, reset_notification_gateway
from batchledger.ledger import BatchLot
from batchledger.models import AlternativeUnit, Location, Product
from batchledger.notifications import reset_alert_dispatcher
from batchledger.units import reset_unit_converter


User = get_user_model()


@pytest.fixture(autouse=True)
def _fresh_singletons():
    """Process-wide gateway, dispatcher and converter are rebuilt per test."""
    reset_notification_gateway()
    reset_alert_dispatcher()
    reset_unit_converter()
    yield
    reset_alert_dispatcher()
    reset_notification_gateway()
    reset_unit_converter()


@pytest.fixture
def gateway():
    """The configured NoopGateway, recording every payload."""
    return get_notification_gateway()


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='testuser',
        password='testpass123'
    )


@pytest.fixture
def almacen(db):
    """Main warehouse."""
    return Location.objects.create(code='almacen', name='Almacén Central')


@pytest.fixture
def cocina(db):
    """Kitchen."""
    return Location.objects.create(code='cocina', name='Cocina')


@pytest.fixture
def harina(db):
    """Flour, stored in kg."""
    return Product.objects.create(
        sku='HAR-001',
        name='Harina de trigo',
        category='Secos',
        barcode='7501000000011',
        base_unit='kg',
        base_unit_name='Kilogramo',
    )


@pytest.fixture
def huevo(db):
    """Eggs, stored by the unit, bought by the dozen and by the box."""
    product = Product.objects.create(
        sku='HUE-001',
        name='Huevo blanco',
        category='Refrigerados',
        base_unit='unit',
        base_unit_name='Pieza',
    )
    AlternativeUnit.objects.create(product=product, code='dozen', conversion_factor=Decimal('12'))
    AlternativeUnit.objects.create(product=product, code='box', conversion_factor=Decimal('360'))
    return product


@pytest.fixture
def leche(db):
    """Milk, stored in litres, with stock levels set."""
    return Product.objects.create(
        sku='LEC-001',
        name='Leche entera',
        category='Refrigerados',
        base_unit='l',
        base_unit_name='Litro',
        minimum_stock=Decimal('10'),
    )


@pytest.fixture
def base_time():
    """Fixed reference instant for batch dates."""
    return datetime(2026, 3, 1, 9, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def two_batches(base_time):
    """B1: 5 @ 10 received day 1, B2: 5 @ 12 received day 2."""
    return [
        BatchLot('B1', Decimal('5'), Decimal('10'), base_time),
        BatchLot('B2', Decimal('5'), Decimal('12'), base_time + timedelta(days=1)),
    ]
