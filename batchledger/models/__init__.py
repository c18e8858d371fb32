"""
Batchledger Models.

Core models for batch inventory:
- Location: Where stock is kept
- Product / AlternativeUnit: Catalog entry and its unit graph
- Inventory: Stock of a product at a location (totals cache)
- Batch: Received lots with cost, date and expiry
- Movement: Immutable ledger of changes
- Reservation: Quantity set aside for orders/events
- InventoryAlert: Threshold and expiry alerts
"""

from batchledger.models.alert import InventoryAlert
from batchledger.models.batch import Batch
from batchledger.models.enums import (
    AlertPriority,
    AlertType,
    BatchStatus,
    MovementType,
    ReservationStatus,
)
from batchledger.models.inventory import Inventory
from batchledger.models.location import Location
from batchledger.models.movement import Movement
from batchledger.models.product import AlternativeUnit, Product
from batchledger.models.reservation import Reservation

__all__ = [
    'AlertPriority',
    'AlertType',
    'BatchStatus',
    'MovementType',
    'ReservationStatus',
    'Location',
    'Product',
    'AlternativeUnit',
    'Inventory',
    'Batch',
    'Movement',
    'Reservation',
    'InventoryAlert',
]
