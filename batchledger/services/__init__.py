"""
Inventory services — modular organization of inventory operations.

    from batchledger.services import (
        InventoryQueries, InventoryMovements, InventoryReservations, InventoryAlerts,
    )

The combined interface is batchledger.service.InventoryService.
"""

from batchledger.services.alerts import InventoryAlerts
from batchledger.services.common import StockOperation
from batchledger.services.movements import InventoryMovements
from batchledger.services.queries import (
    InventoryQueries,
    InventorySummary,
    Reconciliation,
    StockValuation,
)
from batchledger.services.reservations import InventoryReservations

__all__ = [
    'InventoryQueries',
    'InventoryMovements',
    'InventoryReservations',
    'InventoryAlerts',
    'StockOperation',
    'StockValuation',
    'InventorySummary',
    'Reconciliation',
]
