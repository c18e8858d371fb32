"""
Inventory Service — The single public interface for all inventory operations.

Usage:
    from batchledger import inventory, StockError

    inventory.adjust_stock(leche, almacen, 24, 'l', 'Compra OC-118', cost=Decimal('21.50'))
    inventory.transfer_stock(leche, almacen, cocina, 6, 'l')
    inventory.consume_stock(leche, cocina, 2, 'l', 'Evento #12')
    inventory.get_inventory(location_id=cocina.pk)
"""

from batchledger.services.alerts import InventoryAlerts
from batchledger.services.movements import InventoryMovements
from batchledger.services.queries import InventoryQueries
from batchledger.services.reservations import InventoryReservations


class InventoryService(
    InventoryQueries,
    InventoryMovements,
    InventoryReservations,
    InventoryAlerts,
):
    """
    Single interface for all inventory operations.

    Parameter convention: (product, location, quantity, unit, ...)

    IMPORTANT: All state-changing methods run in one atomic transaction
    with the Inventory row locked. Quantities are converted to the
    product's base unit before anything is touched. See each method's
    docstring.
    """
