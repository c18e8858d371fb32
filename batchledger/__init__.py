"""
batchledger — Inventario por lotes multi-ubicación.

Uso:
    from batchledger import inventory, StockError

    inventory.adjust_stock(harina, almacen, 2, 'kg', 'Compra', cost=Decimal('18'))
    inventory.consume_stock(harina, almacen, 500, 'g', 'Pedido #88')
    inventory.get_inventory(low_stock=True)
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name in ('inventory', 'InventoryService'):
        from batchledger.service import InventoryService
        return InventoryService
    elif name == 'StockError':
        from batchledger.exceptions import StockError
        return StockError
    elif name == 'UnitConverter':
        from batchledger.units import UnitConverter
        return UnitConverter
    elif name == 'Location':
        from batchledger.models.location import Location
        return Location
    elif name == 'Product':
        from batchledger.models.product import Product
        return Product
    elif name == 'Inventory':
        from batchledger.models.inventory import Inventory
        return Inventory
    elif name == 'Batch':
        from batchledger.models.batch import Batch
        return Batch
    elif name == 'Movement':
        from batchledger.models.movement import Movement
        return Movement
    elif name == 'Reservation':
        from batchledger.models.reservation import Reservation
        return Reservation
    elif name == 'InventoryAlert':
        from batchledger.models.alert import InventoryAlert
        return InventoryAlert
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'inventory',
    'InventoryService',
    'StockError',
    'UnitConverter',
    'Location',
    'Product',
    'Inventory',
    'Batch',
    'Movement',
    'Reservation',
    'InventoryAlert',
]

__version__ = '0.1.0'
