"""
Exceptions for batchledger.

All errors are StockError with a structured code for programmatic handling.
"""

from decimal import Decimal
from typing import Any


class BaseError(Exception):
    """
    Base structured error: a code, a human-readable message and context data.

    Subclasses provide ``_default_messages`` so callers can raise with only
    a code and keyword context.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data: Any):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")


class StockError(BaseError):
    """
    Structured exception for inventory operations.

    Usage:
        try:
            inventory.consume_stock(product, cocina, 10, 'kg', 'Evento #12')
        except StockError as e:
            if e.code == 'INSUFFICIENT_STOCK':
                print(f"Faltan {e.shortfall} ({e.available} disponibles)")

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    _default_messages = {
        'INVALID_QUANTITY': 'Cantidad inválida',
        'CONVERSION_ERROR': 'Error en conversión de unidades',
        'INSUFFICIENT_STOCK': 'Stock insuficiente',
        'INSUFFICIENT_RESERVED': 'Cantidad reservada insuficiente',
        'NOT_FOUND': 'Registro no encontrado',
        'TRANSACTION_CONFLICT': 'Conflicto de escritura concurrente',
        'INVALID_BATCH': 'Lote inválido',
        'REASON_REQUIRED': 'El motivo es obligatorio',
    }

    @property
    def available(self) -> Decimal:
        """Shortcut for data['available']."""
        return self.data.get('available', Decimal('0'))

    @property
    def requested(self) -> Decimal:
        """Shortcut for data['requested']."""
        return self.data.get('requested', Decimal('0'))

    @property
    def shortfall(self) -> Decimal:
        """Shortcut for data['shortfall']."""
        return self.data.get('shortfall', Decimal('0'))

    def as_dict(self) -> dict[str, Any]:
        """Serialize to the ``{success: false, error}`` shape used by APIs."""
        return {
            'success': False,
            'error': {
                'code': self.code,
                'message': self.message,
                'data': {
                    k: str(v) if isinstance(v, Decimal) else v
                    for k, v in self.data.items()
                },
            },
        }
