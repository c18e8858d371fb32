"""
Inventory queries — read-only operations.

No locking: results reflect what the database returns at read time.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from django.db.models import Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from batchledger import costing
from batchledger.conf import batchledger_settings
from batchledger.models.inventory import Inventory
from batchledger.models.movement import Movement
from batchledger.services.alerts import count_active
from batchledger.services.common import ZERO, inventory_not_found, to_base_quantity

logger = logging.getLogger('batchledger')

SORT_FIELDS = {
    'last_updated': 'updated_at',
    'available': 'available',
    'product': 'product__name',
    'location': 'location__code',
    'created_at': 'created_at',
}


@dataclass(frozen=True)
class StockValuation:
    """Value of available batches, broken down by location, product and category."""

    total_value: Decimal
    by_location: dict[str, Decimal] = field(default_factory=dict)
    by_product: dict[str, Decimal] = field(default_factory=dict)
    by_category: dict[str, Decimal] = field(default_factory=dict)
    calculated_at: datetime | None = None


@dataclass(frozen=True)
class InventorySummary:
    total_products: int
    total_value: Decimal
    low_stock_items: int
    expired_items: int
    expiring_soon_items: int
    active_alerts: int
    last_updated: datetime


@dataclass(frozen=True)
class Reconciliation:
    """
    Movement volume against current totals for one product+location.

    movement_balance = inflow - outflow (reservation AJUSTEs excluded)
    on_hand = available + reserved + quarantine
    """

    product_id: int
    location_id: int
    inflow: Decimal
    outflow: Decimal
    on_hand: Decimal

    @property
    def movement_balance(self) -> Decimal:
        return self.inflow - self.outflow

    @property
    def drift(self) -> Decimal:
        return self.on_hand - self.movement_balance

    @property
    def is_balanced(self) -> bool:
        return self.drift == 0


def _page_bounds(page, limit) -> tuple[int, int]:
    page = max(1, int(page or 1))
    limit = int(limit or batchledger_settings.DEFAULT_PAGE_SIZE)
    limit = min(max(1, limit), batchledger_settings.MAX_PAGE_SIZE)
    return page, limit


def _paginate(qs, page, limit, key: str) -> dict:
    page, limit = _page_bounds(page, limit)
    total = qs.count()
    offset = (page - 1) * limit
    return {
        key: list(qs[offset:offset + limit]),
        'total': total,
        'page': page,
        'total_pages': math.ceil(total / limit),
    }


class InventoryQueries:
    """Read-only inventory query methods."""

    @classmethod
    def get_inventory(cls, product_id=None, location_id=None, search=None,
                      category=None, low_stock=False, expiring_soon=False,
                      expiry_days=7, page=1, limit=None,
                      sort_by='last_updated', sort_order='desc') -> dict:
        """
        Paginated inventory listing.

        Args:
            product_id / location_id: Exact filters
            search: Case-insensitive match on product name, SKU or barcode
            category: Product category
            low_stock: Only rows at or below the product's minimum stock
            expiring_soon: Only rows with a batch expiring within expiry_days
            sort_by: last_updated | available | product | location | created_at

        Returns:
            {'inventories': [...], 'total': n, 'page': p, 'total_pages': t}
            ``total`` counts rows after every filter.
        """
        qs = Inventory.objects.select_related('product', 'location')

        if product_id:
            qs = qs.filter(product_id=product_id)
        if location_id:
            qs = qs.filter(location_id=location_id)
        if search:
            qs = qs.filter(
                Q(product__name__icontains=search)
                | Q(product__sku__icontains=search)
                | Q(product__barcode__icontains=search)
            )
        if category:
            qs = qs.filter(product__category=category)
        if low_stock:
            qs = qs.low_stock()
        if expiring_soon:
            now = timezone.now()
            qs = qs.filter(
                pk__in=Inventory.objects.filter(
                    batches__expiry_date__gte=now,
                    batches__expiry_date__lte=now + timedelta(days=expiry_days),
                ).values('pk')
            )

        order = SORT_FIELDS.get(sort_by, SORT_FIELDS['last_updated'])
        prefix = '' if sort_order == 'asc' else '-'
        qs = qs.order_by(f'{prefix}{order}', f'{prefix}pk')

        return _paginate(qs, page, limit, 'inventories')

    @classmethod
    def get_movements(cls, product_id=None, location_id=None, movement_type=None,
                      user_id=None, start_date=None, end_date=None,
                      page=1, limit=None) -> dict:
        """
        Paginated movement log, newest first.

        ``location_id`` matches movements leaving or entering the location.
        """
        qs = Movement.objects.select_related('product', 'from_location', 'to_location')

        if product_id:
            qs = qs.filter(product_id=product_id)
        if location_id:
            qs = qs.filter(Q(from_location_id=location_id) | Q(to_location_id=location_id))
        if movement_type:
            qs = qs.filter(movement_type=movement_type)
        if user_id:
            qs = qs.filter(performed_by_id=user_id)
        if start_date:
            qs = qs.filter(created_at__gte=start_date)
        if end_date:
            qs = qs.filter(created_at__lte=end_date)

        return _paginate(qs.order_by('-created_at', '-pk'), page, limit, 'movements')

    @classmethod
    def calculate_stock_valuation(cls, location=None) -> StockValuation:
        """
        Value of available batches (quantity × cost_per_unit).

        Keys: location code, product SKU, product category.
        """
        qs = Inventory.objects.select_related('product', 'location').prefetch_related('batches')
        if location is not None:
            qs = qs.filter(location=location)

        total = ZERO
        by_location: dict[str, Decimal] = {}
        by_product: dict[str, Decimal] = {}
        by_category: dict[str, Decimal] = {}

        for inventory in qs:
            value = costing.calculate_inventory_value(inventory.batches.all()).total_value
            total += value

            code = inventory.location.code
            by_location[code] = by_location.get(code, ZERO) + value
            sku = inventory.product.sku
            by_product[sku] = by_product.get(sku, ZERO) + value
            category = inventory.product.category
            if category:
                by_category[category] = by_category.get(category, ZERO) + value

        return StockValuation(
            total_value=total,
            by_location=by_location,
            by_product=by_product,
            by_category=by_category,
            calculated_at=timezone.now(),
        )

    @classmethod
    def get_inventory_summary(cls, location=None) -> InventorySummary:
        """Counts for a dashboard: low stock rows, expired and expiring batches, alerts."""
        now = timezone.now()
        warning_limit = now + timedelta(days=batchledger_settings.EXPIRY_WARNING_DAYS)

        qs = Inventory.objects.select_related('product').prefetch_related('batches')
        if location is not None:
            qs = qs.filter(location=location)

        total_products = 0
        low_stock_items = 0
        expired_items = 0
        expiring_soon_items = 0

        for inventory in qs:
            total_products += 1
            minimum = inventory.product.minimum_stock
            if minimum and inventory.available <= minimum:
                low_stock_items += 1

            for batch in inventory.batches.all():
                if batch.expiry_date is None:
                    continue
                if batch.expiry_date <= now:
                    expired_items += 1
                elif batch.expiry_date <= warning_limit:
                    expiring_soon_items += 1

        return InventorySummary(
            total_products=total_products,
            total_value=cls.calculate_stock_valuation(location).total_value,
            low_stock_items=low_stock_items,
            expired_items=expired_items,
            expiring_soon_items=expiring_soon_items,
            active_alerts=count_active(location),
            last_updated=now,
        )

    @classmethod
    def estimate_consumption_cost(cls, product, location, quantity, unit,
                                  method=costing.FIFO) -> costing.CostCalculationResult:
        """
        What-if cost of consuming ``quantity`` now under FIFO, LIFO or AVERAGE.

        Advisory only: actual consumption is always FIFO.

        Raises:
            StockError('NOT_FOUND'): no inventory at the location
            StockError('CONVERSION_ERROR'): bad value or unknown unit
        """
        inventory = (
            Inventory.objects.filter(product=product, location=location)
            .prefetch_related('batches')
            .first()
        )
        if inventory is None:
            raise inventory_not_found(product, location)

        base_quantity = to_base_quantity(product, quantity, unit)
        return costing.calculate_cost_by_method(
            [batch.to_lot() for batch in inventory.batches.all()],
            base_quantity,
            method,
        )

    @classmethod
    def reconcile(cls, product, location) -> Reconciliation:
        """
        Compare net movement volume with the current totals.

        Refreshes the totals cache from batches first (Inventory.recalculate).
        Drift is logged as a warning; nothing is corrected automatically.
        """
        inventory = Inventory.objects.filter(product=product, location=location).first()
        if inventory is None:
            raise inventory_not_found(product, location)

        totals = inventory.recalculate()
        volume = Movement.objects.volume().filter(product=product)
        inflow = volume.filter(to_location=location).aggregate(
            t=Coalesce(Sum('quantity'), ZERO)
        )['t']
        outflow = volume.filter(from_location=location).aggregate(
            t=Coalesce(Sum('quantity'), ZERO)
        )['t']

        result = Reconciliation(
            product_id=product.pk,
            location_id=location.pk,
            inflow=inflow,
            outflow=outflow,
            on_hand=totals.available + totals.reserved + totals.quarantine,
        )
        if not result.is_balanced:
            logger.warning(
                "inventory.reconcile.drift",
                extra={
                    "product": product.sku,
                    "location": location.code,
                    "movement_balance": str(result.movement_balance),
                    "on_hand": str(result.on_hand),
                    "drift": str(result.drift),
                },
            )
        return result
