"""
Cost calculation — FIFO, LIFO and weighted-average costing over batches.

Pure functions: they read batch values and never touch the database, so
they serve both real consumption and what-if analysis. A batch is anything
exposing ``batch_id``, ``quantity``, ``cost_per_unit``, ``received_at`` and
``status`` (Batch model instances, ledger.BatchLot snapshots).

Usage:
    from batchledger import costing

    result = costing.calculate_fifo_cost(batches, Decimal('7'))
    result.total_cost          # Decimal('74')
    result.remaining_quantity  # Decimal('0') when fully covered

    costing.compare_cost_methods(batches, Decimal('7')).recommendation  # 'FIFO'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, NamedTuple

PRECISION = Decimal('0.000001')
ZERO = Decimal('0')

FIFO = 'FIFO'
LIFO = 'LIFO'
AVERAGE = 'AVERAGE'
COST_METHODS = (FIFO, LIFO, AVERAGE)

MINIMIZE_COST = 'minimize_cost'
TAX_OPTIMIZATION = 'tax_optimization'
CASH_FLOW = 'cash_flow'

# Above this coefficient of variation prices count as volatile
VOLATILITY_THRESHOLD = Decimal('0.2')
# Above this many turns per year rotation counts as fast
FAST_ROTATION = Decimal('12')
# Projection confidence multiplier per period ahead, and its floor
CONFIDENCE_DECAY = Decimal('0.8')
MIN_CONFIDENCE = Decimal('0.1')


# ══════════════════════════════════════════════════════════════
# INPUT POINTS
# ══════════════════════════════════════════════════════════════


class CostPoint(NamedTuple):
    date: date
    cost: Decimal


class ConsumptionPoint(NamedTuple):
    date: date
    quantity: Decimal


class SalePoint(NamedTuple):
    date: date
    quantity: Decimal
    revenue: Decimal


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class BatchConsumption:
    """Part of a consumption drawn from one batch."""

    batch_id: str
    quantity: Decimal
    cost_per_unit: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class CostCalculationResult:
    """
    Cost of consuming a quantity under one method.

    ``remaining_quantity`` is the part batches could not cover; whether that
    is an error is the caller's decision.
    """

    method: str
    total_cost: Decimal
    average_cost: Decimal
    batches_used: tuple[BatchConsumption, ...] = ()
    remaining_quantity: Decimal = ZERO
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def is_complete(self) -> bool:
        return self.success and self.remaining_quantity == 0


@dataclass(frozen=True)
class MethodComparison:
    fifo: CostCalculationResult
    lifo: CostCalculationResult
    average: CostCalculationResult
    recommendation: str
    savings: Decimal


@dataclass(frozen=True)
class BatchValue:
    batch_id: str
    quantity: Decimal
    cost_per_unit: Decimal
    total_value: Decimal
    age_in_days: int


@dataclass(frozen=True)
class InventoryValuation:
    total_value: Decimal
    total_quantity: Decimal
    average_cost_per_unit: Decimal
    batch_breakdown: tuple[BatchValue, ...] = ()


@dataclass(frozen=True)
class CostingAdvice:
    """Advisory only: physical depletion is always FIFO."""

    recommended_method: str
    reasoning: tuple[str, ...]
    expected_savings: Decimal
    risk_level: str  # "LOW", "MEDIUM", "HIGH"
    price_volatility: Decimal
    rotation_speed: Decimal


@dataclass(frozen=True)
class CostProjection:
    period: int
    projected_cost: Decimal
    confidence: Decimal
    factors: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CostVariance:
    current_value: Decimal
    projected_value: Decimal
    variance: Decimal
    variance_percentage: Decimal
    method: str
    confidence: Decimal


@dataclass(frozen=True)
class InventoryMetrics:
    turnover_ratio: Decimal
    days_in_inventory: Decimal
    gross_margin: Decimal
    obsolescence_risk: Decimal


# ══════════════════════════════════════════════════════════════
# CONSUMPTION COST
# ══════════════════════════════════════════════════════════════


def available_batches(batches: Iterable) -> list:
    """Batches that can be consumed: status available and quantity > 0."""
    return [b for b in batches if b.status == 'available' and b.quantity > 0]


def sort_batches(batches: Iterable, method: str) -> list:
    """Available batches in consumption order (oldest first for FIFO)."""
    return sorted(
        available_batches(batches),
        key=lambda b: b.received_at,
        reverse=(method == LIFO),
    )


def calculate_fifo_cost(batches: Iterable, quantity: Decimal) -> CostCalculationResult:
    """Consume the oldest batches first."""
    return _consume(sort_batches(batches, FIFO), _decimal(quantity), FIFO)


def calculate_lifo_cost(batches: Iterable, quantity: Decimal) -> CostCalculationResult:
    """Consume the newest batches first."""
    return _consume(sort_batches(batches, LIFO), _decimal(quantity), LIFO)


def calculate_average_cost(batches: Iterable) -> Decimal:
    """Weighted average unit cost of the available batches (0 when empty)."""
    total_value, total_quantity = _value_and_quantity(available_batches(batches))
    if total_quantity == 0:
        return ZERO
    return (total_value / total_quantity).quantize(PRECISION)


def calculate_cost_by_method(batches: Iterable, quantity: Decimal,
                             method: str) -> CostCalculationResult:
    """
    Cost of consuming ``quantity`` under ``method``.

    AVERAGE applies the weighted unit cost to the whole quantity with no
    per-batch depletion; ``remaining_quantity`` still reports any part the
    available stock does not cover.
    """
    quantity = _decimal(quantity)
    method = (method or '').upper()

    if method == FIFO:
        return calculate_fifo_cost(batches, quantity)
    if method == LIFO:
        return calculate_lifo_cost(batches, quantity)
    if method != AVERAGE:
        return CostCalculationResult(
            method=method,
            total_cost=ZERO,
            average_cost=ZERO,
            remaining_quantity=quantity,
            error=f"Método de costeo desconocido: {method}",
        )

    total_value, total_quantity = _value_and_quantity(available_batches(batches))
    if total_quantity == 0:
        return CostCalculationResult(
            method=AVERAGE, total_cost=ZERO, average_cost=ZERO,
            remaining_quantity=quantity,
        )

    average_cost = (total_value / total_quantity).quantize(PRECISION)
    total_cost = (quantity * total_value / total_quantity).quantize(PRECISION)
    return CostCalculationResult(
        method=AVERAGE,
        total_cost=total_cost,
        average_cost=average_cost,
        batches_used=(BatchConsumption('AVERAGE', quantity, average_cost, total_cost),),
        remaining_quantity=max(ZERO, quantity - total_quantity),
    )


def compare_cost_methods(batches: Iterable, quantity: Decimal) -> MethodComparison:
    """Run all three methods; recommend the cheapest, report max - min."""
    batches = list(batches)
    results = {
        FIFO: calculate_fifo_cost(batches, quantity),
        LIFO: calculate_lifo_cost(batches, quantity),
        AVERAGE: calculate_cost_by_method(batches, quantity, AVERAGE),
    }
    costs = {method: result.total_cost for method, result in results.items()}
    cheapest = min(costs.values())

    return MethodComparison(
        fifo=results[FIFO],
        lifo=results[LIFO],
        average=results[AVERAGE],
        recommendation=next(m for m in COST_METHODS if costs[m] == cheapest),
        savings=max(costs.values()) - cheapest,
    )


# ══════════════════════════════════════════════════════════════
# VALUATION & ANALYTICS
# ══════════════════════════════════════════════════════════════


def calculate_inventory_value(batches: Iterable, now: datetime | None = None) -> InventoryValuation:
    """Value of the available batches, with per-batch age in days."""
    breakdown = tuple(
        BatchValue(
            batch_id=b.batch_id,
            quantity=b.quantity,
            cost_per_unit=b.cost_per_unit,
            total_value=b.quantity * b.cost_per_unit,
            age_in_days=_age_in_days(b.received_at, now),
        )
        for b in available_batches(batches)
    )
    total_value = sum((b.total_value for b in breakdown), ZERO)
    total_quantity = sum((b.quantity for b in breakdown), ZERO)
    average = (total_value / total_quantity).quantize(PRECISION) if total_quantity else ZERO

    return InventoryValuation(
        total_value=total_value,
        total_quantity=total_quantity,
        average_cost_per_unit=average,
        batch_breakdown=breakdown,
    )


def optimize_costing_method(batches: Iterable, consumption: Iterable[ConsumptionPoint],
                            business_objective: str) -> CostingAdvice:
    """
    Recommend a costing method for a business objective.

    Looks at price volatility (coefficient of variation of batch costs) and
    rotation speed (annual consumption / quantity on hand).
    """
    batches = list(batches)
    volatility = price_volatility(batches)
    rotation = rotation_speed(batches, consumption)

    if business_objective == MINIMIZE_COST:
        if volatility > VOLATILITY_THRESHOLD:
            method, risk = FIFO, 'HIGH'
            reasoning = ('Alta volatilidad de precios favorece FIFO',)
        else:
            method, risk = AVERAGE, 'LOW'
            reasoning = ('Baja volatilidad permite usar promedio ponderado',)
    elif business_objective == TAX_OPTIMIZATION:
        method, risk = LIFO, 'MEDIUM'
        reasoning = ('LIFO puede reducir utilidades gravables en períodos inflacionarios',)
    elif business_objective == CASH_FLOW:
        if rotation > FAST_ROTATION:
            method, risk = FIFO, 'LOW'
            reasoning = ('Rotación rápida favorece FIFO para mejor flujo de caja',)
        else:
            method, risk = AVERAGE, 'MEDIUM'
            reasoning = ('Rotación lenta permite usar promedio para estabilidad',)
    else:
        method, risk = AVERAGE, 'MEDIUM'
        reasoning = (f'Objetivo desconocido "{business_objective}": se usa promedio ponderado',)

    total_quantity = sum((b.quantity for b in batches), ZERO)
    comparison = compare_cost_methods(batches, total_quantity * Decimal('0.1'))

    return CostingAdvice(
        recommended_method=method,
        reasoning=reasoning,
        expected_savings=comparison.savings,
        risk_level=risk,
        price_volatility=volatility,
        rotation_speed=rotation,
    )


def project_future_costs(history: Iterable[CostPoint],
                         periods_ahead: int = 3) -> list[CostProjection]:
    """
    Extrapolate a least-squares linear trend ``periods_ahead`` periods.

    Points are ordered by date and indexed 0..n-1; period i is projected at
    index n-1+i. Confidence decays geometrically per period. Fewer than two
    points yields no projection.
    """
    points = sorted(history, key=lambda p: p.date)
    if len(points) < 2:
        return []

    slope, intercept = _linear_trend([Decimal(p.cost) for p in points])
    factors = _trend_factors(slope)
    last_index = len(points) - 1

    projections = []
    for i in range(1, periods_ahead + 1):
        projected = slope * (last_index + i) + intercept
        projections.append(CostProjection(
            period=i,
            projected_cost=max(ZERO, projected).quantize(PRECISION),
            confidence=max(MIN_CONFIDENCE, CONFIDENCE_DECAY ** i).quantize(PRECISION),
            factors=factors,
        ))
    return projections


def analyze_cost_variance(actual: list[Decimal], projected: list[Decimal]) -> CostVariance:
    """Compare the latest actual cost against the latest projection."""
    if not actual or not projected:
        return CostVariance(ZERO, ZERO, ZERO, ZERO, 'INSUFFICIENT_DATA', ZERO)

    current = Decimal(actual[-1])
    expected = Decimal(projected[-1])
    variance = expected - current
    percentage = (variance / current * 100).quantize(PRECISION) if current else ZERO

    return CostVariance(
        current_value=current,
        projected_value=expected,
        variance=variance,
        variance_percentage=percentage,
        method='LINEAR_REGRESSION',
        confidence=_projection_confidence(actual, projected),
    )


def calculate_inventory_metrics(batches: Iterable, sales: Iterable[SalePoint],
                                now: datetime | None = None) -> InventoryMetrics:
    """Turnover, days in inventory, gross margin and obsolescence risk."""
    batches = list(batches)
    sales = list(sales)
    valuation = calculate_inventory_value(batches, now)

    revenue = sum((_decimal(s.revenue) for s in sales), ZERO)
    cost_of_sales = sum(
        (calculate_fifo_cost(batches, _decimal(s.quantity)).total_cost for s in sales),
        ZERO,
    )

    turnover = (cost_of_sales / valuation.total_value).quantize(PRECISION) \
        if valuation.total_value else ZERO
    days = (Decimal('365') / turnover).quantize(PRECISION) if turnover else Decimal('365')
    margin = ((revenue - cost_of_sales) / revenue * 100).quantize(PRECISION) if revenue else ZERO

    if valuation.total_quantity:
        weighted_age = sum(
            (Decimal(b.age_in_days) * b.quantity for b in valuation.batch_breakdown), ZERO
        ) / valuation.total_quantity
        obsolescence = min(Decimal('100'), weighted_age / Decimal('365') * 100).quantize(PRECISION)
    else:
        obsolescence = ZERO

    return InventoryMetrics(
        turnover_ratio=turnover,
        days_in_inventory=days,
        gross_margin=margin,
        obsolescence_risk=obsolescence,
    )


def price_volatility(batches: Iterable) -> Decimal:
    """Coefficient of variation of batch unit costs (0 for < 2 batches)."""
    costs = [Decimal(b.cost_per_unit) for b in batches]
    if len(costs) < 2:
        return ZERO
    mean = sum(costs, ZERO) / len(costs)
    if mean == 0:
        return ZERO
    variance = sum(((c - mean) ** 2 for c in costs), ZERO) / len(costs)
    return (variance.sqrt() / mean).quantize(PRECISION)


def rotation_speed(batches: Iterable, consumption: Iterable[ConsumptionPoint]) -> Decimal:
    """Annual consumption divided by quantity on hand."""
    on_hand = sum((Decimal(b.quantity) for b in batches), ZERO)
    consumed = sum((_decimal(c.quantity) for c in consumption), ZERO)
    return (consumed / on_hand).quantize(PRECISION) if on_hand else ZERO


# ══════════════════════════════════════════════════════════════
# INTERNALS
# ══════════════════════════════════════════════════════════════


def _consume(ordered: list, quantity: Decimal, method: str) -> CostCalculationResult:
    lines = []
    remaining = quantity
    total_cost = ZERO

    for batch in ordered:
        if remaining <= 0:
            break
        taken = min(batch.quantity, remaining)
        cost = taken * batch.cost_per_unit
        lines.append(BatchConsumption(batch.batch_id, taken, batch.cost_per_unit, cost))
        total_cost += cost
        remaining -= taken

    consumed = quantity - remaining
    average = (total_cost / consumed).quantize(PRECISION) if consumed > 0 else ZERO

    return CostCalculationResult(
        method=method,
        total_cost=total_cost.quantize(PRECISION),
        average_cost=average,
        batches_used=tuple(lines),
        remaining_quantity=max(ZERO, remaining),
    )


def _decimal(value) -> Decimal:
    """Decimal from int, float or Decimal; floats go through their str form."""
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _value_and_quantity(batches: list) -> tuple[Decimal, Decimal]:
    total_value = sum((b.quantity * b.cost_per_unit for b in batches), ZERO)
    total_quantity = sum((b.quantity for b in batches), ZERO)
    return total_value, total_quantity


def _age_in_days(received_at, now: datetime | None) -> int:
    if not isinstance(received_at, datetime):
        received_at = datetime.combine(received_at, datetime.min.time())
    if now is None:
        now = datetime.now(timezone.utc) if received_at.tzinfo else datetime.now()
    return max(0, (now - received_at).days)


def _linear_trend(values: list[Decimal]) -> tuple[Decimal, Decimal]:
    n = len(values)
    sum_x = Decimal(sum(range(n)))
    sum_y = sum(values, ZERO)
    sum_xy = sum((i * y for i, y in enumerate(values)), ZERO)
    sum_xx = Decimal(sum(i * i for i in range(n)))

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


def _trend_factors(slope: Decimal) -> tuple[str, ...]:
    if slope > Decimal('0.1'):
        return ('Tendencia alcista en costos',)
    if slope < Decimal('-0.1'):
        return ('Tendencia bajista en costos',)
    return ('Costos estables',)


def _projection_confidence(actual: list, projected: list) -> Decimal:
    if len(actual) < 2 or len(projected) < 2:
        return Decimal('0.5')
    errors = [
        abs(Decimal(a) - Decimal(p)) / Decimal(a)
        for a, p in zip(actual, projected)
        if Decimal(a) != 0
    ]
    if not errors:
        return Decimal('0.5')
    mean_error = sum(errors, ZERO) / len(errors)
    return max(MIN_CONFIDENCE, 1 - mean_error).quantize(PRECISION)
