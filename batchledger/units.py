"""
Unit conversion — factors between units of measure.

Resolves a conversion factor either from a product's own unit graph
(one base unit plus alternatives with fixed factors) or from the global
standard tables for volume and weight.

Usage:
    from batchledger.units import get_unit_converter

    converter = get_unit_converter()
    result = converter.convert(Decimal('2.5'), 'kg', 'g')
    if result.success:
        result.converted_value  # Decimal('2500.000000')

Conversion failures are expected input problems, so ``convert()`` never
raises: callers check ``result.success``.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, localcontext
from typing import Iterable

logger = logging.getLogger('batchledger')

PRECISION = Decimal('0.000001')

# (from, to) -> factor, applied as value * factor
STANDARD_CONVERSIONS: dict[str, dict[tuple[str, str], Decimal]] = {
    'volume': {
        ('ml', 'l'): Decimal('0.001'),
        ('l', 'ml'): Decimal('1000'),
        ('l', 'gal'): Decimal('0.264172'),
        ('gal', 'l'): Decimal('3.78541'),
        ('ml', 'gal'): Decimal('0.000264172'),
        ('gal', 'ml'): Decimal('3785.41'),
    },
    'weight': {
        ('g', 'kg'): Decimal('0.001'),
        ('kg', 'g'): Decimal('1000'),
        ('kg', 'lb'): Decimal('2.20462'),
        ('lb', 'kg'): Decimal('0.453592'),
        ('g', 'lb'): Decimal('0.00220462'),
        ('lb', 'g'): Decimal('453.592'),
    },
}

COMMON_UNITS = {
    'volume': {'ml': 'Mililitros', 'l': 'Litros', 'gal': 'Galones'},
    'weight': {'g': 'Gramos', 'kg': 'Kilogramos', 'lb': 'Libras'},
    'piece': {'unit': 'Unidad', 'box': 'Caja', 'pack': 'Paquete'},
}

# Units tried as the middle hop when no direct factor exists
INTERMEDIATE_UNITS = ('ml', 'l', 'g', 'kg', 'unit')

# Units preferred when suggesting a display unit
PREFERRED_DISPLAY_UNITS = ('unit', 'kg', 'l', 'ml', 'g')

_QUANTITY_RE = re.compile(r'^(\d+(?:\.\d+)?)\s*([a-zA-Z]+)$')


# ══════════════════════════════════════════════════════════════
# VALUE TYPES
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Unit:
    """A unit of measure."""

    code: str
    name: str = ''


@dataclass(frozen=True)
class AlternativeUnit:
    """Alternative unit; ``conversion_factor`` base units make one of it."""

    code: str
    conversion_factor: Decimal
    name: str = ''


@dataclass(frozen=True)
class ProductUnits:
    """
    A product's unit graph: one base unit plus alternatives.

    Example (eggs stored by the unit, bought by the dozen and the box):
        ProductUnits(
            base=Unit('unit', 'Pieza'),
            alternatives=(
                AlternativeUnit('dozen', Decimal('12')),
                AlternativeUnit('box', Decimal('360')),
            ),
        )
    """

    base: Unit
    alternatives: tuple[AlternativeUnit, ...] = ()

    @property
    def codes(self) -> list[str]:
        return [self.base.code] + [alt.code for alt in self.alternatives]

    def alternative(self, code: str) -> AlternativeUnit | None:
        for alt in self.alternatives:
            if alt.code == code:
                return alt
        return None

    def signature(self) -> tuple:
        """Hashable identity of the graph, used to scope cached factors."""
        return (
            self.base.code,
            tuple((alt.code, str(alt.conversion_factor)) for alt in self.alternatives),
        )


@dataclass(frozen=True)
class ConversionResult:
    """Result of a conversion. Check ``success`` before using the value."""

    success: bool
    converted_value: Decimal
    from_unit: str
    to_unit: str
    factor: Decimal
    error: str | None = None
    error_code: str | None = None  # "INVALID_VALUE", "NO_CONVERSION_PATH"


@dataclass(frozen=True)
class UnitValidation:
    """Result of validating a product unit graph."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)


# ══════════════════════════════════════════════════════════════
# CACHE
# ══════════════════════════════════════════════════════════════


class ConversionCache:
    """
    Memoized factors keyed by (graph signature, from_unit, to_unit).

    Safe for concurrent readers; concurrent writers for the same key store
    the same deterministic value, so last write wins.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._factors: dict[tuple, Decimal] = {}

    def get(self, key: tuple) -> Decimal | None:
        return self._factors.get(key)

    def set(self, key: tuple, factor: Decimal) -> None:
        with self._lock:
            self._factors[key] = factor

    def clear(self) -> None:
        with self._lock:
            self._factors.clear()

    def invalidate(self, product_units: ProductUnits) -> int:
        """Drop the entries computed for one product graph."""
        signature = product_units.signature()
        with self._lock:
            stale = [key for key in self._factors if key[0] == signature]
            for key in stale:
                del self._factors[key]
        return len(stale)

    def stats(self) -> dict:
        keys = list(self._factors)
        return {
            'size': len(keys),
            'keys': [f"{from_unit}_to_{to_unit}" for _, from_unit, to_unit in keys],
        }


# ══════════════════════════════════════════════════════════════
# CONVERTER
# ══════════════════════════════════════════════════════════════


class UnitConverter:
    """Converts quantities between units. Owns its factor cache."""

    def __init__(self, cache: ConversionCache | None = None):
        self.cache = cache if cache is not None else ConversionCache()

    def convert(self, value, from_unit: str, to_unit: str,
                product_units: ProductUnits | None = None,
                allow_negative: bool = False) -> ConversionResult:
        """
        Convert ``value`` from ``from_unit`` to ``to_unit``.

        Args:
            value: int, float or Decimal. Must be finite.
            from_unit: Source unit code
            to_unit: Target unit code
            product_units: Product unit graph, tried before standard tables
            allow_negative: Accept negative values (signed adjustment deltas)

        Returns:
            ConversionResult; converted_value is rounded to 6 decimal places.
        """
        number = self._to_decimal(value)
        if number is None or (number < 0 and not allow_negative):
            return self._invalid_value(value, from_unit, to_unit)

        factor = self.get_conversion_factor(from_unit, to_unit, product_units)
        if factor is None:
            logger.warning(
                "units.convert.no_path",
                extra={"from_unit": from_unit, "to_unit": to_unit},
            )
            return ConversionResult(
                success=False,
                converted_value=Decimal('0'),
                from_unit=from_unit,
                to_unit=to_unit,
                factor=Decimal('0'),
                error=f"No se encontró conversión de {from_unit} a {to_unit}",
                error_code='NO_CONVERSION_PATH',
            )

        try:
            converted = (number * factor).quantize(PRECISION)
        except ArithmeticError:
            # result does not fit the decimal context at 6 places
            return self._invalid_value(value, from_unit, to_unit)

        return ConversionResult(
            success=True,
            converted_value=converted,
            from_unit=from_unit,
            to_unit=to_unit,
            factor=factor,
        )

    def get_conversion_factor(self, from_unit: str, to_unit: str,
                              product_units: ProductUnits | None = None) -> Decimal | None:
        """
        Factor such that ``value_in_to = value_in_from * factor``.

        Resolution order: identical units, product graph, standard tables,
        then one intermediate hop. Returns None when no path exists.
        """
        if from_unit == to_unit:
            return Decimal('1')

        scope = product_units.signature() if product_units else None
        key = (scope, from_unit, to_unit)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        factor = self._direct_factor(from_unit, to_unit, product_units)
        if factor is None:
            factor = self._indirect_factor(from_unit, to_unit, product_units)

        if factor is not None:
            self.cache.set(key, factor)
        return factor

    def suggest_best_unit(self, value, current_unit: str, available_units: Iterable[str],
                          product_units: ProductUnits | None = None) -> tuple[str, Decimal]:
        """
        Pick the unit that displays ``value`` most readably.

        Scores magnitudes in 1..1000 highest, rewards common units and
        penalizes long decimal tails.

        Returns:
            (unit, value_in_that_unit)
        """
        best_unit = current_unit
        best_value = self._to_decimal(value) or Decimal('0')
        best_score = self._display_score(best_value, current_unit)

        for unit in available_units:
            if unit == current_unit:
                continue
            result = self.convert(value, current_unit, unit, product_units)
            if not result.success:
                continue
            score = self._display_score(result.converted_value, unit)
            if score > best_score:
                best_unit, best_value, best_score = unit, result.converted_value, score

        return best_unit, best_value

    def validate_product_units(self, product_units: ProductUnits) -> UnitValidation:
        """Check a unit graph for duplicate codes and invalid factors."""
        errors = []

        codes = product_units.codes
        if len(set(codes)) != len(codes):
            errors.append('Códigos de unidad duplicados')

        for alt in product_units.alternatives:
            factor = self._to_decimal(alt.conversion_factor)
            if factor is None or factor <= 0:
                errors.append(f'Factor de conversión inválido para {alt.code}')
                continue
            result = self.convert(1, product_units.base.code, alt.code, product_units)
            if not result.success:
                errors.append(f'No se puede convertir de {product_units.base.code} a {alt.code}')

        return UnitValidation(is_valid=not errors, errors=errors)

    def get_available_conversions(self, from_unit: str,
                                  product_units: ProductUnits | None = None) -> list[dict]:
        """Every unit reachable from ``from_unit`` with its factor and category."""
        conversions = []

        if product_units:
            for code in product_units.codes:
                if code == from_unit:
                    continue
                factor = self.get_conversion_factor(from_unit, code, product_units)
                if factor is not None:
                    conversions.append({'to_unit': code, 'factor': factor, 'category': 'product'})

        for category, units in COMMON_UNITS.items():
            for code in units:
                if code == from_unit:
                    continue
                factor = self._standard_factor(from_unit, code)
                if factor is not None:
                    conversions.append({'to_unit': code, 'factor': factor, 'category': category})

        return conversions

    def convert_batch(self, values: Iterable[tuple], to_unit: str,
                      product_units: ProductUnits | None = None) -> list[ConversionResult]:
        """Convert many ``(value, from_unit)`` pairs to one target unit."""
        return [
            self.convert(value, from_unit, to_unit, product_units)
            for value, from_unit in values
        ]

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> dict:
        return self.cache.stats()

    @staticmethod
    def inverse_factor(factor: Decimal) -> Decimal:
        return Decimal('1') / factor if factor else Decimal('0')

    @staticmethod
    def format_quantity(value, unit: str, decimals: int = 2) -> str:
        """
        Format as "1,234.5 kg": thousands separator, trailing zeros dropped.

        Values that are not finite numbers are echoed as given.
        """
        number = UnitConverter._to_decimal(value)
        if number is None:
            return f"{value} {unit}"
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, number.adjusted() + decimals + 2)
            number = number.quantize(Decimal(1).scaleb(-decimals))
        text = f"{number:,.{decimals}f}"
        if '.' in text:
            text = text.rstrip('0').rstrip('.')
        return f"{text} {unit}"

    @staticmethod
    def parse_quantity_string(text: str) -> tuple[Decimal, str] | None:
        """Parse "2.5 kg" into (Decimal('2.5'), 'kg'). None if malformed."""
        match = _QUANTITY_RE.match(text.strip())
        if not match:
            return None
        return Decimal(match.group(1)), match.group(2).lower()

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    @staticmethod
    def _invalid_value(value, from_unit: str, to_unit: str) -> ConversionResult:
        logger.warning(
            "units.convert.invalid_value",
            extra={"value": repr(value), "from_unit": from_unit, "to_unit": to_unit},
        )
        return ConversionResult(
            success=False,
            converted_value=Decimal('0'),
            from_unit=from_unit,
            to_unit=to_unit,
            factor=Decimal('0'),
            error=f"Valor inválido para conversión: {value!r}",
            error_code='INVALID_VALUE',
        )

    def _direct_factor(self, from_unit: str, to_unit: str,
                       product_units: ProductUnits | None) -> Decimal | None:
        if product_units:
            factor = self._product_factor(from_unit, to_unit, product_units)
            if factor is not None:
                return factor
        return self._standard_factor(from_unit, to_unit)

    def _indirect_factor(self, from_unit: str, to_unit: str,
                         product_units: ProductUnits | None) -> Decimal | None:
        for intermediate in INTERMEDIATE_UNITS:
            if intermediate in (from_unit, to_unit):
                continue
            first = self._direct_factor(from_unit, intermediate, product_units)
            if first is None:
                continue
            second = self._direct_factor(intermediate, to_unit, product_units)
            if second is not None:
                return first * second
        return None

    @classmethod
    def _product_factor(cls, from_unit: str, to_unit: str,
                        product_units: ProductUnits) -> Decimal | None:
        base = product_units.base.code
        if from_unit == to_unit:
            return Decimal('1')

        # non-positive factors are unusable and contribute no path
        from_factor = cls._positive_factor(product_units.alternative(from_unit))
        to_factor = cls._positive_factor(product_units.alternative(to_unit))

        if from_unit == base and to_factor:
            return Decimal('1') / to_factor
        if to_unit == base and from_factor:
            return from_factor
        if from_factor and to_factor:
            # alt1 -> base -> alt2
            return from_factor / to_factor
        return None

    @staticmethod
    def _standard_factor(from_unit: str, to_unit: str) -> Decimal | None:
        for table in STANDARD_CONVERSIONS.values():
            if (from_unit, to_unit) in table:
                return table[(from_unit, to_unit)]
        for table in STANDARD_CONVERSIONS.values():
            if (to_unit, from_unit) in table:
                return Decimal('1') / table[(to_unit, from_unit)]
        return None

    @staticmethod
    def _to_decimal(value) -> Decimal | None:
        """Finite Decimal from a number, or None when invalid."""
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
            return None
        try:
            number = value if isinstance(value, Decimal) else Decimal(str(value))
        except InvalidOperation:
            return None
        if not number.is_finite():
            return None
        return number

    @classmethod
    def _positive_factor(cls, alternative: AlternativeUnit | None) -> Decimal | None:
        factor = cls._to_decimal(alternative.conversion_factor) if alternative else None
        return factor if factor is not None and factor > 0 else None

    @staticmethod
    def _display_score(value: Decimal, unit: str) -> int:
        magnitude = abs(value)
        if 1 <= magnitude <= 1000:
            score = 100
        elif Decimal('0.1') <= magnitude < 1:
            score = 50
        elif 1000 < magnitude <= 10000:
            score = 30
        else:
            score = 10

        if unit in PREFERRED_DISPLAY_UNITS:
            score += 20

        exponent = value.normalize().as_tuple().exponent
        decimal_places = -exponent if isinstance(exponent, int) and exponent < 0 else 0
        if decimal_places > 3:
            score -= decimal_places * 5

        return score


# ══════════════════════════════════════════════════════════════
# DEFAULT INSTANCE
# ══════════════════════════════════════════════════════════════

_lock = threading.Lock()
_converter: UnitConverter | None = None


def get_unit_converter() -> UnitConverter:
    """Return the process-wide converter (created on first use)."""
    global _converter

    if _converter is None:
        with _lock:
            if _converter is None:  # double-checked
                _converter = UnitConverter()
    return _converter


def reset_unit_converter() -> None:
    """Drop the process-wide converter. Useful for testing."""
    global _converter
    _converter = None
