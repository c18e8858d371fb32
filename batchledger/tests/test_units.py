"""
Tests for UnitConverter.
"""

from decimal import Decimal

import pytest

from batchledger.units import (
    AlternativeUnit,
    ConversionCache,
    ProductUnits,
    Unit,
    UnitConverter,
    get_unit_converter,
)


@pytest.fixture
def converter():
    return UnitConverter()


@pytest.fixture
def egg_units():
    return ProductUnits(
        base=Unit('unit', 'Pieza'),
        alternatives=(
            AlternativeUnit('dozen', Decimal('12')),
            AlternativeUnit('box', Decimal('360')),
        ),
    )


@pytest.fixture
def flour_units():
    return ProductUnits(
        base=Unit('kg', 'Kilogramo'),
        alternatives=(AlternativeUnit('costal', Decimal('25')),),
    )


class TestStandardConversions:
    """Conversions from the global volume and weight tables."""

    def test_same_unit_is_identity(self, converter):
        result = converter.convert(Decimal('3.5'), 'kg', 'kg')

        assert result.success
        assert result.factor == Decimal('1')
        assert result.converted_value == Decimal('3.5')

    def test_kg_to_g(self, converter):
        result = converter.convert(Decimal('2.5'), 'kg', 'g')

        assert result.success
        assert result.converted_value == Decimal('2500')

    def test_ml_to_l(self, converter):
        assert converter.convert(1500, 'ml', 'l').converted_value == Decimal('1.5')

    def test_result_is_rounded_to_six_places(self, converter):
        result = converter.convert(Decimal('1'), 'lb', 'kg')

        assert result.converted_value == Decimal('0.453592')
        assert result.converted_value.as_tuple().exponent == -6

    def test_no_path_between_categories(self, converter):
        result = converter.convert(1, 'g', 'gal')

        assert not result.success
        assert result.error_code == 'NO_CONVERSION_PATH'
        assert result.converted_value == Decimal('0')


class TestInvalidValues:
    """Invalid input never raises; the result carries the error."""

    @pytest.mark.parametrize('value', ['abc', None, float('nan'), float('inf'), True])
    def test_rejects_non_numeric_and_non_finite(self, converter, value):
        result = converter.convert(value, 'kg', 'g')

        assert not result.success
        assert result.error_code == 'INVALID_VALUE'

    def test_rejects_negative_by_default(self, converter):
        result = converter.convert(-2, 'kg', 'g')

        assert not result.success
        assert result.error_code == 'INVALID_VALUE'

    @pytest.mark.parametrize('value,to_unit', [
        (Decimal('1e22'), 'g'),
        (Decimal('1e22'), 'kg'),
        (1e22, 'g'),
    ])
    def test_result_too_large_for_six_places(self, converter, value, to_unit):
        result = converter.convert(value, 'kg', to_unit)

        assert not result.success
        assert result.error_code == 'INVALID_VALUE'
        assert result.converted_value == Decimal('0')
        assert repr(value) in result.error

    def test_negative_allowed_for_signed_deltas(self, converter):
        result = converter.convert(-2, 'kg', 'g', allow_negative=True)

        assert result.success
        assert result.converted_value == Decimal('-2000')


class TestProductUnitGraph:
    """Conversions through a product's base and alternative units."""

    def test_alternative_to_base(self, converter, egg_units):
        assert converter.convert(2, 'dozen', 'unit', egg_units).converted_value == Decimal('24')

    def test_base_to_alternative(self, converter, egg_units):
        assert converter.convert(720, 'unit', 'box', egg_units).converted_value == Decimal('2')

    def test_alternative_to_alternative(self, converter, egg_units):
        """dozen → base → box."""
        assert converter.convert(30, 'dozen', 'box', egg_units).converted_value == Decimal('1')

    def test_product_graph_wins_over_standard_tables(self, converter):
        units = ProductUnits(
            base=Unit('g'),
            alternatives=(AlternativeUnit('kg', Decimal('900')),),
        )
        assert converter.convert(1, 'kg', 'g', units).converted_value == Decimal('900')

    def test_one_intermediate_hop(self, converter, flour_units):
        """costal → kg (product) → g (standard)."""
        result = converter.convert(2, 'costal', 'g', flour_units)

        assert result.success
        assert result.converted_value == Decimal('50000')

    def test_unknown_unit_fails(self, converter, egg_units):
        result = converter.convert(1, 'pallet', 'unit', egg_units)

        assert not result.success
        assert result.error_code == 'NO_CONVERSION_PATH'

    @pytest.mark.parametrize('factor', ['0', '-1'])
    def test_non_positive_factor_has_no_path(self, converter, factor):
        units = ProductUnits(
            base=Unit('unit'),
            alternatives=(AlternativeUnit('bad', Decimal(factor)),),
        )

        for a, b in [('unit', 'bad'), ('bad', 'unit')]:
            result = converter.convert(1, a, b, units)
            assert not result.success
            assert result.error_code == 'NO_CONVERSION_PATH'

        assert 'bad' not in [c['to_unit'] for c in converter.get_available_conversions('unit', units)]
        assert converter.suggest_best_unit(1, 'unit', ['bad'], units) == ('unit', Decimal('1'))

    @pytest.mark.parametrize('value,a,b', [
        (Decimal('3.25'), 'kg', 'g'),
        (Decimal('750'), 'ml', 'l'),
        (Decimal('720'), 'unit', 'box'),
        (Decimal('2'), 'costal', 'kg'),
    ])
    def test_round_trip(self, converter, egg_units, flour_units, value, a, b):
        units = flour_units if 'costal' in (a, b) else egg_units
        there = converter.convert(value, a, b, units).converted_value
        back = converter.convert(there, b, a, units).converted_value

        assert abs(back - value) <= Decimal('0.000001')


class TestConversionCache:
    """The converter memoizes factors per product graph."""

    def test_factor_is_cached(self, converter, egg_units):
        converter.convert(1, 'dozen', 'unit', egg_units)

        stats = converter.cache_stats()
        assert stats['size'] == 1
        assert stats['keys'] == ['dozen_to_unit']

    def test_same_unit_not_cached(self, converter):
        converter.convert(1, 'kg', 'kg')
        assert converter.cache_stats()['size'] == 0

    def test_graphs_do_not_share_entries(self, converter):
        """A factor cached for one product is not reused for another."""
        six = ProductUnits(Unit('unit'), (AlternativeUnit('pack', Decimal('6')),))
        four = ProductUnits(Unit('unit'), (AlternativeUnit('pack', Decimal('4')),))

        assert converter.convert(1, 'pack', 'unit', six).converted_value == Decimal('6')
        assert converter.convert(1, 'pack', 'unit', four).converted_value == Decimal('4')

    def test_invalidate_drops_one_graph(self, converter, egg_units, flour_units):
        converter.convert(1, 'dozen', 'unit', egg_units)
        converter.convert(1, 'costal', 'kg', flour_units)

        assert converter.cache.invalidate(egg_units) == 1
        assert converter.cache_stats()['keys'] == ['costal_to_kg']

    def test_clear(self, converter):
        converter.convert(1, 'kg', 'g')
        converter.clear_cache()
        assert converter.cache_stats()['size'] == 0

    def test_injected_cache(self):
        cache = ConversionCache()
        UnitConverter(cache).convert(1, 'l', 'ml')
        assert cache.stats()['size'] == 1

    def test_default_converter_is_shared(self):
        assert get_unit_converter() is get_unit_converter()


class TestHelpers:
    """Display, parsing and validation helpers."""

    def test_suggest_best_unit(self, converter):
        unit, value = converter.suggest_best_unit(Decimal('1500'), 'g', ['kg', 'g', 'lb'])

        assert unit == 'kg'
        assert value == Decimal('1.5')

    def test_suggest_keeps_current_when_best(self, converter):
        unit, value = converter.suggest_best_unit(Decimal('2'), 'kg', ['g'])

        assert unit == 'kg'
        assert value == Decimal('2')

    def test_validate_product_units_ok(self, converter, egg_units):
        assert converter.validate_product_units(egg_units).is_valid

    def test_validate_product_units_errors(self, converter):
        units = ProductUnits(
            base=Unit('unit'),
            alternatives=(
                AlternativeUnit('unit', Decimal('2')),
                AlternativeUnit('pack', Decimal('0')),
            ),
        )
        validation = converter.validate_product_units(units)

        assert not validation.is_valid
        assert 'Códigos de unidad duplicados' in validation.errors
        assert 'Factor de conversión inválido para pack' in validation.errors

    def test_available_conversions(self, converter, egg_units):
        targets = {c['to_unit']: c for c in converter.get_available_conversions('unit', egg_units)}

        assert targets['dozen']['category'] == 'product'
        assert targets['box']['factor'] == Decimal('1') / Decimal('360')

    def test_available_standard_conversions(self, converter):
        targets = {c['to_unit'] for c in converter.get_available_conversions('kg')}
        assert targets == {'g', 'lb'}

    def test_convert_batch(self, converter):
        results = converter.convert_batch([(1, 'kg'), (500, 'g'), (1, 'l')], 'g')

        assert [r.success for r in results] == [True, True, False]
        assert results[0].converted_value == Decimal('1000')

    def test_inverse_factor(self):
        assert UnitConverter.inverse_factor(Decimal('4')) == Decimal('0.25')
        assert UnitConverter.inverse_factor(Decimal('0')) == Decimal('0')

    def test_format_quantity(self):
        assert UnitConverter.format_quantity(Decimal('1234.50'), 'kg') == '1,234.5 kg'
        assert UnitConverter.format_quantity(2, 'l') == '2 l'

    def test_format_quantity_large_and_non_finite(self):
        assert UnitConverter.format_quantity(Decimal('1e22'), 'kg') == '10,000,000,000,000,000,000,000 kg'
        assert UnitConverter.format_quantity(float('nan'), 'kg') == 'nan kg'
        assert UnitConverter.format_quantity(Decimal('Infinity'), 'l') == 'Infinity l'

    def test_parse_quantity_string(self):
        assert UnitConverter.parse_quantity_string(' 2.5 KG ') == (Decimal('2.5'), 'kg')
        assert UnitConverter.parse_quantity_string('dos kilos') is None
