from decimal import Decimal

from farmsales.models.product import UnitType
from farmsales.schemas.snapshots import ProductSnapshot
from farmsales.services.unit_converter import UnitConverter


converter = UnitConverter()


def test_kg_passes_through():
    result = converter.to_kg(Decimal("40"), ProductSnapshot(name="Thighs", unit_type=UnitType.KG))
    assert result.value == Decimal("40")
    assert result.convertible


def test_packs_use_weight_per_pack():
    product = ProductSnapshot(name="Drumsticks", unit_type=UnitType.PACKS, weight_per_pack_kg=Decimal("0.5"))
    result = converter.to_kg(10, product)
    assert result.value == Decimal("5.0")
    assert result.convertible


def test_gram_units_use_grams_per_unit():
    product = ProductSnapshot(name="Spice Mix", unit_type=UnitType.GRAM, grams_per_unit=Decimal("250"))
    result = converter.to_kg(4, product)
    assert result.value == Decimal("1")
    assert result.convertible


def test_missing_factor_degrades_to_raw_quantity():
    product = ProductSnapshot(name="Farm Hamper", unit_type=UnitType.PACKS)
    result = converter.to_kg(3, product)
    assert result.value == Decimal("3")
    assert not result.convertible


def test_float_quantities_are_converted_exactly():
    product = ProductSnapshot(name="Drumsticks", unit_type=UnitType.PACKS, weight_per_pack_kg=Decimal("0.1"))
    assert converter.to_kg(0.3, product).value == Decimal("0.03")
