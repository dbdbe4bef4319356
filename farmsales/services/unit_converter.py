"""
Normalises product quantities from their native unit to kilograms.
"""
from dataclasses import dataclass
from decimal import Decimal

from ..config.logging import get_logger
from ..models.product import UnitType
from ..utils.money_utils import to_decimal

logger = get_logger(__name__)

GRAMS_PER_KG = Decimal("1000")


@dataclass(frozen=True)
class NormalizedQuantity:
    """Quantity expressed in Kg; ``convertible`` is False when the raw quantity was passed through."""
    value: Decimal
    convertible: bool


class UnitConverter:
    """
    Kg items pass through, Packs multiply by ``weight_per_pack_kg`` and
    gram-unit items by ``grams_per_unit / 1000``. A product missing its
    conversion factor degrades to the raw quantity and is reported as
    not convertible.
    """

    def to_kg(self, quantity, product) -> NormalizedQuantity:
        quantity = to_decimal(quantity)
        unit_type = getattr(product, "unit_type", None)

        if unit_type == UnitType.KG:
            return NormalizedQuantity(quantity, True)

        if unit_type == UnitType.PACKS:
            factor = getattr(product, "weight_per_pack_kg", None)
            if factor:
                return NormalizedQuantity(quantity * to_decimal(factor), True)

        elif unit_type == UnitType.GRAM:
            factor = getattr(product, "grams_per_unit", None)
            if factor:
                return NormalizedQuantity(quantity * to_decimal(factor) / GRAMS_PER_KG, True)

        logger.warning(
            f"No Kg conversion for product '{getattr(product, 'name', '?')}' "
            f"(unit {unit_type}); using raw quantity"
        )
        return NormalizedQuantity(quantity, False)
