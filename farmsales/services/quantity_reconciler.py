"""
Security-check quantity reconciliation.

The guard weighs the loaded vehicle once; the measured total is spread over
the order lines in proportion to what was ordered.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence

from ..config.logging import get_logger
from ..core.exceptions import ValidationError, ToleranceExceededError, EmptyOrderError
from ..utils.money_utils import to_decimal, quantize_mass, ZERO
from .unit_converter import UnitConverter

logger = get_logger(__name__)

# Fixed business rule, not a setting
SECURITY_CHECK_TOLERANCE_KG = Decimal("30")


class CommonUnit(str, Enum):
    KG = "Kg"
    UNITS = "Units"


@dataclass(frozen=True)
class LoadLine:
    item_id: Optional[int]
    product_name: str
    ordered_quantity: Decimal
    normalized_kg: Decimal
    convertible: bool


@dataclass(frozen=True)
class LoadSummary:
    suggested_total: Decimal
    common_unit: CommonUnit
    lines: List[LoadLine]

    @property
    def all_convertible(self) -> bool:
        return self.common_unit == CommonUnit.KG


@dataclass(frozen=True)
class ReconciledLine:
    item_id: Optional[int]
    product_name: str
    ordered_quantity: Decimal
    normalized_kg: Decimal
    actual_quantity: Decimal


class QuantityReconciler:
    """Pure reconciliation over item snapshots (anything with ``quantity`` and ``product``)."""

    def __init__(self, converter: UnitConverter = None, tolerance_kg: Decimal = SECURITY_CHECK_TOLERANCE_KG):
        self.converter = converter or UnitConverter()
        self.tolerance_kg = tolerance_kg

    def normalized_quantity(self, item):
        return self.converter.to_kg(item.quantity, item.product)

    def summarize(self, items: Sequence) -> LoadSummary:
        lines = []
        total = ZERO
        for item in items:
            normalized = self.normalized_quantity(item)
            total += normalized.value
            lines.append(LoadLine(
                item_id=getattr(item, "id", None),
                product_name=getattr(item.product, "name", ""),
                ordered_quantity=to_decimal(item.quantity),
                normalized_kg=normalized.value,
                convertible=normalized.convertible,
            ))

        all_convertible = all(line.convertible for line in lines)
        common_unit = CommonUnit.KG if all_convertible else CommonUnit.UNITS
        if lines and not all_convertible:
            logger.warning(
                "Order mixes unconvertible units; reporting load in Units and skipping the "
                f"{self.tolerance_kg} Kg tolerance check"
            )
        return LoadSummary(suggested_total=total, common_unit=common_unit, lines=lines)

    def suggested_total(self, items: Sequence) -> Decimal:
        return self.summarize(items).suggested_total

    def common_unit(self, items: Sequence) -> CommonUnit:
        return self.summarize(items).common_unit

    def validate_actual(self, actual, suggested, common_unit: CommonUnit) -> None:
        """Reject a non-positive measurement, and in Kg one outside the tolerance band."""
        actual = to_decimal(actual)
        suggested = to_decimal(suggested)
        if actual <= 0:
            raise ValidationError("Actual total must be greater than zero", field="actual_total")
        if common_unit == CommonUnit.KG and abs(actual - suggested) > self.tolerance_kg:
            raise ToleranceExceededError(actual, suggested, self.tolerance_kg)

    def reconcile(self, items: Sequence, actual_total, order_code: str = None) -> List[ReconciledLine]:
        """
        Scale every line by ``actual_total / suggested_total``.

        Quantities stay in each product's native unit and are rounded
        half-up to three decimals.
        """
        summary = self.summarize(items)
        if summary.suggested_total == 0:
            raise EmptyOrderError(order_code)

        ratio = to_decimal(actual_total) / summary.suggested_total
        return [
            ReconciledLine(
                item_id=line.item_id,
                product_name=line.product_name,
                ordered_quantity=line.ordered_quantity,
                normalized_kg=line.normalized_kg,
                actual_quantity=quantize_mass(line.ordered_quantity * ratio),
            )
            for line in summary.lines
        ]

    def actual_quantities(self, items: Sequence, actual_total, order_code: str = None) -> Dict[Optional[int], Decimal]:
        """``reconcile`` keyed by item id."""
        return {line.item_id: line.actual_quantity for line in self.reconcile(items, actual_total, order_code)}
