"""
Order pricing: line totals, discounts, delivered-weight overrides and VAT.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..config.settings import get_settings
from ..utils.money_utils import to_decimal, quantize_money, ZERO, HUNDRED

settings = get_settings()

ONE = Decimal("1")


class WeighedGoodsPolicy:
    """
    Decides which products are billed on delivered weight.

    A product qualifies when its category code is in the configured set or
    its category name contains the keyword (case-insensitive).
    """

    def __init__(self, category_codes: Iterable[str] = None, name_keyword: str = None):
        codes = settings.WEIGHED_GOODS_CATEGORIES if category_codes is None else category_codes
        self.category_codes = frozenset(code.upper() for code in codes)
        keyword = settings.WEIGHED_GOODS_NAME_KEYWORD if name_keyword is None else name_keyword
        self.name_keyword = (keyword or "").lower()

    def is_weighed(self, product) -> bool:
        code = getattr(product, "category_code", None)
        if code and code.upper() in self.category_codes:
            return True
        name = getattr(product, "category_name", None) or ""
        return bool(self.name_keyword) and self.name_keyword in name.lower()


@dataclass(frozen=True)
class PricedLine:
    item_id: Optional[int]
    product_name: str
    billed_quantity: Decimal
    price: Decimal
    discount: Optional[Decimal]
    line_total: Decimal
    weight_override_applied: bool


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal
    lines: List[PricedLine] = field(default_factory=list)


class PricingEngine:
    """Pure pricing over item snapshots; money is Decimal and only the reported figures are rounded."""

    def __init__(self, vat_rate: Decimal = None, weighed_goods: WeighedGoodsPolicy = None):
        self.vat_rate = to_decimal(settings.VAT_RATE if vat_rate is None else vat_rate)
        self.weighed_goods = weighed_goods or WeighedGoodsPolicy()

    def effective_quantity(self, item, override_weight=None) -> Tuple[Decimal, bool]:
        """Billable quantity and whether a delivered weight replaced the ordered quantity."""
        override = to_decimal(override_weight, default=None)
        if override is not None and override > 0 and self.weighed_goods.is_weighed(item.product):
            return override, True
        return to_decimal(item.quantity), False

    def line_total(self, item, override_weight=None) -> Decimal:
        quantity, _ = self.effective_quantity(item, override_weight)
        total = quantity * to_decimal(item.price)
        if item.discount:
            total = total * (ONE - to_decimal(item.discount) / HUNDRED)
        return total

    def order_subtotal(self, items: Sequence, weight_overrides: Mapping = None) -> Decimal:
        weight_overrides = weight_overrides or {}
        return sum(
            (self.line_total(item, weight_overrides.get(getattr(item, "id", None))) for item in items),
            ZERO
        )

    def order_total(self, items: Sequence, is_vat_applicable: bool, weight_overrides: Mapping = None) -> Decimal:
        return self.price_order(items, is_vat_applicable, weight_overrides).total

    def apply_vat(self, subtotal, is_vat_applicable: bool) -> Tuple[Decimal, Decimal]:
        """(total, vat_amount) for an unrounded subtotal."""
        subtotal = to_decimal(subtotal)
        if not is_vat_applicable:
            total = quantize_money(subtotal)
            return total, quantize_money(ZERO)
        total = quantize_money(subtotal * (ONE + self.vat_rate))
        return total, total - quantize_money(subtotal)

    def price_order(self, items: Sequence, is_vat_applicable: bool, weight_overrides: Mapping = None) -> PriceBreakdown:
        weight_overrides = weight_overrides or {}
        lines = []
        subtotal = ZERO
        for item in items:
            item_id = getattr(item, "id", None)
            override = weight_overrides.get(item_id)
            quantity, applied = self.effective_quantity(item, override)
            line_total = self.line_total(item, override)
            subtotal += line_total
            lines.append(PricedLine(
                item_id=item_id,
                product_name=getattr(item.product, "name", ""),
                billed_quantity=quantity,
                price=to_decimal(item.price),
                discount=to_decimal(item.discount, default=None),
                line_total=quantize_money(line_total),
                weight_override_applied=applied,
            ))

        total, vat_amount = self.apply_vat(subtotal, is_vat_applicable)
        return PriceBreakdown(
            subtotal=quantize_money(subtotal),
            vat_amount=vat_amount,
            total=total,
            lines=lines,
        )

    def extract_vat(self, total) -> Tuple[Decimal, Decimal]:
        """Split a VAT-inclusive grand total into (subtotal, vat_amount)."""
        total = quantize_money(total)
        subtotal = quantize_money(total / (ONE + self.vat_rate))
        return subtotal, total - subtotal

    def stored_weight_overrides(self, items: Sequence) -> Dict[Optional[int], Decimal]:
        """Delivered weights already recorded on the items."""
        return {
            getattr(item, "id", None): to_decimal(item.final_delivery_weight_kg)
            for item in items
            if item.final_delivery_weight_kg
        }
