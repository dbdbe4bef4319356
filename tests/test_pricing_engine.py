from decimal import Decimal

from farmsales.models.product import UnitType
from farmsales.services.pricing_engine import PricingEngine, WeighedGoodsPolicy

pricing = PricingEngine(vat_rate=Decimal("0.18"), weighed_goods=WeighedGoodsPolicy(["BT", "LD"], "chicken"))


def test_scenario_a_subtotal_and_vat_inclusive_total(make_item):
    items = [make_item(10, price=100), make_item(5, price=200)]
    breakdown = pricing.price_order(items, is_vat_applicable=True)
    assert breakdown.subtotal == Decimal("2000.00")
    assert breakdown.vat_amount == Decimal("360.00")
    assert breakdown.total == Decimal("2360.00")
    assert pricing.order_total(items, True) == Decimal("2360.00")


def test_without_vat_total_equals_subtotal(make_item):
    breakdown = pricing.price_order([make_item(10, price=100)], is_vat_applicable=False)
    assert breakdown.total == Decimal("1000.00")
    assert breakdown.vat_amount == Decimal("0.00")


def test_discount_is_a_percentage_of_the_line(make_item):
    item = make_item(10, price=100, discount=10)
    assert pricing.line_total(item) == Decimal("900")
    assert pricing.price_order([item], False).total == Decimal("900.00")


def test_totals_round_half_up_to_the_cent(make_item):
    item = make_item(1, price="0.125")
    assert pricing.price_order([item], False).total == Decimal("0.13")


def test_delivered_weight_replaces_quantity_for_weighed_goods(make_item):
    thighs = make_item(10, price=100, id=1, category_code="BT")
    eggs = make_item(5, price=200, id=2, category_code="EG")
    breakdown = pricing.price_order([thighs, eggs], False, {1: Decimal("9.5"), 2: Decimal("4")})

    assert breakdown.subtotal == Decimal("1950.00")
    by_id = {line.item_id: line for line in breakdown.lines}
    assert by_id[1].weight_override_applied
    assert by_id[1].billed_quantity == Decimal("9.5")
    assert not by_id[2].weight_override_applied
    assert by_id[2].billed_quantity == Decimal("5")


def test_zero_weight_override_is_ignored(make_item):
    thighs = make_item(10, price=100, id=1, category_code="BT")
    assert pricing.order_subtotal([thighs], {1: Decimal("0")}) == Decimal("1000")


def test_category_name_keyword_marks_weighed_goods(make_item):
    policy = pricing.weighed_goods
    breast = make_item(1, category_code="CB", category_name="Chicken Breast").product
    eggs = make_item(1, category_code="EG", category_name="Eggs").product
    packs = make_item(1, unit=UnitType.PACKS, category_code="ld").product
    assert policy.is_weighed(breast)
    assert not policy.is_weighed(eggs)
    assert policy.is_weighed(packs)


def test_extract_vat_splits_an_inclusive_total():
    assert pricing.extract_vat(Decimal("2360.00")) == (Decimal("2000.00"), Decimal("360.00"))
