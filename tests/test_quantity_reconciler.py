from decimal import Decimal

import pytest

from farmsales.core.exceptions import EmptyOrderError, ToleranceExceededError, ValidationError
from farmsales.models.product import UnitType
from farmsales.services.quantity_reconciler import CommonUnit, QuantityReconciler

reconciler = QuantityReconciler()


def test_scenario_b_actual_within_tolerance_is_spread_proportionally(make_item):
    items = [make_item(40, id=1), make_item(60, id=2)]
    summary = reconciler.summarize(items)
    assert summary.suggested_total == Decimal("100")
    assert summary.common_unit == CommonUnit.KG

    reconciler.validate_actual(Decimal("95"), summary.suggested_total, summary.common_unit)
    actual = reconciler.actual_quantities(items, Decimal("95"))
    assert actual == {1: Decimal("38.000"), 2: Decimal("57.000")}


def test_scenario_c_actual_beyond_tolerance_is_rejected(make_item):
    items = [make_item(40), make_item(60)]
    summary = reconciler.summarize(items)
    with pytest.raises(ValidationError) as exc:
        reconciler.validate_actual(Decimal("140"), summary.suggested_total, summary.common_unit)
    assert isinstance(exc.value, ToleranceExceededError)
    assert exc.value.error_code == "TOLERANCE_EXCEEDED"


def test_difference_of_exactly_the_tolerance_is_accepted(make_item):
    summary = reconciler.summarize([make_item(100)])
    reconciler.validate_actual(Decimal("130"), summary.suggested_total, summary.common_unit)
    reconciler.validate_actual(Decimal("70"), summary.suggested_total, summary.common_unit)


def test_non_positive_actual_is_rejected(make_item):
    summary = reconciler.summarize([make_item(100)])
    for actual in (Decimal("0"), Decimal("-5")):
        with pytest.raises(ValidationError):
            reconciler.validate_actual(actual, summary.suggested_total, summary.common_unit)


def test_quantities_stay_in_native_units(make_item):
    items = [
        make_item(10, id=1, unit=UnitType.PACKS, weight_per_pack_kg="0.5"),
        make_item(95, id=2),
    ]
    assert reconciler.suggested_total(items) == Decimal("100")

    actual = reconciler.actual_quantities(items, Decimal("110"))
    assert actual[1] == Decimal("11.000")
    assert actual[2] == Decimal("104.500")


def test_results_are_rounded_half_up_to_three_places(make_item):
    items = [make_item(1, id=1), make_item(2, id=2)]
    actual = reconciler.actual_quantities(items, Decimal("3.0001"))
    assert actual[1] == Decimal("1.000")
    assert actual[2] == Decimal("2.000")

    actual = reconciler.actual_quantities([make_item(3, id=1)], Decimal("1.0005"))
    assert actual[1] == Decimal("1.001")


def test_unconvertible_products_report_units_and_skip_tolerance(make_item):
    items = [make_item(40), make_item(2, unit=UnitType.PACKS, name="Farm Hamper")]
    summary = reconciler.summarize(items)
    assert summary.common_unit == CommonUnit.UNITS
    assert not summary.all_convertible
    assert summary.suggested_total == Decimal("42")

    # far outside the Kg band, but no tolerance applies in Units
    reconciler.validate_actual(Decimal("500"), summary.suggested_total, summary.common_unit)


def test_empty_order_cannot_be_reconciled():
    with pytest.raises(EmptyOrderError):
        reconciler.reconcile([], Decimal("10"), order_code="SO-000009")
