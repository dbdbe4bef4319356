from decimal import Decimal

import pytest

from farmsales.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from farmsales.models.order import OrderStatus
from farmsales.services.return_processor import ReturnProcessor

from conftest import ADMIN, GUARD, OTHER_REP, SALES_REP


@pytest.fixture
def processor(db, clock):
    return ReturnProcessor(db, clock=clock)


@pytest.fixture
def delivered_item(make_order, seed):
    order = make_order(lines=[(seed.thighs, Decimal("40"))], status=OrderStatus.DELIVERED)
    return order.items[0]


def test_return_updates_item_audit_and_stock(processor, delivered_item, seed, clock):
    record = processor.process_return(delivered_item.id, Decimal("2.5"), "Damaged in transit", SALES_REP)

    assert record.returned_quantity == Decimal("2.500")
    assert record.return_reason == "Damaged in transit"
    assert record.returned_by == SALES_REP.id
    assert record.returned_at == clock.now()
    assert delivered_item.returned_quantity == Decimal("2.500")
    assert seed.thighs.quantity == Decimal("502.500")


def test_returns_accumulate_up_to_the_ordered_quantity(processor, delivered_item):
    processor.process_return(delivered_item.id, Decimal("30"), "Customer refused", SALES_REP)
    processor.process_return(delivered_item.id, Decimal("10"), "Customer refused", SALES_REP)

    assert delivered_item.returned_quantity == Decimal("40")
    assert len(processor.list_returns(delivered_item.id, SALES_REP)) == 2

    with pytest.raises(ValidationError):
        processor.process_return(delivered_item.id, Decimal("0.001"), "One more", SALES_REP)


def test_return_exceeding_the_returnable_quantity_is_rejected(processor, delivered_item, seed):
    with pytest.raises(ValidationError) as exc:
        processor.process_return(delivered_item.id, Decimal("40.001"), "Too much", SALES_REP)
    assert exc.value.field == "quantity"
    assert seed.thighs.quantity == Decimal("500")


@pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-1")])
def test_return_quantity_must_be_positive(processor, delivered_item, quantity):
    with pytest.raises(ValidationError):
        processor.process_return(delivered_item.id, quantity, "Damaged", SALES_REP)


def test_return_reason_is_required(processor, delivered_item):
    with pytest.raises(ValidationError) as exc:
        processor.process_return(delivered_item.id, Decimal("1"), "   ", SALES_REP)
    assert exc.value.field == "reason"
    assert processor.list_returns(delivered_item.id, SALES_REP) == []


def test_unknown_item(processor, seed):
    with pytest.raises(NotFoundError):
        processor.process_return(9999, Decimal("1"), "Damaged", SALES_REP)
    with pytest.raises(NotFoundError):
        processor.list_returns(9999, SALES_REP)


def test_security_guard_cannot_record_returns(processor, delivered_item, seed):
    with pytest.raises(ForbiddenError):
        processor.process_return(delivered_item.id, Decimal("1"), "Damaged", GUARD)
    with pytest.raises(ForbiddenError):
        processor.list_returns(delivered_item.id, GUARD)
    assert seed.thighs.quantity == Decimal("500")


def test_rep_cannot_return_goods_on_another_reps_order(processor, delivered_item, seed):
    with pytest.raises(ForbiddenError):
        processor.process_return(delivered_item.id, Decimal("1"), "Damaged", OTHER_REP)
    with pytest.raises(ForbiddenError):
        processor.list_returns(delivered_item.id, OTHER_REP)
    assert delivered_item.returned_quantity == Decimal("0")
    assert seed.thighs.quantity == Decimal("500")


def test_admin_can_return_goods_on_any_order(processor, delivered_item, seed):
    record = processor.process_return(delivered_item.id, Decimal("5"), "Short shelf life", ADMIN)

    assert record.returned_by == ADMIN.id
    assert seed.thighs.quantity == Decimal("505.000")
    assert len(processor.list_returns(delivered_item.id, ADMIN)) == 1


@pytest.mark.parametrize("status", [
    OrderStatus.PENDING,
    OrderStatus.PRODUCTS_LOADED,
    OrderStatus.DEPARTED_FARM,
    OrderStatus.CANCELLED,
])
def test_goods_cannot_be_returned_before_delivery(processor, make_order, seed, status):
    order = make_order(lines=[(seed.thighs, Decimal("40"))], status=status)
    item = order.items[0]

    with pytest.raises(ValidationError) as exc:
        processor.process_return(item.id, Decimal("1"), "Damaged", ADMIN)

    assert exc.value.field == "status"
    assert item.returned_quantity == Decimal("0")
    assert seed.thighs.quantity == Decimal("500")
    assert processor.list_returns(item.id, ADMIN) == []


@pytest.mark.parametrize("status", [OrderStatus.DELIVERED_NOT_PAID, OrderStatus.COMPLETED])
def test_returns_allowed_after_delivery(processor, make_order, seed, status):
    order = make_order(lines=[(seed.thighs, Decimal("40"))], status=status)

    processor.process_return(order.items[0].id, Decimal("1"), "Damaged", SALES_REP)

    assert order.items[0].returned_quantity == Decimal("1.000")
