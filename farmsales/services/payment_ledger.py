"""
Payment ledger: records collections against orders and consolidated order
groups, derives payment status and issues receipt numbers.

The ledger works on rows the caller has already locked and only flushes;
the calling service owns the transaction.
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from ..config.logging import get_logger
from ..config.settings import get_settings
from ..core.exceptions import InvalidAmountError, OrderNotFoundError, ValidationError
from ..models.order import (
    Order, OrderPayment, OrderStatus, PaymentMethod, PaymentStatus, DELIVERED_STATUSES
)
from ..models.on_demand import OnDemandOrder, OnDemandOrderPayment
from ..repositories.payment_repo import payment_repository, group_payment_repository
from ..schemas.payment import (
    PaymentRequest, PaymentReceipt, BillLine, GroupPaymentReceipt, RowDistribution
)
from ..schemas.snapshots import OrderSnapshot
from ..utils.date_utils import FarmClock, get_clock
from ..utils.money_utils import to_decimal, quantize_money, ZERO
from .pricing_engine import PricingEngine, PriceBreakdown

logger = get_logger(__name__)
settings = get_settings()

PAYMENT_STATUS_TEXT = {
    PaymentStatus.UNPAID: "Unpaid",
    PaymentStatus.PARTIALLY_PAID: "Partially Paid",
    PaymentStatus.FULLY_PAID: "Fully Paid",
}


def derive_payment_status(collected, total, epsilon: Decimal = None) -> PaymentStatus:
    """Nothing collected is unpaid; within epsilon of the total is fully paid."""
    epsilon = settings.PAYMENT_EPSILON if epsilon is None else epsilon
    collected = to_decimal(collected)
    if collected <= 0:
        return PaymentStatus.UNPAID
    if collected >= to_decimal(total) - epsilon:
        return PaymentStatus.FULLY_PAID
    return PaymentStatus.PARTIALLY_PAID


def derive_delivery_status(amount, new_collected, total, epsilon: Decimal = None) -> OrderStatus:
    """Landing status for a delivery payment; the amount collected decides, not the requested status."""
    epsilon = settings.PAYMENT_EPSILON if epsilon is None else epsilon
    if to_decimal(amount) == 0:
        return OrderStatus.DELIVERED_NOT_PAID
    if to_decimal(new_collected) >= to_decimal(total) - epsilon:
        return OrderStatus.DELIVERED
    return OrderStatus.DELIVERED_PARTIALLY_PAID


def receipt_number(prefix: str, prior_payments: int) -> str:
    """``SO-000012-P3`` for the third payment against ``SO-000012``."""
    return f"{prefix}-P{prior_payments + 1}"


def distribute_group_payment(row_totals: Sequence, amount, collected: Optional[Sequence] = None) -> List[Decimal]:
    """
    Split ``amount`` across rows in proportion to each row's total.

    Each share is rounded half-up to the cent and whatever rounding left
    over is added to the last row, so the shares always sum to ``amount``.

    With ``collected`` no row is taken past its own balance: a share that
    would overpay a row is capped there and the excess moves to the rows
    that still owe, last row first. What is left once every row is settled
    (at most the payment tolerance) stays on the last row.
    """
    amount = quantize_money(amount)
    totals = [to_decimal(t) for t in row_totals]
    group_total = sum(totals, ZERO)
    if not totals or group_total <= 0:
        raise InvalidAmountError(amount, "order group has no payable total")

    deltas = [quantize_money(amount * total / group_total) for total in totals]
    residual = amount - sum(deltas, ZERO)
    if residual:
        deltas[-1] += residual
    if collected is None:
        return deltas

    balances = [max(total - to_decimal(paid), ZERO) for total, paid in zip(totals, collected)]
    excess = ZERO
    for i, balance in enumerate(balances):
        if deltas[i] > balance:
            excess += deltas[i] - balance
            deltas[i] = balance

    for i in reversed(range(len(deltas))):
        if excess <= 0:
            break
        room = balances[i] - deltas[i]
        if room > 0:
            moved = min(room, excess)
            deltas[i] += moved
            excess -= moved

    if excess:
        deltas[-1] += excess
    return deltas


class PaymentLedger:
    def __init__(
        self,
        db: Session,
        pricing: PricingEngine = None,
        clock: FarmClock = None,
        epsilon: Decimal = None,
        cheque_max_days: int = None
    ):
        self.db = db
        self.pricing = pricing or PricingEngine()
        self.clock = clock or get_clock()
        self.epsilon = settings.PAYMENT_EPSILON if epsilon is None else epsilon
        self.cheque_max_days = settings.CHEQUE_MAX_DAYS_AFTER_DELIVERY if cheque_max_days is None else cheque_max_days
        self.payment_repo = payment_repository
        self.group_payment_repo = group_payment_repository

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_final_weights(self, order: Order, weights: Mapping[int, Decimal]) -> Dict[int, Decimal]:
        """
        Check delivered weights before they are used for repricing.

        Every weight must be positive and belong to a weighed-goods item of
        this order. A weight already recorded cannot be changed.
        """
        items_by_id = {item.id: item for item in order.items}
        validated = {}
        for item_id, weight in (weights or {}).items():
            item_id = int(item_id)
            item = items_by_id.get(item_id)
            if item is None:
                raise ValidationError(
                    f"Item {item_id} does not belong to order {order.display_id}", field="final_weights"
                )
            if not self.pricing.weighed_goods.is_weighed(item.product):
                raise ValidationError(
                    f"'{item.product.name}' is not sold by delivered weight", field="final_weights"
                )
            weight = to_decimal(weight)
            if weight <= 0:
                raise ValidationError(
                    f"Delivered weight for '{item.product.name}' must be greater than zero", field="final_weights"
                )
            recorded = item.final_delivery_weight_kg
            if recorded is not None and to_decimal(recorded) != weight:
                raise ValidationError(
                    f"Delivered weight for '{item.product.name}' is already recorded as {recorded} Kg",
                    field="final_weights"
                )
            validated[item_id] = weight
        return validated

    def validate_payment_details(
        self,
        amount: Decimal,
        method: Optional[PaymentMethod],
        cheque_number: Optional[str],
        cheque_date: Optional[date],
        reference_date: Optional[date]
    ) -> None:
        if amount <= 0:
            return
        if method is None:
            raise ValidationError("Payment method is required when an amount is collected", field="payment_method")
        if method == PaymentMethod.CHEQUE:
            if not (cheque_number or "").strip():
                raise ValidationError("Cheque number is required for cheque payments", field="cheque_number")
            if cheque_date is None:
                raise ValidationError("Cheque date is required for cheque payments", field="cheque_date")
            reference_date = reference_date or self.clock.today()
            latest = reference_date + timedelta(days=self.cheque_max_days)
            if cheque_date > latest:
                raise ValidationError(
                    f"Cheque date cannot be more than {self.cheque_max_days} days after {reference_date.isoformat()}",
                    field="cheque_date"
                )

    # ------------------------------------------------------------------
    # Single order
    # ------------------------------------------------------------------

    def reprice(self, order: Order, weights: Mapping[int, Decimal] = None) -> PriceBreakdown:
        """Price the order from a snapshot using recorded plus ``weights`` delivered weights."""
        snapshot = OrderSnapshot.model_validate(order)
        overrides = self.pricing.stored_weight_overrides(snapshot.items)
        overrides.update(weights or {})
        return self.pricing.price_order(snapshot.items, snapshot.is_vat_applicable, overrides)

    def record_payment(self, order: Order, actor_id: str, payment: PaymentRequest) -> PaymentReceipt:
        """
        Record one collection against a locked order.

        Delivered weights supplied with the payment are written to the
        items and the order is repriced before the amount is checked.
        A zero amount marks the order as delivered without collection and
        creates no payment row.
        """
        amount = quantize_money(payment.amount)
        if amount < 0:
            raise InvalidAmountError(amount, "amount cannot be negative")

        is_subsequent = order.status in DELIVERED_STATUSES
        weights = self.validate_final_weights(order, payment.final_weights)

        if weights:
            for item in order.items:
                if item.id in weights:
                    item.final_delivery_weight_kg = weights[item.id]
        breakdown = self.reprice(order)
        if weights:
            order.total_amount = breakdown.total
            order.vat_amount = breakdown.vat_amount

        previously_collected = to_decimal(order.collected_amount)
        total = to_decimal(order.total_amount)
        remaining = total - previously_collected

        if amount > remaining + self.epsilon:
            raise InvalidAmountError(amount, f"exceeds the remaining balance of {quantize_money(remaining)}")

        method = payment.payment_method
        if amount == 0:
            if is_subsequent:
                raise InvalidAmountError(amount, "a payment on a delivered order must be greater than zero")
            method = None
        self.validate_payment_details(
            amount, method, payment.cheque_number, payment.cheque_date, order.delivery_date
        )

        now = self.clock.now()
        new_collected = previously_collected + amount
        order.status = derive_delivery_status(amount, new_collected, total, self.epsilon)
        order.payment_status = derive_payment_status(new_collected, total, self.epsilon)
        order.collected_amount = new_collected
        order.payment_method = method
        order.completed_at = now
        order.completed_by = actor_id

        receipt_no = None
        if amount > 0:
            prior = self.payment_repo.count_for_order(self.db, order.id)
            receipt_no = receipt_number(order.display_id, prior)
            self.db.add(OrderPayment(
                order_id=order.id,
                amount=amount,
                payment_method=method,
                receipt_no=receipt_no,
                collected_by=actor_id,
                cheque_number=payment.cheque_number if method == PaymentMethod.CHEQUE else None,
                cheque_date=payment.cheque_date if method == PaymentMethod.CHEQUE else None,
                payment_date=now,
            ))
            order.receipt_no = receipt_no

        self.db.flush()

        logger.info(
            f"Payment on {order.display_id}: amount={amount} receipt={receipt_no} "
            f"status='{order.status.value}' collected={new_collected}/{total}",
            extra={"order_id": order.id, "receipt_no": receipt_no, "user_id": actor_id}
        )

        return PaymentReceipt(
            receipt_no=receipt_no,
            order_id=order.id,
            display_id=order.display_id,
            transaction_amount=amount,
            previously_collected=previously_collected,
            collected_amount=new_collected,
            remaining_balance=quantize_money(total - new_collected),
            payment_status=order.payment_status,
            payment_status_text=PAYMENT_STATUS_TEXT[order.payment_status],
            order_status=order.status,
            payment_method=method,
            subtotal=breakdown.subtotal,
            vat_amount=to_decimal(order.vat_amount),
            total_amount=total,
            lines=self._bill_lines(order, breakdown),
            payment_date=now,
        )

    def _bill_lines(self, order: Order, breakdown: PriceBreakdown) -> List[BillLine]:
        units = {item.id: getattr(item.product.unit_type, "value", item.product.unit_type) for item in order.items}
        return [
            BillLine(
                order_item_id=line.item_id,
                product_name=line.product_name,
                unit="Kg" if line.weight_override_applied else units.get(line.item_id, ""),
                quantity=line.billed_quantity,
                price=line.price,
                discount=line.discount,
                line_total=line.line_total,
                final_weight_applied=line.weight_override_applied,
            )
            for line in breakdown.lines
        ]

    # ------------------------------------------------------------------
    # Consolidated groups
    # ------------------------------------------------------------------

    def record_group_payment(
        self,
        rows: Sequence[OnDemandOrder],
        group_receipt_no: str,
        actor_id: str,
        amount,
        method: PaymentMethod,
        cheque_number: Optional[str] = None,
        cheque_date: Optional[date] = None
    ) -> GroupPaymentReceipt:
        """
        Record one payment against a locked consolidated group.

        The amount is spread over the member rows by ``distribute_group_payment``
        and a single group-level payment row is written.
        """
        if not rows:
            raise OrderNotFoundError(group_receipt_no, resource="Order group")

        amount = quantize_money(amount)
        if amount <= 0:
            raise InvalidAmountError(amount, "amount must be greater than zero")
        self.validate_payment_details(amount, method, cheque_number, cheque_date, self.clock.today())

        group_total = sum((to_decimal(r.total_amount) for r in rows), ZERO)
        previously_collected = sum((to_decimal(r.collected_amount) for r in rows), ZERO)
        remaining = group_total - previously_collected
        if amount > remaining + self.epsilon:
            raise InvalidAmountError(amount, f"exceeds the remaining balance of {quantize_money(remaining)}")

        deltas = distribute_group_payment(
            [r.total_amount for r in rows], amount, [r.collected_amount for r in rows]
        )

        distribution = []
        for row, delta in zip(rows, deltas):
            row.collected_amount = to_decimal(row.collected_amount) + delta
            row.payment_status = derive_payment_status(row.collected_amount, row.total_amount, self.epsilon)
            row.payment_method = method
            distribution.append(RowDistribution(
                order_id=row.id,
                total_amount=to_decimal(row.total_amount),
                delta=delta,
                collected_amount=row.collected_amount,
                payment_status=row.payment_status,
            ))

        now = self.clock.now()
        prior = self.group_payment_repo.count_for_group(self.db, group_receipt_no)
        receipt_no = receipt_number(group_receipt_no, prior)
        self.db.add(OnDemandOrderPayment(
            group_receipt_no=group_receipt_no,
            receipt_no=receipt_no,
            amount=amount,
            payment_method=method,
            collected_by=actor_id,
            cheque_number=cheque_number if method == PaymentMethod.CHEQUE else None,
            cheque_date=cheque_date if method == PaymentMethod.CHEQUE else None,
            payment_date=now,
        ))
        self.db.flush()

        new_collected = previously_collected + amount
        group_status = derive_payment_status(new_collected, group_total, self.epsilon)
        logger.info(
            f"Group payment {receipt_no}: amount={amount} over {len(rows)} rows "
            f"deltas={[str(d) for d in deltas]} status={group_status.value}",
            extra={"receipt_no": receipt_no, "user_id": actor_id}
        )

        return GroupPaymentReceipt(
            receipt_no=receipt_no,
            group_receipt_no=group_receipt_no,
            transaction_amount=amount,
            previously_collected=previously_collected,
            collected_amount=new_collected,
            remaining_balance=quantize_money(group_total - new_collected),
            total_amount=group_total,
            payment_status=group_status,
            payment_method=method,
            rows=distribution,
            payment_date=now,
        )
