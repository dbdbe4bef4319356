"""
Order lifecycle service.

Drives intake, assignment and every status change, applying the side
effects each target status requires. Each mutating operation is one
transaction over a locked order row.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from ..config.database import DatabaseTransaction
from ..config.logging import get_logger, log_security_event, log_performance
from ..core.exceptions import (
    EmptyOrderError, ForbiddenError, InvalidTransitionError, NotFoundError, OrderNotFoundError, ValidationError
)
from ..core.security import Actor
from ..models.order import (
    Order, OrderItem, OrderPayment, OrderStatus, SecurityCheckStatus, DELIVERED_STATUSES
)
from ..repositories.order_repo import order_repository
from ..repositories.payment_repo import payment_repository
from ..repositories.product_repo import product_repository, customer_repository
from ..schemas.order import (
    OrderCreate, TransitionRequest, SecurityCheckPreview, ReconciledLineOut, FinalWeightsPreview
)
from ..schemas.payment import PaymentReceipt
from ..schemas.snapshots import OrderSnapshot, OrderItemSnapshot
from ..utils.date_utils import FarmClock, get_clock
from ..utils.money_utils import to_decimal, quantize_money
from .notification_service import NotificationService
from .order_state_machine import (
    OrderStateMachine, TransitionOption, UserRole, UNRESTRICTED_ROLES, BYPASSABLE_STATUSES,
    STATUS_PRIORITY, parse_role, validate_incomplete_reasons, build_bypass_record
)
from .payment_ledger import PaymentLedger
from .pricing_engine import PricingEngine
from .quantity_reconciler import QuantityReconciler

logger = get_logger(__name__)


@dataclass
class TransitionOutcome:
    order: Order
    receipt: Optional[PaymentReceipt] = None


class OrderService:
    def __init__(
        self,
        db: Session,
        clock: FarmClock = None,
        pricing: PricingEngine = None,
        reconciler: QuantityReconciler = None,
        state_machine: OrderStateMachine = None,
        notifier: NotificationService = None
    ):
        self.db = db
        self.clock = clock or get_clock()
        self.pricing = pricing or PricingEngine()
        self.reconciler = reconciler or QuantityReconciler()
        self.state_machine = state_machine or OrderStateMachine()
        self.ledger = PaymentLedger(db, pricing=self.pricing, clock=self.clock)
        self.notifier = notifier or NotificationService()
        self.order_repo = order_repository
        self.payment_repo = payment_repository
        self.product_repo = product_repository
        self.customer_repo = customer_repository

    # ------------------------------------------------------------------
    # Access helpers
    # ------------------------------------------------------------------

    def _require_role(self, actor: Actor, *roles: UserRole) -> UserRole:
        role = parse_role(actor.role)
        if role not in roles:
            log_security_event("FORBIDDEN_ACTION", user_id=actor.id, role=actor.role)
            raise ForbiddenError(f"Role '{actor.role}' is not allowed to perform this action")
        return role

    def _check_visibility(self, order: Order, actor: Actor) -> None:
        """Sales reps only see the orders assigned to them."""
        if parse_role(actor.role) == UserRole.SALES_REP and order.assigned_to != actor.id:
            raise ForbiddenError(f"Order {order.display_id} is not assigned to you")

    def _load(self, order_id: int, actor: Actor, lock: bool = False) -> Order:
        if lock:
            order = self.order_repo.get_for_update(self.db, order_id)
        else:
            order = self.order_repo.get_with_items(self.db, order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        self._check_visibility(order, actor)
        return order

    # ------------------------------------------------------------------
    # Intake and assignment
    # ------------------------------------------------------------------

    def create_order(self, order_in: OrderCreate, actor: Actor) -> Order:
        """Create a Pending order priced from the product list."""
        if parse_role(actor.role) == UserRole.SECURITY_GUARD:
            raise ForbiddenError("Security guards cannot create orders")

        with DatabaseTransaction(self.db):
            customer = self.customer_repo.get(self.db, order_in.customer_id)
            if not customer:
                raise NotFoundError("Customer", order_in.customer_id)

            order = Order(
                display_id=self.order_repo.next_display_id(self.db),
                customer_id=customer.id,
                ordered_by=actor.id,
                status=OrderStatus.PENDING,
                security_check_status=SecurityCheckStatus.NONE,
                is_vat_applicable=order_in.is_vat_applicable,
                delivery_date=order_in.delivery_date,
                notes=order_in.notes,
                collected_amount=Decimal("0.00"),
            )
            for line in order_in.items:
                product = self.product_repo.get(self.db, line.product_id)
                if not product:
                    raise NotFoundError("Product", line.product_id)
                order.items.append(OrderItem(
                    product=product,
                    quantity=line.quantity,
                    price=line.price if line.price is not None else product.price,
                    discount=line.discount,
                    returned_quantity=Decimal("0"),
                ))

            items = [OrderItemSnapshot.model_validate(item) for item in order.items]
            breakdown = self.pricing.price_order(items, order.is_vat_applicable)
            order.total_amount = breakdown.total
            order.vat_amount = breakdown.vat_amount

            self.db.add(order)
            self.db.flush()

        logger.info(
            f"Order {order.display_id} created by {actor.id}: {len(order.items)} items, total {order.total_amount}",
            extra={"order_id": order.id, "user_id": actor.id}
        )
        return order

    def assign_order(self, order_id: int, sales_rep_id: str, vehicle_number: str, actor: Actor) -> Order:
        """Hand a pending order to a sales rep and vehicle (re-assignment allowed before loading)."""
        self._require_role(actor, *UNRESTRICTED_ROLES)

        with DatabaseTransaction(self.db):
            order = self._load(order_id, actor, lock=True)
            if order.status not in (OrderStatus.PENDING, OrderStatus.ASSIGNED):
                raise InvalidTransitionError(
                    order.display_id, order.status.value, OrderStatus.ASSIGNED.value, actor.role
                )
            order.assigned_to = sales_rep_id
            order.vehicle_number = vehicle_number
            order.status = OrderStatus.ASSIGNED
            self.db.flush()

        logger.info(
            f"Order {order.display_id} assigned to {sales_rep_id} ({vehicle_number}) by {actor.id}",
            extra={"order_id": order.id, "user_id": actor.id}
        )
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: int, actor: Actor) -> Order:
        return self._load(order_id, actor)

    def list_orders(
        self,
        actor: Actor,
        statuses: Optional[List[OrderStatus]] = None,
        skip: int = 0,
        limit: int = 100,
        by_priority: bool = True
    ) -> Dict[str, Any]:
        role = parse_role(actor.role)
        return self.order_repo.list_orders(
            self.db,
            assigned_to=actor.id if role == UserRole.SALES_REP else None,
            statuses=statuses,
            priority=STATUS_PRIORITY if by_priority else None,
            skip=skip,
            limit=limit,
        )

    def available_transitions(self, order_id: int, actor: Actor) -> List[TransitionOption]:
        order = self._load(order_id, actor)
        return self.state_machine.available_transitions(order, actor.role)

    def list_payments(self, order_id: int, actor: Actor) -> List[OrderPayment]:
        order = self._load(order_id, actor)
        return self.payment_repo.list_for_order(self.db, order.id)

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    @log_performance()
    def transition(self, order_id: int, request: TransitionRequest, actor: Actor) -> TransitionOutcome:
        """
        Move an order to ``request.status`` if the actor's menu offers it.

        For delivered targets the payment decides the landing status, so the
        returned order may not carry the requested status.
        """
        receipt = None
        with DatabaseTransaction(self.db):
            order = self._load(order_id, actor, lock=True)
            previous = order.status
            target = self.state_machine.validate_transition(
                order, actor.role, request.status, order.display_id, actor.id
            )
            if self.state_machine.is_noop(previous, target):
                return TransitionOutcome(order=order)

            if target == OrderStatus.COMPLETED:
                order.completed_by = actor.id
                order.completed_at = self.clock.now()
                order.status = target
            elif target == OrderStatus.SECURITY_CHECK_BYPASSED:
                self._apply_bypass(order, actor)
            elif target == OrderStatus.SECURITY_CHECK_INCOMPLETE:
                order.security_check_notes = validate_incomplete_reasons(request.reasons, request.custom_note)
                order.security_check_status = SecurityCheckStatus.INCOMPLETE
                order.security_checked_by = actor.id
                order.status = target
            elif target == OrderStatus.SECURITY_CHECKED:
                self._apply_security_check(order, request.actual_total, actor)
            elif target in DELIVERED_STATUSES:
                if request.payment is None:
                    raise ValidationError("Payment details are required for a delivered status", field="payment")
                receipt = self.ledger.record_payment(order, actor.id, request.payment)
            else:
                order.status = target

            self.db.flush()

        logger.info(
            f"Order {order.display_id} status '{previous.value}' -> '{order.status.value}' "
            f"by {actor.id} ({actor.role})",
            extra={"order_id": order.id, "user_id": actor.id, "role": actor.role}
        )

        if receipt is not None:
            receipt = self._send_receipt(order, receipt)
        return TransitionOutcome(order=order, receipt=receipt)

    def _apply_bypass(self, order: Order, actor: Actor) -> None:
        now = self.clock.now()
        if not self.clock.is_off_hours(now):
            raise ValidationError(
                "Security check can only be bypassed outside working hours "
                f"({self.clock.working_hours_start:02d}:00 - {self.clock.working_hours_end:02d}:00)",
                field="status"
            )
        order.security_check_notes = build_bypass_record(actor.id, now)
        order.security_check_status = SecurityCheckStatus.BYPASSED
        order.security_checked_by = actor.id
        order.status = OrderStatus.SECURITY_CHECK_BYPASSED
        log_security_event(
            "SECURITY_CHECK_BYPASSED",
            user_id=actor.id,
            details=f"Order {order.display_id} bypassed at {now.isoformat()}",
            role=actor.role,
        )

    def _apply_security_check(self, order: Order, actual_total: Optional[Decimal], actor: Actor) -> None:
        """
        Complete the security check.

        With ``actual_total`` the measured load is validated and spread over
        the items in this transaction; without it every item must already
        carry its reconciled quantity.
        """
        if actual_total is not None:
            items = OrderSnapshot.model_validate(order).items
            summary = self.reconciler.summarize(items)
            self.reconciler.validate_actual(actual_total, summary.suggested_total, summary.common_unit)
            actual = self.reconciler.actual_quantities(items, actual_total, order.display_id)
            for item in order.items:
                item.actual_quantity_after_security_check = actual[item.id]
        elif any(item.actual_quantity_after_security_check is None for item in order.items):
            raise ValidationError(
                "Enter the measured load weight before completing the security check", field="actual_total"
            )

        order.security_check_status = SecurityCheckStatus.COMPLETED
        order.security_check_notes = None
        order.security_checked_by = actor.id
        order.status = OrderStatus.SECURITY_CHECKED

    def bypass_security_check(self, order_id: int, actor: Actor) -> Order:
        """Off-hours bypass, available to guards outside the transition menu."""
        self._require_role(actor, UserRole.SECURITY_GUARD, *UNRESTRICTED_ROLES)

        with DatabaseTransaction(self.db):
            order = self._load(order_id, actor, lock=True)
            previous = order.status
            if order.status not in BYPASSABLE_STATUSES:
                log_security_event(
                    "INVALID_SECURITY_BYPASS",
                    user_id=actor.id,
                    details=f"{order.display_id} in '{order.status.value}'",
                    role=actor.role,
                )
                raise InvalidTransitionError(
                    order.display_id, order.status.value, OrderStatus.SECURITY_CHECK_BYPASSED.value, actor.role
                )
            self._apply_bypass(order, actor)
            self.db.flush()

        logger.info(
            f"Order {order.display_id} status '{previous.value}' -> '{order.status.value}' by {actor.id} ({actor.role})",
            extra={"order_id": order.id, "user_id": actor.id, "role": actor.role}
        )
        return order

    # ------------------------------------------------------------------
    # Previews (no writes)
    # ------------------------------------------------------------------

    def preview_security_check(self, order_id: int, actual_total: Decimal, actor: Actor) -> SecurityCheckPreview:
        """What completing the check with ``actual_total`` would do, without writing anything."""
        order = self._load(order_id, actor)
        items = OrderSnapshot.model_validate(order).items
        summary = self.reconciler.summarize(items)

        error = None
        lines = []
        try:
            self.reconciler.validate_actual(actual_total, summary.suggested_total, summary.common_unit)
            lines = self.reconciler.reconcile(items, actual_total, order.display_id)
        except (ValidationError, EmptyOrderError) as e:
            error = str(e.detail)

        return SecurityCheckPreview(
            suggested_total=summary.suggested_total,
            common_unit=summary.common_unit.value,
            tolerance_applied=summary.all_convertible,
            actual_total=to_decimal(actual_total),
            is_valid=error is None,
            error=error,
            lines=[
                ReconciledLineOut(
                    order_item_id=line.item_id,
                    product_name=line.product_name,
                    ordered_quantity=line.ordered_quantity,
                    normalized_kg=line.normalized_kg,
                    actual_quantity=line.actual_quantity,
                )
                for line in lines
            ],
        )

    def stage_final_delivery_weights(self, order_id: int, weights: Mapping[int, Decimal], actor: Actor) -> FinalWeightsPreview:
        """
        Validate delivered weights and show the repriced bill.

        Nothing is stored here; the weights are written when the payment
        that uses them is recorded.
        """
        self._require_role(actor, UserRole.SALES_REP)
        order = self._load(order_id, actor)

        collected = to_decimal(order.collected_amount)
        has_balance = to_decimal(order.total_amount) - collected > self.ledger.epsilon
        if not (order.status == OrderStatus.DEPARTED_FARM or (order.status in DELIVERED_STATUSES and has_balance)):
            raise ValidationError(
                f"Final weights can only be entered once order {order.display_id} has departed the farm "
                "and still has a balance",
                field="weights"
            )
        if not weights:
            raise ValidationError("Enter at least one delivered weight", field="weights")

        validated = self.ledger.validate_final_weights(order, weights)
        breakdown = self.ledger.reprice(order, validated)

        previous_total = to_decimal(order.total_amount)
        return FinalWeightsPreview(
            previous_total=previous_total,
            new_total=breakdown.total,
            difference=breakdown.total - previous_total,
            subtotal=breakdown.subtotal,
            vat_amount=breakdown.vat_amount,
            collected_amount=collected,
            remaining_balance=quantize_money(breakdown.total - collected),
        )

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------

    def _send_receipt(self, order: Order, receipt: PaymentReceipt) -> PaymentReceipt:
        email = order.customer.email if order.customer else None
        if not email or receipt.receipt_no is None:
            return receipt
        result = self.notifier.send_receipt(email, receipt)
        return receipt.model_copy(update={"email_sent": result.success, "email_error": result.error})
