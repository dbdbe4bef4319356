"""
Partial returns of delivered order items, with restocking.
"""
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from ..config.database import DatabaseTransaction
from ..config.logging import get_logger, log_security_event
from ..core.exceptions import ForbiddenError, NotFoundError, ValidationError
from ..core.security import Actor
from ..models.order import OrderItem, OrderReturn, OrderStatus, DELIVERED_STATUSES
from ..repositories.order_repo import order_item_repository, order_return_repository
from ..repositories.product_repo import product_repository
from ..utils.date_utils import FarmClock, get_clock
from ..utils.money_utils import to_decimal, quantize_mass
from .order_state_machine import UNRESTRICTED_ROLES, UserRole, parse_role

logger = get_logger(__name__)

RETURNABLE_STATUSES = frozenset({*DELIVERED_STATUSES, OrderStatus.COMPLETED})


def validate_return(item: OrderItem, quantity, reason: str) -> Decimal:
    """Returned quantity must be positive and fit in what is still unreturned; a reason is mandatory."""
    quantity = to_decimal(quantity)
    if quantity <= 0:
        raise ValidationError("Return quantity must be greater than zero", field="quantity")

    returnable = item.returnable_quantity
    if quantity > returnable:
        raise ValidationError(
            f"Return quantity {quantity} exceeds the returnable quantity {returnable}", field="quantity"
        )
    if not (reason or "").strip():
        raise ValidationError("A return reason is required", field="reason")
    return quantity


class ReturnProcessor:
    """Applies a return as one transaction: item counter, audit row and product stock."""

    def __init__(self, db: Session, clock: FarmClock = None):
        self.db = db
        self.clock = clock or get_clock()
        self.item_repo = order_item_repository
        self.return_repo = order_return_repository
        self.product_repo = product_repository

    def _check_access(self, item: OrderItem, actor: Actor) -> None:
        """Sales reps return goods on their own orders; managers on any order."""
        role = parse_role(actor.role)
        if role != UserRole.SALES_REP and role not in UNRESTRICTED_ROLES:
            log_security_event("FORBIDDEN_RETURN", user_id=actor.id, details=f"item {item.id}", role=actor.role)
            raise ForbiddenError(f"Role '{actor.role}' cannot record returns")
        if role == UserRole.SALES_REP and item.order.assigned_to != actor.id:
            raise ForbiddenError(f"Order {item.order.display_id} is not assigned to you")

    def process_return(self, order_item_id: int, quantity, reason: str, actor: Actor) -> OrderReturn:
        with DatabaseTransaction(self.db, resource="Order item"):
            item = self.item_repo.get_for_update(self.db, order_item_id)
            if not item:
                raise NotFoundError("Order item", order_item_id)
            self._check_access(item, actor)

            order = item.order
            if order.status not in RETURNABLE_STATUSES:
                raise ValidationError(
                    f"Goods can only be returned on delivered orders; {order.display_id} is '{order.status.value}'",
                    field="status"
                )

            quantity = validate_return(item, quantize_mass(quantity), reason)

            product = self.product_repo.get_for_update(self.db, item.product_id)
            if not product:
                raise NotFoundError("Product", item.product_id)

            item.returned_quantity = to_decimal(item.returned_quantity) + quantity
            record = OrderReturn(
                order_item_id=item.id,
                returned_quantity=quantity,
                return_reason=reason.strip(),
                returned_by=actor.id,
                returned_at=self.clock.now(),
            )
            self.db.add(record)
            product.quantity = to_decimal(product.quantity) + quantity
            self.db.flush()

        logger.info(
            f"Return of {quantity} {getattr(product.unit_type, 'value', product.unit_type)} "
            f"'{product.name}' on {order.display_id} item {item.id} by {actor.id}: {record.return_reason}",
            extra={"order_id": order.id, "user_id": actor.id}
        )
        return record

    def list_returns(self, order_item_id: int, actor: Actor) -> List[OrderReturn]:
        item = self.item_repo.get(self.db, order_item_id)
        if not item:
            raise NotFoundError("Order item", order_item_id)
        self._check_access(item, actor)
        return self.return_repo.list_for_item(self.db, order_item_id)
