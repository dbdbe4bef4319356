from typing import Any, Dict, Mapping, Optional, List
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, case, desc, asc

from ..models.order import Order, OrderItem, OrderReturn, OrderStatus
from ..schemas.order import OrderCreate, OrderItemCreate, ReturnCreate, TransitionRequest
from .base import CRUDBase, paginate

DISPLAY_ID_PREFIX = "SO-"


class OrderRepository(CRUDBase[Order, OrderCreate, TransitionRequest]):
    def __init__(self):
        super().__init__(Order)

    def get_with_items(self, db: Session, id: int) -> Optional[Order]:
        """Get an order with its items and their products loaded"""
        return (
            db.query(self.model)
            .options(selectinload(Order.items).joinedload(OrderItem.product))
            .filter(self.model.id == id)
            .first()
        )

    def get_for_update(self, db: Session, id: int) -> Optional[Order]:
        """Lock the order row for a read-modify-write of its status and totals"""
        return (
            db.query(self.model)
            .options(selectinload(Order.items).joinedload(OrderItem.product))
            .filter(self.model.id == id)
            .with_for_update(of=self.model)
            .first()
        )

    def next_display_id(self, db: Session) -> str:
        """Sequential display id, e.g. ``SO-000042``; a clash surfaces on the unique index"""
        last_id = db.query(func.max(self.model.id)).scalar() or 0
        return f"{DISPLAY_ID_PREFIX}{last_id + 1:06d}"

    def list_orders(
        self,
        db: Session,
        *,
        assigned_to: Optional[str] = None,
        statuses: Optional[List[OrderStatus]] = None,
        customer_id: Optional[int] = None,
        priority: Optional[Mapping[OrderStatus, int]] = None,
        skip: int = 0,
        limit: int = 100
    ) -> Dict[str, Any]:
        """
        Page through orders, optionally scoped to one sales rep.

        With ``priority`` the work queue order is used (lowest first, then
        newest); otherwise newest first.
        """
        query = db.query(self.model)

        if assigned_to is not None:
            query = query.filter(self.model.assigned_to == assigned_to)
        if statuses:
            query = query.filter(self.model.status.in_(statuses))
        if customer_id is not None:
            query = query.filter(self.model.customer_id == customer_id)

        if priority:
            rank = case(
                {getattr(status, "value", status): position for status, position in priority.items()},
                value=self.model.status,
                else_=len(priority) + 1
            )
            query = query.order_by(asc(rank), desc(self.model.id))
        else:
            query = query.order_by(desc(self.model.id))

        return paginate(query, skip, limit)


class OrderItemRepository(CRUDBase[OrderItem, OrderItemCreate, OrderItemCreate]):
    def __init__(self):
        super().__init__(OrderItem)


class OrderReturnRepository(CRUDBase[OrderReturn, ReturnCreate, ReturnCreate]):
    def __init__(self):
        super().__init__(OrderReturn)

    def list_for_item(self, db: Session, order_item_id: int) -> List[OrderReturn]:
        return self.get_multi_by_field(db, "order_item_id", order_item_id)


order_repository = OrderRepository()
order_item_repository = OrderItemRepository()
order_return_repository = OrderReturnRepository()
