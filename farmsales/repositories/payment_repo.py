from typing import List
from sqlalchemy.orm import Session

from ..models.order import OrderPayment
from ..models.on_demand import OnDemandOrderPayment
from ..schemas.payment import PaymentRequest, GroupPaymentRequest
from .base import CRUDBase


class PaymentRepository(CRUDBase[OrderPayment, PaymentRequest, PaymentRequest]):
    """Append-only: payments are created and listed, never updated."""

    def __init__(self):
        super().__init__(OrderPayment)

    def count_for_order(self, db: Session, order_id: int) -> int:
        return self.count(db, {"order_id": order_id})

    def list_for_order(self, db: Session, order_id: int) -> List[OrderPayment]:
        return self.get_multi_by_field(db, "order_id", order_id)


class GroupPaymentRepository(CRUDBase[OnDemandOrderPayment, GroupPaymentRequest, GroupPaymentRequest]):
    def __init__(self):
        super().__init__(OnDemandOrderPayment)

    def count_for_group(self, db: Session, group_receipt_no: str) -> int:
        return self.count(db, {"group_receipt_no": group_receipt_no})

    def list_for_group(self, db: Session, group_receipt_no: str) -> List[OnDemandOrderPayment]:
        return self.get_multi_by_field(db, "group_receipt_no", group_receipt_no)


payment_repository = PaymentRepository()
group_payment_repository = GroupPaymentRepository()
