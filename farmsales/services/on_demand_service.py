"""
Consolidated on-demand sales: several product rows sold together under one
receipt number and paid for as a single unit.
"""
from decimal import Decimal
from typing import List
import uuid

from sqlalchemy.orm import Session

from ..config.database import DatabaseTransaction
from ..config.logging import get_logger
from ..core.exceptions import ForbiddenError, NotFoundError, OrderNotFoundError
from ..core.security import Actor
from ..models.on_demand import OnDemandOrder
from ..models.order import PaymentStatus
from ..repositories.on_demand_repo import on_demand_order_repository
from ..repositories.payment_repo import group_payment_repository
from ..repositories.product_repo import product_repository, customer_repository
from ..schemas.on_demand import ConsolidatedSaleCreate, OrderGroup, OnDemandOrder as OnDemandOrderOut
from ..schemas.on_demand import OnDemandOrderPayment as OnDemandOrderPaymentOut
from ..schemas.payment import GroupPaymentRequest, GroupPaymentReceipt
from ..schemas.snapshots import OrderItemSnapshot, ProductSnapshot
from ..utils.date_utils import FarmClock, get_clock
from ..utils.money_utils import to_decimal, quantize_money, ZERO
from .order_state_machine import UserRole, UNRESTRICTED_ROLES, parse_role
from .payment_ledger import PaymentLedger, derive_payment_status
from .pricing_engine import PricingEngine

logger = get_logger(__name__)

GROUP_RECEIPT_PREFIX = "ODR"


class OnDemandService:
    def __init__(self, db: Session, clock: FarmClock = None, pricing: PricingEngine = None):
        self.db = db
        self.clock = clock or get_clock()
        self.pricing = pricing or PricingEngine()
        self.ledger = PaymentLedger(db, pricing=self.pricing, clock=self.clock)
        self.repo = on_demand_order_repository
        self.payment_repo = group_payment_repository
        self.product_repo = product_repository
        self.customer_repo = customer_repository

    def generate_receipt_no(self) -> str:
        """``ODR-20240315-4F2A9C``: sale date plus a random suffix."""
        return f"{GROUP_RECEIPT_PREFIX}-{self.clock.now().strftime('%Y%m%d')}-{uuid.uuid4().hex[:6].upper()}"

    def create_consolidated_sale(self, sale_in: ConsolidatedSaleCreate, actor: Actor) -> List[OnDemandOrder]:
        """Insert one row per product line, all sharing a freshly generated receipt number."""
        if parse_role(actor.role) not in (UserRole.SALES_REP, *UNRESTRICTED_ROLES):
            raise ForbiddenError(f"Role '{actor.role}' cannot record on-demand sales")

        receipt_no = self.generate_receipt_no()
        rows = []
        with DatabaseTransaction(self.db, resource="Order group"):
            if sale_in.customer_id is not None and not self.customer_repo.exists(self.db, sale_in.customer_id):
                raise NotFoundError("Customer", sale_in.customer_id)

            for line in sale_in.lines:
                product = self.product_repo.get(self.db, line.product_id)
                if not product:
                    raise NotFoundError("Product", line.product_id)

                price = line.price if line.price is not None else product.price
                snapshot = OrderItemSnapshot(
                    product=ProductSnapshot.model_validate(product),
                    quantity=line.quantity,
                    price=price,
                    discount=line.discount,
                )
                breakdown = self.pricing.price_order([snapshot], sale_in.is_vat_applicable)

                row = OnDemandOrder(
                    receipt_no=receipt_no,
                    sales_rep_id=actor.id,
                    customer_id=sale_in.customer_id,
                    product_id=product.id,
                    quantity=line.quantity,
                    price=price,
                    discount=line.discount,
                    is_vat_applicable=sale_in.is_vat_applicable,
                    total_amount=breakdown.total,
                    vat_amount=breakdown.vat_amount,
                    collected_amount=Decimal("0.00"),
                    payment_status=PaymentStatus.UNPAID,
                )
                self.db.add(row)
                rows.append(row)
            self.db.flush()

        logger.info(
            f"On-demand sale {receipt_no} by {actor.id}: {len(rows)} rows, "
            f"total {sum((r.total_amount for r in rows), ZERO)}",
            extra={"receipt_no": receipt_no, "user_id": actor.id}
        )
        return rows

    def get_group(self, receipt_no: str) -> OrderGroup:
        """Aggregate a consolidated group into one payable view."""
        rows = self.repo.get_group(self.db, receipt_no)
        if not rows:
            raise OrderNotFoundError(receipt_no, resource="Order group")

        total = sum((to_decimal(r.total_amount) for r in rows), ZERO)
        collected = sum((to_decimal(r.collected_amount) for r in rows), ZERO)
        return OrderGroup(
            receipt_no=receipt_no,
            total_amount=total,
            collected_amount=collected,
            remaining_balance=quantize_money(total - collected),
            payment_status=derive_payment_status(collected, total, self.ledger.epsilon),
            rows=[OnDemandOrderOut.model_validate(r) for r in rows],
            payments=[
                OnDemandOrderPaymentOut.model_validate(p)
                for p in self.payment_repo.list_for_group(self.db, receipt_no)
            ],
        )

    def record_group_payment(self, receipt_no: str, payment_in: GroupPaymentRequest, actor: Actor) -> GroupPaymentReceipt:
        if parse_role(actor.role) not in (UserRole.SALES_REP, *UNRESTRICTED_ROLES):
            raise ForbiddenError(f"Role '{actor.role}' cannot collect payments")

        with DatabaseTransaction(self.db, resource="Order group"):
            rows = self.repo.get_group_for_update(self.db, receipt_no)
            receipt = self.ledger.record_group_payment(
                rows,
                receipt_no,
                actor.id,
                payment_in.amount,
                payment_in.payment_method,
                cheque_number=payment_in.cheque_number,
                cheque_date=payment_in.cheque_date,
            )
        return receipt
