"""
On-demand (van) sales: one row per product line, consolidated under a shared receipt number.
"""
from decimal import Decimal

from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from .base import BaseModel
from .order import PaymentMethod, PaymentStatus, _enum_column


class OnDemandOrder(BaseModel):
    """A member row of a consolidated order group."""
    __tablename__ = 'on_demand_orders'

    receipt_no = Column(String(40), nullable=False, index=True)

    sales_rep_id = Column(String(100), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=True, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)

    quantity = Column(Numeric(12, 3), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(5, 2), nullable=True)
    is_vat_applicable = Column(Boolean, nullable=False, default=False)

    total_amount = Column(Numeric(12, 2), nullable=False)
    vat_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    collected_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    payment_status = Column(_enum_column(PaymentStatus, 20), nullable=False, default=PaymentStatus.UNPAID)
    payment_method = Column(_enum_column(PaymentMethod, 20), nullable=True)

    customer = relationship("Customer", lazy="joined")
    product = relationship("Product", lazy="joined")

    def __repr__(self):
        return f"<OnDemandOrder(id={self.id}, receipt_no='{self.receipt_no}', total={self.total_amount})>"


class OnDemandOrderPayment(BaseModel):
    """One payment against a whole consolidated group."""
    __tablename__ = 'on_demand_order_payments'

    group_receipt_no = Column(String(40), nullable=False, index=True)
    receipt_no = Column(String(50), unique=True, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(_enum_column(PaymentMethod, 20), nullable=True)
    collected_by = Column(String(100), nullable=True)
    cheque_number = Column(String(50), nullable=True)
    cheque_date = Column(Date, nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=False)
