"""
Sales order models: orders, their line items, payments and returns.
"""
from decimal import Decimal
import enum

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Text, Numeric, ForeignKey, Enum, JSON, Index
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from ..utils.money_utils import to_decimal


def _enum_column(enum_cls, length: int):
    """Store an enum by its value so the database holds the human-readable label."""
    return Enum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False, length=length)


class OrderStatus(str, enum.Enum):
    """Order status enumeration (canonical display order)."""
    PENDING = "Pending"
    ASSIGNED = "Assigned"
    PRODUCTS_LOADED = "Products Loaded"
    PRODUCT_RELOADED = "Product Reloaded"
    SECURITY_CHECK_INCOMPLETE = "Security Check Incomplete"
    SECURITY_CHECKED = "Security Checked"
    SECURITY_CHECK_BYPASSED = "Security Check Bypassed Due to Off Hours"
    DEPARTED_FARM = "Departed Farm"
    DELIVERED = "Delivered"
    DELIVERED_PARTIALLY_PAID = "Delivered - Payment Partially Collected"
    DELIVERED_NOT_PAID = "Delivered - Payment Not Collected"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"


class SecurityCheckStatus(str, enum.Enum):
    NONE = "none"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    BYPASSED = "bypassed"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    FULLY_PAID = "fully_paid"


class PaymentMethod(str, enum.Enum):
    CASH = "Cash"
    CHEQUE = "Cheque"
    CREDIT_CARD = "Credit Card"
    BANK_TRANSFER = "Bank Transfer"
    NET = "Net"


DELIVERED_STATUSES = (
    OrderStatus.DELIVERED,
    OrderStatus.DELIVERED_PARTIALLY_PAID,
    OrderStatus.DELIVERED_NOT_PAID,
)


class Order(BaseModel):
    """
    Sales order moving from intake through loading, security check,
    delivery and payment to completion.
    """
    __tablename__ = 'orders'

    display_id = Column(String(20), unique=True, nullable=False, index=True)

    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=False, index=True)

    # Acting users (ids supplied by the identity provider)
    ordered_by = Column(String(100), nullable=True)
    assigned_to = Column(String(100), nullable=True, index=True)
    completed_by = Column(String(100), nullable=True)
    security_checked_by = Column(String(100), nullable=True)

    status = Column(_enum_column(OrderStatus, 60), nullable=False, default=OrderStatus.PENDING, index=True)
    security_check_status = Column(
        _enum_column(SecurityCheckStatus, 20), nullable=False, default=SecurityCheckStatus.NONE
    )
    security_check_notes = Column(JSON, nullable=True)

    vehicle_number = Column(String(20), nullable=True)
    delivery_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    # Financial information
    total_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    vat_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    is_vat_applicable = Column(Boolean, nullable=False, default=False)
    collected_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    payment_status = Column(_enum_column(PaymentStatus, 20), nullable=False, default=PaymentStatus.UNPAID)
    payment_method = Column(_enum_column(PaymentMethod, 20), nullable=True)
    receipt_no = Column(String(40), nullable=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    customer = relationship("Customer", back_populates="orders", lazy="joined")
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    payments = relationship(
        "OrderPayment", back_populates="order", cascade="all, delete-orphan", order_by="OrderPayment.id"
    )

    __table_args__ = (
        Index('idx_orders_status_assigned', 'status', 'assigned_to'),
    )

    @property
    def remaining_balance(self) -> Decimal:
        return Decimal(self.total_amount or 0) - Decimal(self.collected_amount or 0)

    def __repr__(self):
        return f"<Order(id={self.id}, display_id='{self.display_id}', status='{self.status}')>"


class OrderItem(BaseModel):
    """
    One product line of an order.

    ``quantity`` and ``price`` are in the product's native unit.
    ``actual_quantity_after_security_check`` is written by the security check
    and ``final_delivery_weight_kg`` (weighed goods only) when payment is taken.
    """
    __tablename__ = 'order_items'

    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False, index=True)

    quantity = Column(Numeric(12, 3), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(5, 2), nullable=True)
    returned_quantity = Column(Numeric(12, 3), nullable=False, default=Decimal("0"))
    actual_quantity_after_security_check = Column(Numeric(12, 3), nullable=True)
    final_delivery_weight_kg = Column(Numeric(12, 3), nullable=True)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", lazy="joined")
    returns = relationship(
        "OrderReturn", back_populates="order_item", cascade="all, delete-orphan", order_by="OrderReturn.id"
    )

    @property
    def returnable_quantity(self) -> Decimal:
        return to_decimal(self.quantity) - to_decimal(self.returned_quantity)

    def __repr__(self):
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, product_id={self.product_id})>"


class OrderPayment(BaseModel):
    """Append-only payment record; one row per collection event."""
    __tablename__ = 'order_payments'

    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(_enum_column(PaymentMethod, 20), nullable=True)
    receipt_no = Column(String(40), unique=True, nullable=False, index=True)
    collected_by = Column(String(100), nullable=True)
    cheque_number = Column(String(50), nullable=True)
    cheque_date = Column(Date, nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=False)

    order = relationship("Order", back_populates="payments")

    def __repr__(self):
        return f"<OrderPayment(receipt_no='{self.receipt_no}', amount={self.amount})>"


class OrderReturn(BaseModel):
    """Immutable audit row for a partial return of an order item."""
    __tablename__ = 'order_returns'

    order_item_id = Column(Integer, ForeignKey('order_items.id', ondelete='CASCADE'), nullable=False, index=True)
    returned_quantity = Column(Numeric(12, 3), nullable=False)
    return_reason = Column(Text, nullable=False)
    returned_by = Column(String(100), nullable=True)
    returned_at = Column(DateTime(timezone=True), nullable=False)

    order_item = relationship("OrderItem", back_populates="returns")
