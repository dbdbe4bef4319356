from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict
from datetime import datetime, date
from decimal import Decimal

from ..models.order import PaymentMethod, PaymentStatus, OrderStatus


class PaymentRequest(BaseModel):
    """Payment collected at (or after) delivery."""
    amount: Decimal = Field(..., description="Amount collected in this transaction")
    payment_method: Optional[PaymentMethod] = None
    cheque_number: Optional[str] = Field(None, max_length=50)
    cheque_date: Optional[date] = None
    # order_item_id -> delivered weight in Kg (weighed goods only)
    final_weights: Dict[int, Decimal] = Field(default_factory=dict)


class BillLine(BaseModel):
    order_item_id: Optional[int] = None
    product_name: str
    unit: str
    quantity: Decimal
    price: Decimal
    discount: Optional[Decimal] = None
    line_total: Decimal
    final_weight_applied: bool = False


class PaymentReceipt(BaseModel):
    """Figures the print/render layer needs for one payment event."""
    receipt_no: Optional[str] = None
    order_id: Optional[int] = None
    display_id: Optional[str] = None
    transaction_amount: Decimal
    previously_collected: Decimal
    collected_amount: Decimal
    remaining_balance: Decimal
    payment_status: PaymentStatus
    payment_status_text: str
    order_status: Optional[OrderStatus] = None
    payment_method: Optional[PaymentMethod] = None
    subtotal: Decimal
    vat_amount: Decimal
    total_amount: Decimal
    lines: List[BillLine] = Field(default_factory=list)
    payment_date: datetime
    email_sent: Optional[bool] = None
    email_error: Optional[str] = None


class OrderPayment(BaseModel):
    id: int
    order_id: int
    amount: Decimal
    payment_method: Optional[PaymentMethod]
    receipt_no: str
    collected_by: Optional[str]
    cheque_number: Optional[str] = None
    cheque_date: Optional[date] = None
    payment_date: datetime

    model_config = ConfigDict(from_attributes=True)


class GroupPaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod
    cheque_number: Optional[str] = Field(None, max_length=50)
    cheque_date: Optional[date] = None


class RowDistribution(BaseModel):
    order_id: int
    total_amount: Decimal
    delta: Decimal
    collected_amount: Decimal
    payment_status: PaymentStatus


class GroupPaymentReceipt(BaseModel):
    receipt_no: str
    group_receipt_no: str
    transaction_amount: Decimal
    previously_collected: Decimal
    collected_amount: Decimal
    remaining_balance: Decimal
    total_amount: Decimal
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    rows: List[RowDistribution]
    payment_date: datetime
