from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal

from ..models.order import PaymentMethod, PaymentStatus


class ConsolidatedSaleLine(BaseModel):
    product_id: int
    quantity: Decimal = Field(..., gt=0)
    discount: Optional[Decimal] = Field(None, ge=0, le=100)
    price: Optional[Decimal] = Field(None, ge=0)


class ConsolidatedSaleCreate(BaseModel):
    customer_id: Optional[int] = None
    is_vat_applicable: bool = False
    lines: List[ConsolidatedSaleLine] = Field(..., min_length=1)


class OnDemandOrder(BaseModel):
    id: int
    receipt_no: str
    sales_rep_id: str
    customer_id: Optional[int] = None
    product_id: int
    quantity: Decimal
    price: Decimal
    discount: Optional[Decimal] = None
    total_amount: Decimal
    vat_amount: Decimal
    collected_amount: Decimal
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod] = None

    model_config = ConfigDict(from_attributes=True)


class OnDemandOrderPayment(BaseModel):
    id: int
    group_receipt_no: str
    receipt_no: str
    amount: Decimal
    payment_method: Optional[PaymentMethod]
    collected_by: Optional[str]
    cheque_number: Optional[str] = None
    cheque_date: Optional[date] = None
    payment_date: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderGroup(BaseModel):
    """A consolidated order group viewed as one payable unit."""
    receipt_no: str
    total_amount: Decimal
    collected_amount: Decimal
    remaining_balance: Decimal
    payment_status: PaymentStatus
    rows: List[OnDemandOrder]
    payments: List[OnDemandOrderPayment] = Field(default_factory=list)
