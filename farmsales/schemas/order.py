from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from decimal import Decimal

from ..models.order import OrderStatus, PaymentStatus, PaymentMethod, SecurityCheckStatus
from .payment import PaymentRequest, PaymentReceipt


class OrderItemCreate(BaseModel):
    product_id: int
    quantity: Decimal = Field(..., gt=0)
    discount: Optional[Decimal] = Field(None, ge=0, le=100)
    # Defaults to the product's list price
    price: Optional[Decimal] = Field(None, ge=0)


class OrderCreate(BaseModel):
    customer_id: int
    items: List[OrderItemCreate] = Field(..., min_length=1)
    is_vat_applicable: bool = False
    delivery_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)


class OrderAssign(BaseModel):
    sales_rep_id: str = Field(..., min_length=1, max_length=100)
    vehicle_number: str = Field(..., min_length=1, max_length=20)

    @field_validator('vehicle_number')
    @classmethod
    def normalize_vehicle_number(cls, v):
        return v.strip().upper()


class TransitionRequest(BaseModel):
    """
    Requested status change plus whatever the target needs:
    ``reasons``/``custom_note`` for an incomplete check, ``actual_total`` for
    a completed check and ``payment`` for any delivered status.
    """
    status: OrderStatus
    reasons: List[str] = Field(default_factory=list)
    custom_note: Optional[str] = Field(None, max_length=1000)
    actual_total: Optional[Decimal] = None
    payment: Optional[PaymentRequest] = None


class TransitionOption(BaseModel):
    status: OrderStatus
    label: str


class OrderItem(BaseModel):
    id: int
    product_id: int
    quantity: Decimal
    price: Decimal
    discount: Optional[Decimal] = None
    returned_quantity: Decimal
    actual_quantity_after_security_check: Optional[Decimal] = None
    final_delivery_weight_kg: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class Order(BaseModel):
    id: int
    display_id: str
    customer_id: int
    ordered_by: Optional[str] = None
    assigned_to: Optional[str] = None
    completed_by: Optional[str] = None
    status: OrderStatus
    security_check_status: SecurityCheckStatus
    security_check_notes: Optional[Dict[str, Any]] = None
    vehicle_number: Optional[str] = None
    delivery_date: Optional[date] = None
    total_amount: Decimal
    vat_amount: Decimal
    is_vat_applicable: bool
    collected_amount: Decimal
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod] = None
    receipt_no: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    items: List[OrderItem] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class OrderList(BaseModel):
    items: List[Order]
    total: int
    page: int
    pages: int
    per_page: int
    has_next: bool
    has_prev: bool


class TransitionResult(BaseModel):
    order: Order
    receipt: Optional[PaymentReceipt] = None


class SecurityCheckPreviewRequest(BaseModel):
    actual_total: Decimal


class ReconciledLineOut(BaseModel):
    order_item_id: Optional[int] = None
    product_name: str
    ordered_quantity: Decimal
    normalized_kg: Decimal
    actual_quantity: Decimal


class SecurityCheckPreview(BaseModel):
    suggested_total: Decimal
    common_unit: str
    tolerance_applied: bool
    actual_total: Decimal
    is_valid: bool
    error: Optional[str] = None
    lines: List[ReconciledLineOut] = Field(default_factory=list)


class FinalWeightsPreviewRequest(BaseModel):
    # order_item_id -> delivered weight in Kg
    weights: Dict[int, Decimal]


class FinalWeightsPreview(BaseModel):
    previous_total: Decimal
    new_total: Decimal
    difference: Decimal
    subtotal: Decimal
    vat_amount: Decimal
    collected_amount: Decimal
    remaining_balance: Decimal


class ReturnCreate(BaseModel):
    quantity: Decimal
    reason: str = Field("", max_length=1000)


class OrderReturn(BaseModel):
    id: int
    order_item_id: int
    returned_quantity: Decimal
    return_reason: str
    returned_by: Optional[str] = None
    returned_at: datetime

    model_config = ConfigDict(from_attributes=True)
