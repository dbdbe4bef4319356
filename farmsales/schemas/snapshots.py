"""
Immutable in-memory views of orders used by the pricing and reconciliation math.

Built from ORM rows with ``Model.model_validate(row)``; the pure services
never touch a session.
"""
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..models.order import OrderStatus
from ..models.product import UnitType


class ProductSnapshot(BaseModel):
    id: Optional[int] = None
    name: str
    unit_type: UnitType = UnitType.KG
    weight_per_pack_kg: Optional[Decimal] = None
    grams_per_unit: Optional[Decimal] = None
    category_code: Optional[str] = None
    category_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class OrderItemSnapshot(BaseModel):
    id: Optional[int] = None
    product: ProductSnapshot
    quantity: Decimal
    price: Decimal
    discount: Optional[Decimal] = None
    returned_quantity: Decimal = Decimal("0")
    actual_quantity_after_security_check: Optional[Decimal] = None
    final_delivery_weight_kg: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class OrderSnapshot(BaseModel):
    id: Optional[int] = None
    display_id: str = ""
    status: OrderStatus = OrderStatus.PENDING
    is_vat_applicable: bool = False
    total_amount: Decimal = Decimal("0.00")
    vat_amount: Decimal = Decimal("0.00")
    collected_amount: Decimal = Decimal("0.00")
    items: Tuple[OrderItemSnapshot, ...] = Field(default_factory=tuple)

    model_config = ConfigDict(from_attributes=True, frozen=True)
