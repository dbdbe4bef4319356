# Importing the models registers every mapped class on Base.metadata
from .base import Base, BaseModel
from .product import Category, Product, UnitType
from .customer import Customer
from .order import (
    Order,
    OrderItem,
    OrderPayment,
    OrderReturn,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    SecurityCheckStatus,
)
from .on_demand import OnDemandOrder, OnDemandOrderPayment

__all__ = [
    "Base",
    "BaseModel",
    "Category",
    "Product",
    "UnitType",
    "Customer",
    "Order",
    "OrderItem",
    "OrderPayment",
    "OrderReturn",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "SecurityCheckStatus",
    "OnDemandOrder",
    "OnDemandOrderPayment",
]
