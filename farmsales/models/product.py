"""
Product catalogue: categories and products with their unit of sale.
"""
import enum

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, Enum
from sqlalchemy.orm import relationship

from .base import BaseModel


class UnitType(str, enum.Enum):
    """Native unit a product is ordered and priced in."""
    KG = "Kg"
    GRAM = "g"
    PACKS = "Packs"


class Category(BaseModel):
    """Product category, e.g. ``BT`` (broiler thighs) or ``EG`` (eggs)."""
    __tablename__ = 'categories'

    code = Column(String(10), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)

    products = relationship("Product", back_populates="category")


class Product(BaseModel):
    """
    Sellable product.

    ``weight_per_pack_kg`` is required for ``Packs`` products and
    ``grams_per_unit`` for ``g`` products; both are used to normalise
    ordered quantities to kilograms at the security check.
    """
    __tablename__ = 'products'

    name = Column(String(255), nullable=False, index=True)
    unit_type = Column(
        Enum(UnitType, values_callable=lambda e: [m.value for m in e], native_enum=False, length=10),
        nullable=False,
        default=UnitType.KG
    )
    weight_per_pack_kg = Column(Numeric(10, 3), nullable=True)
    grams_per_unit = Column(Numeric(10, 2), nullable=True)
    price = Column(Numeric(12, 2), nullable=False)

    # On-hand stock in the native unit
    quantity = Column(Numeric(12, 3), nullable=False, default=0)

    category_id = Column(Integer, ForeignKey('categories.id'), nullable=True, index=True)
    category = relationship("Category", back_populates="products", lazy="joined")

    @property
    def category_code(self):
        return self.category.code if self.category else None

    @property
    def category_name(self):
        return self.category.name if self.category else None

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', unit_type='{self.unit_type}')>"
