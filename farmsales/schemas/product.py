from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from ..models.product import UnitType


class CategoryBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=10)
    name: str = Field(..., min_length=1, max_length=100)


class CategoryCreate(CategoryBase):
    pass


class Category(CategoryBase):
    id: int

    model_config = ConfigDict(from_attributes=True)


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    unit_type: UnitType = UnitType.KG
    weight_per_pack_kg: Optional[Decimal] = Field(None, gt=0)
    grams_per_unit: Optional[Decimal] = Field(None, gt=0)
    price: Decimal = Field(..., ge=0)


class ProductCreate(ProductBase):
    quantity: Decimal = Field(Decimal("0"), ge=0)
    category_code: Optional[str] = Field(None, max_length=10)

    @field_validator('category_code')
    @classmethod
    def normalize_category_code(cls, v):
        return v.strip().upper() if v else v

    @model_validator(mode='after')
    def check_conversion_factor(self):
        if self.unit_type == UnitType.PACKS and self.weight_per_pack_kg is None:
            raise ValueError('weight_per_pack_kg is required for Packs products')
        if self.unit_type == UnitType.GRAM and self.grams_per_unit is None:
            raise ValueError('grams_per_unit is required for g products')
        return self


class Product(ProductBase):
    id: int
    quantity: Decimal
    category_code: Optional[str] = None
    category_name: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
