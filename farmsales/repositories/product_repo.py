from typing import Optional
from sqlalchemy.orm import Session

from ..models.product import Product, Category
from ..models.customer import Customer
from ..schemas.product import ProductCreate, CategoryCreate
from ..schemas.customer import CustomerCreate
from .base import CRUDBase


class CategoryRepository(CRUDBase[Category, CategoryCreate, CategoryCreate]):
    def __init__(self):
        super().__init__(Category)

    def get_by_code(self, db: Session, code: str) -> Optional[Category]:
        return self.get_by_field(db, "code", code.upper())


class ProductRepository(CRUDBase[Product, ProductCreate, ProductCreate]):
    def __init__(self):
        super().__init__(Product)


class CustomerRepository(CRUDBase[Customer, CustomerCreate, CustomerCreate]):
    def __init__(self):
        super().__init__(Customer)


category_repository = CategoryRepository()
product_repository = ProductRepository()
customer_repository = CustomerRepository()
