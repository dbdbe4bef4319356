"""
Product and customer master data.
"""
from typing import List

from sqlalchemy.orm import Session

from ..config.database import DatabaseTransaction
from ..config.logging import get_logger
from ..core.exceptions import ForbiddenError, NotFoundError
from ..core.security import Actor
from ..models.customer import Customer
from ..models.product import Category, Product
from ..repositories.product_repo import category_repository, product_repository, customer_repository
from ..schemas.customer import CustomerCreate
from ..schemas.product import ProductCreate
from .order_state_machine import UNRESTRICTED_ROLES, parse_role

logger = get_logger(__name__)


class CatalogService:
    def __init__(self, db: Session):
        self.db = db
        self.category_repo = category_repository
        self.product_repo = product_repository
        self.customer_repo = customer_repository

    def _require_manager(self, actor: Actor) -> None:
        if parse_role(actor.role) not in UNRESTRICTED_ROLES:
            raise ForbiddenError(f"Role '{actor.role}' cannot maintain master data")

    def create_product(self, product_in: ProductCreate, actor: Actor) -> Product:
        """Create a product, registering its category on first use."""
        self._require_manager(actor)

        with DatabaseTransaction(self.db, resource="Product", conflict_columns=("code",)):
            category = None
            if product_in.category_code:
                category = self.category_repo.get_by_code(self.db, product_in.category_code)
                if category is None:
                    category = Category(code=product_in.category_code, name=product_in.category_code)
                    self.db.add(category)

            product = Product(
                **product_in.model_dump(exclude={"category_code"}),
                category=category,
            )
            self.db.add(product)
            self.db.flush()

        logger.info(f"Product '{product.name}' ({product.unit_type.value}) created by {actor.id}")
        return product

    def get_product(self, product_id: int) -> Product:
        product = self.product_repo.get(self.db, product_id)
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    def list_products(self, skip: int = 0, limit: int = 100) -> List[Product]:
        return self.product_repo.get_multi(self.db, skip=skip, limit=limit)["items"]

    def create_customer(self, customer_in: CustomerCreate, actor: Actor) -> Customer:
        self._require_manager(actor)

        with DatabaseTransaction(self.db, resource="Customer"):
            customer = self.customer_repo.create(self.db, obj_in=customer_in)

        logger.info(f"Customer '{customer.name}' created by {actor.id}")
        return customer

    def get_customer(self, customer_id: int) -> Customer:
        customer = self.customer_repo.get(self.db, customer_id)
        if not customer:
            raise NotFoundError("Customer", customer_id)
        return customer
