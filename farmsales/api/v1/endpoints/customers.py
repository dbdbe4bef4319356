from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ....config.database import get_db
from ....core.dependencies import get_current_user
from ....core.security import Actor
from ....schemas.customer import Customer, CustomerCreate
from ....services.catalog_service import CatalogService

router = APIRouter()


@router.post("", response_model=Customer, status_code=status.HTTP_201_CREATED)
def create_customer(
    customer_in: CustomerCreate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user)
):
    """
    Create new customer
    """
    return CatalogService(db).create_customer(customer_in, current_user)


@router.get("/{customer_id}", response_model=Customer)
def get_customer(
    customer_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user)
):
    """
    Get customer by ID
    """
    return CatalogService(db).get_customer(customer_id)
