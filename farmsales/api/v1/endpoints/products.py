from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ....config.database import get_db
from ....core.dependencies import get_current_user
from ....core.security import Actor
from ....schemas.product import Product, ProductCreate
from ....services.catalog_service import CatalogService

router = APIRouter()


@router.post("", response_model=Product, status_code=status.HTTP_201_CREATED)
def create_product(
    product_in: ProductCreate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user)
):
    return CatalogService(db).create_product(product_in, current_user)


@router.get("", response_model=List[Product])
def list_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user)
):
    return CatalogService(db).list_products(skip=skip, limit=limit)


@router.get("/{product_id}", response_model=Product)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user)
):
    return CatalogService(db).get_product(product_id)
