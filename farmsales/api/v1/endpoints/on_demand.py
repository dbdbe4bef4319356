from typing import List
from fastapi import APIRouter, Depends, status

from ....core.dependencies import get_current_user, get_on_demand_service
from ....core.security import Actor
from ....schemas.on_demand import ConsolidatedSaleCreate, OnDemandOrder, OrderGroup
from ....schemas.payment import GroupPaymentReceipt, GroupPaymentRequest
from ....services.on_demand_service import OnDemandService

router = APIRouter()


@router.post("/sales", response_model=List[OnDemandOrder], status_code=status.HTTP_201_CREATED)
def create_consolidated_sale(
    sale_in: ConsolidatedSaleCreate,
    service: OnDemandService = Depends(get_on_demand_service),
    current_user: Actor = Depends(get_current_user)
):
    """
    Record an on-demand sale; every line shares one receipt number
    """
    return service.create_consolidated_sale(sale_in, current_user)


@router.get("/groups/{receipt_no}", response_model=OrderGroup)
def get_order_group(
    receipt_no: str,
    service: OnDemandService = Depends(get_on_demand_service),
    current_user: Actor = Depends(get_current_user)
):
    return service.get_group(receipt_no)


@router.post("/groups/{receipt_no}/payments", response_model=GroupPaymentReceipt)
def record_group_payment(
    receipt_no: str,
    payment_in: GroupPaymentRequest,
    service: OnDemandService = Depends(get_on_demand_service),
    current_user: Actor = Depends(get_current_user)
):
    """
    Collect a payment against a whole group, spread over its rows
    """
    return service.record_group_payment(receipt_no, payment_in, current_user)
