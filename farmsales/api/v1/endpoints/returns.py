from typing import List
from fastapi import APIRouter, Depends, status

from ....core.dependencies import get_current_user, get_return_processor
from ....core.security import Actor
from ....schemas.order import OrderReturn, ReturnCreate
from ....services.return_processor import ReturnProcessor

router = APIRouter()


@router.post("/{order_item_id}/returns", response_model=OrderReturn, status_code=status.HTTP_201_CREATED)
def create_return(
    order_item_id: int,
    return_in: ReturnCreate,
    processor: ReturnProcessor = Depends(get_return_processor),
    current_user: Actor = Depends(get_current_user)
):
    """
    Record goods coming back on an order item and restock them
    """
    return processor.process_return(order_item_id, return_in.quantity, return_in.reason, current_user)


@router.get("/{order_item_id}/returns", response_model=List[OrderReturn])
def list_returns(
    order_item_id: int,
    processor: ReturnProcessor = Depends(get_return_processor),
    current_user: Actor = Depends(get_current_user)
):
    return processor.list_returns(order_item_id, current_user)
