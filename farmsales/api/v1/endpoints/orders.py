from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from ....core.dependencies import get_current_user, get_order_service, PaginationParams
from ....core.security import Actor
from ....models.order import OrderStatus
from ....schemas.order import (
    Order,
    OrderAssign,
    OrderCreate,
    OrderList,
    TransitionOption,
    TransitionRequest,
    TransitionResult,
    SecurityCheckPreview,
    SecurityCheckPreviewRequest,
    FinalWeightsPreview,
    FinalWeightsPreviewRequest,
)
from ....schemas.payment import OrderPayment
from ....services.order_service import OrderService

router = APIRouter()


@router.post("", response_model=Order, status_code=status.HTTP_201_CREATED)
def create_order(
    order_in: OrderCreate,
    service: OrderService = Depends(get_order_service),
    current_user: Actor = Depends(get_current_user)
):
    """
    Create a new Pending order
    """
    return service.create_order(order_in, current_user)


@router.get("", response_model=OrderList)
def list_orders(
    statuses: Optional[List[OrderStatus]] = Query(None, alias="status"),
    by_priority: bool = Query(True, description="Sort by workflow priority before newest first"),
    pagination: PaginationParams = Depends(),
    service: OrderService = Depends(get_order_service),
    current_user: Actor = Depends(get_current_user)
):
    """
    List orders visible to the current user
    """
    return service.list_orders(
        current_user,
        statuses=statuses,
        skip=pagination.offset,
        limit=pagination.size,
        by_priority=by_priority,
    )


@router.get("/{order_id}", response_model=Order)
def get_order(
    order_id: int,
    service: OrderService = Depends(get_order_service),
    current_user: Actor = Depends(get_current_user)
):
    return service.get_order(order_id, current_user)


@router.post("/{order_id}/assign", response_model=Order)
def assign_order(
    order_id: int,
    assignment: OrderAssign,
    service: OrderService = Depends(get_order_service),
    current_user: Actor = Depends(get_current_user)
):
    """
    Assign an order to a sales rep and vehicle
    """
    return service.assign_order(order_id, assignment.sales_rep_id, assignment.vehicle_number, current_user)


@router.get("/{order_id}/transitions", response_model=List[TransitionOption])
def get_available_transitions(
    order_id: int,
    service: OrderService = Depends(get_order_service),
    current_user: Actor = Depends(get_current_user)
):
    """
    Statuses the current user may select for this order
    """
    return [
        TransitionOption(status=option.status, label=option.label)
        for option in service.available_transitions(order_id, current_user)
    ]


@router.post("/{order_id}/transition", response_model=TransitionResult)
def transition_order(
    order_id: int,
    request: TransitionRequest,
    service: OrderService = Depends(get_order_service),
    current_user: Actor = Depends(get_current_user)
):
    """
    Change the order status; delivered targets carry the payment
    """
    outcome = service.transition(order_id, request, current_user)
    return TransitionResult(order=Order.model_validate(outcome.order), receipt=outcome.receipt)


@router.post("/{order_id}/security-bypass", response_model=Order)
def bypass_security_check(
    order_id: int,
    service: OrderService = Depends(get_order_service),
    current_user: Actor = Depends(get_current_user)
):
    """
    Bypass the security check outside working hours
    """
    return service.bypass_security_check(order_id, current_user)


@router.post("/{order_id}/security-check/preview", response_model=SecurityCheckPreview)
def preview_security_check(
    order_id: int,
    request: SecurityCheckPreviewRequest,
    service: OrderService = Depends(get_order_service),
    current_user: Actor = Depends(get_current_user)
):
    """
    Suggested load, tolerance check and per-item split for a measured total
    """
    return service.preview_security_check(order_id, request.actual_total, current_user)


@router.post("/{order_id}/final-weights/preview", response_model=FinalWeightsPreview)
def preview_final_weights(
    order_id: int,
    request: FinalWeightsPreviewRequest,
    service: OrderService = Depends(get_order_service),
    current_user: Actor = Depends(get_current_user)
):
    """
    Repriced bill for delivered weights; nothing is saved
    """
    return service.stage_final_delivery_weights(order_id, request.weights, current_user)


@router.get("/{order_id}/payments", response_model=List[OrderPayment])
def list_order_payments(
    order_id: int,
    service: OrderService = Depends(get_order_service),
    current_user: Actor = Depends(get_current_user)
):
    return service.list_payments(order_id, current_user)
