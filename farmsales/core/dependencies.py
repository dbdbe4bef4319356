# farmsales/core/dependencies.py
from fastapi import Depends, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from ..config.database import get_db
from ..config.settings import get_settings
from ..config.logging import get_logger
from ..core.exceptions import UnauthorizedError
from ..core.security import Actor, actor_from_token
from ..services.notification_service import NotificationService
from ..services.on_demand_service import OnDemandService
from ..services.order_service import OrderService
from ..services.return_processor import ReturnProcessor
from ..utils.date_utils import FarmClock, get_clock

logger = get_logger(__name__)
settings = get_settings()
security = HTTPBearer(auto_error=False)


# Authentication dependencies
def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Actor:
    """Resolve the acting user from the bearer token."""
    if not credentials:
        raise UnauthorizedError("Not authenticated")

    actor = actor_from_token(credentials.credentials)
    request.state.user_id = actor.id
    return actor


# Farm clock dependency; tests override this with a FixedClock
def get_farm_clock() -> FarmClock:
    return get_clock()


def get_notification_service() -> NotificationService:
    return NotificationService()


# Service dependencies
def get_order_service(
    db: Session = Depends(get_db),
    clock: FarmClock = Depends(get_farm_clock),
    notifier: NotificationService = Depends(get_notification_service)
) -> OrderService:
    return OrderService(db, clock=clock, notifier=notifier)


def get_return_processor(
    db: Session = Depends(get_db),
    clock: FarmClock = Depends(get_farm_clock)
) -> ReturnProcessor:
    return ReturnProcessor(db, clock=clock)


def get_on_demand_service(
    db: Session = Depends(get_db),
    clock: FarmClock = Depends(get_farm_clock)
) -> OnDemandService:
    return OnDemandService(db, clock=clock)


# Pagination dependency
class PaginationParams:
    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        size: int = Query(20, ge=1, le=100, description="Page size")
    ):
        self.page = page
        self.size = size
        self.offset = (page - 1) * size
