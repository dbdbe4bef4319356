"""
Order status state machine.

The role-scoped transition menus are kept as one declarative table,
``(current status, role) -> allowed statuses``, built once at import time.
Every menu lists statuses in canonical order. Unknown roles only ever see
the current status.
"""
from dataclasses import dataclass
from datetime import datetime
import enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..config.logging import get_logger, log_security_event
from ..core.exceptions import InvalidTransitionError, ValidationError
from ..models.order import OrderStatus, DELIVERED_STATUSES

logger = get_logger(__name__)


class UserRole(str, enum.Enum):
    SALES_REP = "Sales Rep"
    SECURITY_GUARD = "Security Guard"
    ADMIN = "Admin"
    SUPER_ADMIN = "Super Admin"
    ORDER_MANAGER = "Order Manager"
    FINANCE_ADMIN = "Finance Admin"


UNRESTRICTED_ROLES: Tuple[UserRole, ...] = (
    UserRole.ADMIN,
    UserRole.SUPER_ADMIN,
    UserRole.ORDER_MANAGER,
    UserRole.FINANCE_ADMIN,
)

ALL_STATUSES: Tuple[OrderStatus, ...] = tuple(OrderStatus)

STATUS_LABELS: Dict[OrderStatus, str] = {
    OrderStatus.DELIVERED: "Delivered - Full Payment Collected",
    OrderStatus.DELIVERED_PARTIALLY_PAID: "Delivered - Partial Payment Collected",
    OrderStatus.DELIVERED_NOT_PAID: "Delivered - No Payment Collected",
}

# Lower sorts first in work queues
STATUS_PRIORITY: Dict[OrderStatus, int] = {
    OrderStatus.ASSIGNED: 1,
    OrderStatus.PRODUCTS_LOADED: 2,
    OrderStatus.PRODUCT_RELOADED: 3,
    OrderStatus.SECURITY_CHECK_INCOMPLETE: 4,
    OrderStatus.SECURITY_CHECKED: 4,
    OrderStatus.SECURITY_CHECK_BYPASSED: 4,
    OrderStatus.DEPARTED_FARM: 5,
    OrderStatus.DELIVERED_NOT_PAID: 6,
    OrderStatus.DELIVERED_PARTIALLY_PAID: 7,
    OrderStatus.DELIVERED: 8,
    OrderStatus.COMPLETED: 9,
    OrderStatus.PENDING: 10,
    OrderStatus.CANCELLED: 11,
}

SECURITY_CHECK_REASONS: Tuple[str, ...] = (
    "Missing Quantity",
    "Damaged Product",
    "Incorrect Labeling",
    "Unauthorized Product",
    "Documentation Mismatch",
    "Expired Product",
    "Overloaded/Improperly Loaded",
)

BYPASS_REASON = "Bypassed due to off-hours operation"
BYPASS_NOTE = (
    "Security check was bypassed as it is outside regular working hours (6:00 AM - 6:00 PM)"
)

# Statuses from which the guard may take the off-hours bypass path
BYPASSABLE_STATUSES = frozenset({
    OrderStatus.PRODUCTS_LOADED,
    OrderStatus.PRODUCT_RELOADED,
    OrderStatus.SECURITY_CHECK_INCOMPLETE,
})

_SALES_REP_MENUS: Dict[OrderStatus, Iterable[OrderStatus]] = {
    OrderStatus.ASSIGNED: {OrderStatus.ASSIGNED, OrderStatus.PRODUCTS_LOADED},
    OrderStatus.PRODUCTS_LOADED: {OrderStatus.PRODUCTS_LOADED},
    OrderStatus.SECURITY_CHECK_INCOMPLETE: {OrderStatus.SECURITY_CHECK_INCOMPLETE, OrderStatus.PRODUCT_RELOADED},
    OrderStatus.SECURITY_CHECKED: {OrderStatus.SECURITY_CHECKED, OrderStatus.DEPARTED_FARM},
    OrderStatus.SECURITY_CHECK_BYPASSED: {OrderStatus.SECURITY_CHECK_BYPASSED, OrderStatus.DEPARTED_FARM},
    OrderStatus.DEPARTED_FARM: {OrderStatus.DEPARTED_FARM, *DELIVERED_STATUSES},
    OrderStatus.DELIVERED_NOT_PAID: {
        OrderStatus.DELIVERED_NOT_PAID, OrderStatus.DELIVERED, OrderStatus.DELIVERED_PARTIALLY_PAID
    },
    OrderStatus.DELIVERED_PARTIALLY_PAID: {OrderStatus.DELIVERED_PARTIALLY_PAID, OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.DELIVERED},
}

_GUARD_CHECK_MENU = {
    OrderStatus.PRODUCTS_LOADED,
    OrderStatus.SECURITY_CHECKED,
    OrderStatus.SECURITY_CHECK_INCOMPLETE,
}

_SECURITY_GUARD_MENUS: Dict[OrderStatus, Iterable[OrderStatus]] = {
    OrderStatus.PRODUCTS_LOADED: _GUARD_CHECK_MENU,
    OrderStatus.PRODUCT_RELOADED: _GUARD_CHECK_MENU,
    OrderStatus.SECURITY_CHECK_INCOMPLETE: {OrderStatus.SECURITY_CHECK_INCOMPLETE},
}

# Guards never see the reload state in their menus
_SECURITY_GUARD_VISIBLE = tuple(s for s in ALL_STATUSES if s != OrderStatus.PRODUCT_RELOADED)


def _ordered(statuses: Iterable[OrderStatus], universe: Sequence[OrderStatus] = ALL_STATUSES) -> Tuple[OrderStatus, ...]:
    allowed = set(statuses)
    return tuple(s for s in universe if s in allowed)


def _build_transition_table() -> Dict[Tuple[OrderStatus, UserRole], Tuple[OrderStatus, ...]]:
    table = {}
    for current in ALL_STATUSES:
        for role in UNRESTRICTED_ROLES:
            table[(current, role)] = ALL_STATUSES
        table[(current, UserRole.SALES_REP)] = _ordered(_SALES_REP_MENUS.get(current, {current}))
        table[(current, UserRole.SECURITY_GUARD)] = _ordered(
            _SECURITY_GUARD_MENUS.get(current, {current}), _SECURITY_GUARD_VISIBLE
        )
    return table


TRANSITION_TABLE = _build_transition_table()


@dataclass(frozen=True)
class TransitionOption:
    status: OrderStatus
    label: str


def status_label(status: Union[OrderStatus, str]) -> str:
    status = OrderStatus(status)
    return STATUS_LABELS.get(status, status.value)


def status_sort_key(status: Union[OrderStatus, str]) -> int:
    return STATUS_PRIORITY.get(OrderStatus(status), len(STATUS_PRIORITY) + 1)


def parse_role(role: Union[UserRole, str, None]) -> Optional[UserRole]:
    """Map an opaque role string to a known role; unknown roles map to None."""
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return None


def _current_status(order_or_status: Any) -> OrderStatus:
    status = getattr(order_or_status, "status", order_or_status)
    return OrderStatus(status)


class OrderStateMachine:
    """Role-scoped transition menus and the validation built on them."""

    def __init__(self, table: Dict[Tuple[OrderStatus, UserRole], Tuple[OrderStatus, ...]] = None):
        self.table = table or TRANSITION_TABLE

    def allowed_statuses(self, order_or_status, role) -> Tuple[OrderStatus, ...]:
        current = _current_status(order_or_status)
        known_role = parse_role(role)
        if known_role is None:
            return (current,)
        return self.table.get((current, known_role), (current,))

    def available_transitions(self, order_or_status, role) -> List[TransitionOption]:
        """Ordered ``{status, label}`` menu for ``role`` from the order's current status."""
        return [TransitionOption(status, status_label(status)) for status in self.allowed_statuses(order_or_status, role)]

    def can_transition(self, order_or_status, role, target) -> bool:
        return OrderStatus(target) in self.allowed_statuses(order_or_status, role)

    def validate_transition(self, order_or_status, role, target, order_code: str = None, user_id: str = None) -> OrderStatus:
        current = _current_status(order_or_status)
        target = OrderStatus(target)
        if not self.can_transition(current, role, target):
            code = order_code or getattr(order_or_status, "display_id", None) or "?"
            log_security_event(
                "INVALID_STATUS_TRANSITION",
                user_id=user_id,
                details=f"{code}: '{current.value}' -> '{target.value}'",
                role=str(getattr(role, "value", role)),
            )
            raise InvalidTransitionError(code, current.value, target.value, str(getattr(role, "value", role)))
        return target

    def is_noop(self, current, target) -> bool:
        """
        Re-selecting the current status changes nothing, except for the states
        whose entry carries a payload: an incomplete check re-records its
        notes and a delivered status always records a payment.
        """
        current, target = OrderStatus(current), OrderStatus(target)
        if current != target:
            return False
        return target != OrderStatus.SECURITY_CHECK_INCOMPLETE and target not in DELIVERED_STATUSES


def validate_incomplete_reasons(reasons: Sequence[str], custom_note: Optional[str]) -> Dict[str, Any]:
    """Notes payload for an incomplete security check."""
    reasons = [r.strip() for r in (reasons or []) if r and r.strip()]
    custom_note = (custom_note or "").strip()

    unknown = [r for r in reasons if r not in SECURITY_CHECK_REASONS]
    if unknown:
        raise ValidationError(f"Unknown security check reason(s): {', '.join(unknown)}", field="reasons")
    if not reasons and not custom_note:
        raise ValidationError(
            "Select at least one reason or enter a note for an incomplete security check",
            field="reasons"
        )
    return {"reasons": list(dict.fromkeys(reasons)), "customNote": custom_note}


def build_bypass_record(bypassed_by: str, at: datetime) -> Dict[str, Any]:
    """Structured notes stamped on an order whose security check was bypassed."""
    return {
        "bypassed": True,
        "reason": BYPASS_REASON,
        "timestamp": at.isoformat(),
        "bypassedBy": bypassed_by,
        "note": BYPASS_NOTE,
    }
