"""
Custom exceptions for the farm sales-order system.
Typed failures for the order lifecycle, quantity reconciliation and payment ledger.
"""

from typing import Any, Dict, Optional, List
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Standard error detail structure"""
    code: str
    message: str
    field: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class BaseCustomException(HTTPException):
    """Base class for all custom exceptions"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        field: Optional[str] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.field = field

    def __str__(self) -> str:
        return str(self.detail)


# =============================================================================
# HTTP EXCEPTIONS
# =============================================================================

class NotFoundError(BaseCustomException):
    """Resource not found exception"""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} with identifier '{identifier}' not found",
            error_code="RESOURCE_NOT_FOUND"
        )
        self.resource = resource
        self.identifier = identifier


class OrderNotFoundError(NotFoundError):
    """Order (or consolidated order group) not found"""

    def __init__(self, identifier: Any, resource: str = "Order"):
        super().__init__(resource, identifier)
        self.error_code = "ORDER_NOT_FOUND"


class UnauthorizedError(BaseCustomException):
    """Unauthorized access exception"""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(BaseCustomException):
    """Forbidden access exception"""

    def __init__(self, message: str = "Access denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=message,
            error_code="FORBIDDEN"
        )


class ConcurrentModificationError(BaseCustomException):
    """Another writer changed the row between our read and our write"""

    def __init__(self, resource: str = "Order", identifier: Any = None):
        message = f"{resource} was modified concurrently; reload and retry the operation"
        if identifier is not None:
            message = f"{resource} '{identifier}' was modified concurrently; reload and retry the operation"
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=message,
            error_code="CONCURRENT_MODIFICATION"
        )


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ValidationError(BaseCustomException):
    """Base validation error"""

    def __init__(self, message: str, field: str = None, errors: List[ErrorDetail] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=message,
            error_code="VALIDATION_ERROR",
            field=field
        )
        self.errors = errors or []


class ToleranceExceededError(ValidationError):
    """Measured load differs from the suggested load by more than the allowed tolerance"""

    def __init__(self, actual, suggested, tolerance):
        difference = abs(actual - suggested)
        message = (
            f"Difference from suggested load weight ({suggested:.2f} Kg) exceeds {tolerance} Kg "
            f"(actual {actual:.2f} Kg, difference {difference:.2f} Kg)"
        )
        super().__init__(
            message=message,
            field="actual_total",
            errors=[
                ErrorDetail(
                    code="TOLERANCE_EXCEEDED",
                    message=message,
                    field="actual_total",
                    details={
                        "actual": str(actual),
                        "suggested": str(suggested),
                        "tolerance": str(tolerance)
                    }
                )
            ]
        )
        self.error_code = "TOLERANCE_EXCEEDED"


# =============================================================================
# BUSINESS LOGIC ERRORS
# =============================================================================

class BusinessLogicError(BaseCustomException):
    """Base business logic error"""

    def __init__(self, message: str, error_code: str, status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY):
        super().__init__(
            status_code=status_code,
            detail=message,
            error_code=error_code
        )


class InvalidTransitionError(BusinessLogicError):
    """Requested status is not offered to this role from the current status"""

    def __init__(self, order_code: str, current_status: str, requested_status: str, role: str = None):
        message = f"Cannot change order {order_code} status from '{current_status}' to '{requested_status}'"
        if role:
            message += f" as {role}"
        super().__init__(
            message=message,
            error_code="INVALID_ORDER_STATUS_TRANSITION",
            status_code=status.HTTP_409_CONFLICT
        )
        self.current_status = current_status
        self.requested_status = requested_status


class EmptyOrderError(BusinessLogicError):
    """Reconciliation attempted on an order whose suggested total is zero"""

    def __init__(self, order_code: str = None):
        message = "Cannot update quantities for an order with no products"
        if order_code:
            message = f"Cannot update quantities for order {order_code}: it has no products"
        super().__init__(
            message=message,
            error_code="EMPTY_ORDER"
        )


class InvalidAmountError(BusinessLogicError):
    """Payment amount is negative or exceeds the remaining balance"""

    def __init__(self, amount, reason: str):
        super().__init__(
            message=f"Invalid payment amount {amount}: {reason}",
            error_code="INVALID_AMOUNT"
        )
        self.amount = amount


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def format_error_response(error: BaseCustomException) -> Dict[str, Any]:
    """Format error response for consistent API responses"""
    response = {
        "error": True,
        "error_code": getattr(error, 'error_code', None) or 'UNKNOWN_ERROR',
        "message": error.detail,
        "status_code": error.status_code
    }

    if getattr(error, 'field', None):
        response["field"] = error.field

    if getattr(error, 'errors', None):
        response["errors"] = [
            {
                "code": err.code,
                "message": err.message,
                "field": err.field,
                "details": err.details
            } for err in error.errors
        ]

    return response


async def custom_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render any HTTPException (custom or not) as the standard error body"""
    if isinstance(exc, BaseCustomException):
        body = format_error_response(exc)
    else:
        body = {
            "error": True,
            "error_code": "HTTP_ERROR",
            "message": exc.detail,
            "status_code": exc.status_code
        }
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))
