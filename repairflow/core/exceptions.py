"""
Custom Exceptions for RepairFlow
================================

Services raise these instead of HTTPException so the same rules can be used
from endpoints, the installer and tests. The API layer turns them into JSON
responses through `register_exception_handlers`.

Usage:
    from repairflow.core.exceptions import ResourceNotFoundError

    if not ticket:
        raise ResourceNotFoundError("Ticket", ticket_id)
"""

from typing import Optional, Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class RepairFlowError(Exception):
    """Base exception for all RepairFlow errors"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(RepairFlowError):
    """User authentication failed"""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(RepairFlowError):
    """User not authorized for this action"""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(RepairFlowError):
    """Base class for not found errors"""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        message = (
            f"{resource_type} with ID '{resource_id}' not found"
            if resource_id else f"{resource_type} not found"
        )
        super().__init__(
            message,
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class TicketNotFoundError(ResourceNotFoundError):
    def __init__(self, ticket_id: str):
        super().__init__("Ticket", ticket_id)


class PartNotFoundError(ResourceNotFoundError):
    def __init__(self, part_id: str):
        super().__init__("Part", part_id)


class CustomerNotFoundError(ResourceNotFoundError):
    def __init__(self, customer_id: str):
        super().__init__("Customer", customer_id)


class ReturnNotFoundError(ResourceNotFoundError):
    def __init__(self, return_id: str):
        super().__init__("Return", return_id)


class TrackingLookupError(ResourceNotFoundError):
    """Public lookup failed; the message never says which half was wrong"""

    def __init__(self):
        super().__init__("Ticket")
        self.message = "Unable to locate ticket. Please verify your information."
        self.details = {}


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(RepairFlowError):
    """Input failed a business rule"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConflictError(RepairFlowError):
    """Resource already exists or is in a conflicting state"""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, code: str = "CONFLICT"):
        super().__init__(message, code=code)


class ResourceInUseError(ValidationError):
    """Delete refused because other records still reference the resource"""

    def __init__(self, resource_type: str, reason: str):
        super().__init__(f"Cannot delete {resource_type.lower()}: {reason}")
        self.code = f"{resource_type.upper()}_IN_USE"


class InsufficientStockError(ValidationError):
    """Not enough units of a part to deduct"""

    def __init__(self, part_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {part_name}. Requested: {requested}, Available: {available}"
        )
        self.code = "INSUFFICIENT_STOCK"
        self.details = {"requested": requested, "available": available}


# ============================================
# Ticket Lifecycle Errors
# ============================================

class TransitionError(RepairFlowError):
    """
    Status change refused by the lifecycle guard.

    `code` is one of INVALID_TRANSITION, INSUFFICIENT_PERMISSIONS,
    PAYMENT_REQUIRED, TERMINAL_STATE or RETURN_FLOW_REQUIRED.
    """

    _STATUS_BY_CODE = {
        "INSUFFICIENT_PERMISSIONS": status.HTTP_403_FORBIDDEN,
        "PAYMENT_REQUIRED": status.HTTP_402_PAYMENT_REQUIRED,
    }

    def __init__(self, message: str, code: str, current: str = "", target: str = ""):
        super().__init__(message, code=code, details={"current": current, "target": target})
        self.status_code = self._STATUS_BY_CODE.get(code, status.HTTP_400_BAD_REQUEST)


# ============================================
# Payment Errors
# ============================================

class PaymentError(RepairFlowError):
    """Payment operation failed"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message, code="PAYMENT_ERROR")


class PaymentRequiredError(PaymentError):
    """Outstanding balance blocks the operation"""

    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, outstanding: float):
        super().__init__(f"Outstanding balance of {outstanding:.2f} must be paid first")
        self.code = "PAYMENT_REQUIRED"
        self.details = {"outstanding": outstanding}


# ============================================
# Installer Errors
# ============================================

class InstallationLockedError(RepairFlowError):
    """Installer step called after installation finished"""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self):
        super().__init__("Application is already installed", code="ALREADY_INSTALLED")


# ============================================
# Delivery Errors (SMS / Email)
# ============================================

class DeliveryError(RepairFlowError):
    """An outbound message could not be delivered"""

    status_code = status.HTTP_502_BAD_GATEWAY


class SMSDeliveryError(DeliveryError):
    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message, code="SMS_DELIVERY_FAILED")
        if provider:
            self.details["provider"] = provider


class EmailDeliveryError(DeliveryError):
    def __init__(self, message: str):
        super().__init__(message, code="EMAIL_DELIVERY_FAILED")


# ============================================
# Helpers for API responses
# ============================================

def error_response(error: RepairFlowError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "detail": error.message,
        "code": error.code,
        "details": error.details,
    }


async def repairflow_error_handler(request: Request, exc: RepairFlowError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RepairFlowError, repairflow_error_handler)
