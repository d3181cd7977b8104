# Pydantic schemas
from repairflow.schemas.auth import (
    UserLogin,
    Token,
    LoginResponse,
    UserResponse,
    UserCreate,
    UserUpdate,
)
from repairflow.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
)
from repairflow.schemas.ticket import (
    TicketCreate,
    TicketUpdate,
    TicketResponse,
    TicketDetailResponse,
    TicketPartCreate,
)
from repairflow.schemas.inventory import (
    PartCreate,
    PartUpdate,
    PartResponse,
    SupplierCreate,
    SupplierResponse,
    InventoryAdjustmentCreate,
)
from repairflow.schemas.finance import (
    TicketPaymentCreate,
    PaymentResponse,
    ExpenseCreate,
    FinancialMetrics,
)
from repairflow.schemas.returns import (
    ReturnCreate,
    ReturnApprove,
    ReturnReject,
    ReturnResponse,
)

__all__ = [
    # Auth & users
    "UserLogin",
    "Token",
    "LoginResponse",
    "UserResponse",
    "UserCreate",
    "UserUpdate",
    # Customers
    "CustomerCreate",
    "CustomerUpdate",
    "CustomerResponse",
    # Tickets
    "TicketCreate",
    "TicketUpdate",
    "TicketResponse",
    "TicketDetailResponse",
    "TicketPartCreate",
    # Inventory
    "PartCreate",
    "PartUpdate",
    "PartResponse",
    "SupplierCreate",
    "SupplierResponse",
    "InventoryAdjustmentCreate",
    # Finance
    "TicketPaymentCreate",
    "PaymentResponse",
    "ExpenseCreate",
    "FinancialMetrics",
    # Returns
    "ReturnCreate",
    "ReturnApprove",
    "ReturnReject",
    "ReturnResponse",
]
