from fastapi import APIRouter
from repairflow.api.v1.endpoints import (
    auth,
    users,
    customers,
    tickets,
    parts,
    suppliers,
    inventory,
    payments,
    expenses,
    returns,
    finance,
    dashboard,
    settings,
    tracking,
    notifications,
    sms,
    install,
    contact,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(customers.router, prefix="/customers", tags=["Customers"])
api_router.include_router(tickets.router, prefix="/tickets", tags=["Tickets"])
api_router.include_router(parts.router, prefix="/parts", tags=["Inventory"])
api_router.include_router(suppliers.router, prefix="/suppliers", tags=["Inventory"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["Inventory"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
api_router.include_router(expenses.router, prefix="/expenses", tags=["Finance"])
api_router.include_router(returns.router, prefix="/returns", tags=["Returns"])
api_router.include_router(finance.router, prefix="/finance", tags=["Finance"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(settings.router, prefix="/settings", tags=["Settings"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(sms.router, prefix="/sms", tags=["SMS"])
api_router.include_router(install.router, prefix="/install", tags=["Installer"])

# Public, unauthenticated
api_router.include_router(tracking.router, prefix="/track", tags=["Tracking"])
# Public form; the inbox routes check roles
api_router.include_router(contact.router, prefix="/contact", tags=["Contact"])
