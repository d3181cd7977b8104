# API endpoints
from . import (
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

__all__ = [
    "auth",
    "users",
    "customers",
    "tickets",
    "parts",
    "suppliers",
    "inventory",
    "payments",
    "expenses",
    "returns",
    "finance",
    "dashboard",
    "settings",
    "tracking",
    "notifications",
    "sms",
    "install",
    "contact",
]
