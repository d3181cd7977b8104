# Re-export all models for convenient imports
from repairflow.models.user import User, UserRole, PasswordResetToken, LoginLog
from repairflow.models.customer import Customer
from repairflow.models.ticket import (
    Ticket,
    TicketStatus,
    TicketPriority,
    TicketStatusHistory,
    TicketPart,
    PriceAdjustment,
    SatisfactionRating,
)
from repairflow.models.inventory import (
    Supplier,
    Part,
    InventoryTransaction,
    InventoryTransactionType,
    InventoryAdjustment,
)
from repairflow.models.finance import (
    Payment,
    PaymentMethod,
    JournalEntry,
    JournalEntryType,
    Expense,
    ExpenseType,
)
from repairflow.models.returns import Return, ReturnItem, ReturnStatus, ItemCondition
from repairflow.models.notification import Notification, NotificationPreference, NotificationType
from repairflow.models.setting import Setting, SMSTemplate
from repairflow.models.contact import ContactMessage, ContactMessageStatus

__all__ = [
    # Users
    "User",
    "UserRole",
    "PasswordResetToken",
    "LoginLog",
    # Customers
    "Customer",
    # Tickets
    "Ticket",
    "TicketStatus",
    "TicketPriority",
    "TicketStatusHistory",
    "TicketPart",
    "PriceAdjustment",
    "SatisfactionRating",
    # Inventory
    "Supplier",
    "Part",
    "InventoryTransaction",
    "InventoryTransactionType",
    "InventoryAdjustment",
    # Finance
    "Payment",
    "PaymentMethod",
    "JournalEntry",
    "JournalEntryType",
    "Expense",
    "ExpenseType",
    # Returns
    "Return",
    "ReturnItem",
    "ReturnStatus",
    "ItemCondition",
    # Notifications
    "Notification",
    "NotificationPreference",
    "NotificationType",
    # Settings
    "Setting",
    "SMSTemplate",
    # Contact
    "ContactMessage",
    "ContactMessageStatus",
]
