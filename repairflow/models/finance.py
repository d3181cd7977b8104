from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from repairflow.core.database import Base
from repairflow.core.types import GUID, Money, generate_uuid


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    MOBILE = "MOBILE"
    OTHER = "OTHER"


class Payment(Base):
    """Money received for a ticket; refunds are stored with a negative amount"""
    __tablename__ = "payments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    payment_number = Column(String(30), unique=True, index=True, nullable=False)
    ticket_id = Column(GUID, ForeignKey("tickets.id"), nullable=True, index=True)
    amount = Column(Money, nullable=False)
    method = Column(SQLEnum(PaymentMethod), default=PaymentMethod.CASH, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    received_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    ticket = relationship("Ticket", back_populates="payments")

    @property
    def is_refund(self) -> bool:
        return float(self.amount or 0) < 0


class JournalEntryType(str, enum.Enum):
    PAYMENT = "PAYMENT"
    REFUND = "REFUND"
    EXPENSE = "EXPENSE"
    INVENTORY_ADJUSTMENT = "INVENTORY_ADJUSTMENT"


class JournalEntry(Base):
    """Append-only money ledger across payments, refunds, expenses and stock corrections"""
    __tablename__ = "journal_entries"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    type = Column(SQLEnum(JournalEntryType), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    description = Column(Text, nullable=True)
    reference_type = Column(String(50), nullable=True)
    reference_id = Column(GUID, nullable=True)
    ticket_id = Column(GUID, ForeignKey("tickets.id"), nullable=True, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class ExpenseType(str, enum.Enum):
    PURCHASE = "PURCHASE"
    SHOP = "SHOP"
    PART_LOSS = "PART_LOSS"
    MISC = "MISC"


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    amount = Column(Money, nullable=False)
    type = Column(SQLEnum(ExpenseType), default=ExpenseType.MISC, nullable=False, index=True)
    category = Column(String(100), nullable=True, index=True)
    part_id = Column(GUID, ForeignKey("parts.id"), nullable=True)
    # Free-form device identifier (IMEI / serial) used by the high-loss report
    device_id = Column(String(100), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    receipt_url = Column(String(500), nullable=True)
    date = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    created_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
