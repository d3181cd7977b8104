from sqlalchemy import Column, Boolean, DateTime, Enum as SQLEnum, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from repairflow.core.database import Base
from repairflow.core.types import GUID, Money, generate_uuid


class ReturnStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ItemCondition(str, enum.Enum):
    GOOD = "GOOD"
    DAMAGED = "DAMAGED"


class Return(Base):
    """Customer return of a repaired device, pending admin decision"""
    __tablename__ = "returns"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    ticket_id = Column(GUID, ForeignKey("tickets.id"), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    refund_amount = Column(Money, default=0, nullable=False)
    status = Column(SQLEnum(ReturnStatus), default=ReturnStatus.PENDING, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    created_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    handled_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    handled_at = Column(DateTime, nullable=True)

    refund_payment_id = Column(GUID, ForeignKey("payments.id"), nullable=True)
    inventory_adjustment_id = Column(GUID, nullable=True)
    is_refunded = Column(Boolean, default=False, nullable=False)
    refunded_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    ticket = relationship("Ticket", back_populates="returns", lazy="selectin")
    items = relationship("ReturnItem", back_populates="return_", cascade="all, delete-orphan", lazy="selectin")


class ReturnItem(Base):
    __tablename__ = "return_items"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    return_id = Column(GUID, ForeignKey("returns.id", ondelete="CASCADE"), nullable=False, index=True)
    part_id = Column(GUID, ForeignKey("parts.id"), nullable=False, index=True)
    quantity = Column(Integer, default=1, nullable=False)
    reason = Column(Text, nullable=True)
    condition = Column(SQLEnum(ItemCondition), default=ItemCondition.GOOD, nullable=False)

    return_ = relationship("Return", back_populates="items")
    part = relationship("Part", lazy="selectin")
