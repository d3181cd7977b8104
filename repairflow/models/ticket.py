from sqlalchemy import (
    Column, String, Boolean, DateTime, Enum as SQLEnum, Integer, Text, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from repairflow.core.database import Base
from repairflow.core.types import GUID, Money, generate_uuid


class TicketStatus(str, enum.Enum):
    RECEIVED = "RECEIVED"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_FOR_PARTS = "WAITING_FOR_PARTS"
    REPAIRED = "REPAIRED"
    COMPLETED = "COMPLETED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


class TicketPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class Ticket(Base):
    """Repair work order"""
    __tablename__ = "tickets"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    ticket_number = Column(String(50), unique=True, index=True, nullable=False)
    tracking_code = Column(String(16), unique=True, index=True, nullable=False)

    customer_id = Column(GUID, ForeignKey("customers.id"), nullable=False, index=True)

    # Device
    device_brand = Column(String(100), nullable=False)
    device_model = Column(String(100), nullable=True)
    device_issue = Column(Text, nullable=False)
    device_condition_front = Column(Text, nullable=True)
    device_condition_back = Column(Text, nullable=True)

    status = Column(SQLEnum(TicketStatus), default=TicketStatus.RECEIVED, nullable=False, index=True)
    priority = Column(SQLEnum(TicketPriority), default=TicketPriority.MEDIUM, nullable=False)

    # Pricing
    estimated_price = Column(Money, default=0, nullable=False)
    final_price = Column(Money, nullable=True)
    paid = Column(Boolean, default=False, nullable=False)

    assigned_to_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    warranty_days = Column(Integer, nullable=True)
    warranty_text = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    completed_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="tickets", lazy="selectin")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id], lazy="selectin")
    history = relationship(
        "TicketStatusHistory", back_populates="ticket", cascade="all, delete-orphan",
        order_by="TicketStatusHistory.created_at", lazy="selectin"
    )
    parts = relationship("TicketPart", back_populates="ticket", cascade="all, delete-orphan", lazy="selectin")
    payments = relationship(
        "Payment", back_populates="ticket", order_by="Payment.created_at", lazy="selectin"
    )
    returns = relationship("Return", back_populates="ticket", lazy="selectin")
    price_adjustments = relationship(
        "PriceAdjustment", back_populates="ticket", cascade="all, delete-orphan", lazy="selectin"
    )
    satisfaction_rating = relationship(
        "SatisfactionRating", back_populates="ticket", uselist=False, lazy="selectin"
    )

    @property
    def total_price(self) -> float:
        """Final price once set, otherwise the estimate"""
        if self.final_price is not None:
            return float(self.final_price)
        return float(self.estimated_price or 0)

    @property
    def parts_cost(self) -> float:
        return round(sum(tp.line_cost for tp in self.parts), 2)

    def __repr__(self):
        return f"<Ticket {self.ticket_number} {self.status.value if self.status else '-'}>"


class TicketStatusHistory(Base):
    """Status timeline entry; also used for payment and return notes"""
    __tablename__ = "ticket_status_history"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    ticket_id = Column(GUID, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(SQLEnum(TicketStatus), nullable=False)
    notes = Column(Text, nullable=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    ticket = relationship("Ticket", back_populates="history")
    user = relationship("User", lazy="selectin")


class TicketPart(Base):
    """Part consumed by a repair"""
    __tablename__ = "ticket_parts"
    __table_args__ = (UniqueConstraint("ticket_id", "part_id", name="uq_ticket_part"),)

    id = Column(GUID, primary_key=True, default=generate_uuid)
    ticket_id = Column(GUID, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    part_id = Column(GUID, ForeignKey("parts.id"), nullable=False, index=True)
    quantity = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    ticket = relationship("Ticket", back_populates="parts")
    part = relationship("Part", lazy="selectin")

    @property
    def line_cost(self) -> float:
        unit_price = float(self.part.unit_price or 0) if self.part else 0.0
        return unit_price * self.quantity


class PriceAdjustment(Base):
    """Audit of a final price change on a repaired ticket"""
    __tablename__ = "price_adjustments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    ticket_id = Column(GUID, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    old_price = Column(Money, nullable=False)
    new_price = Column(Money, nullable=False)
    reason = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    ticket = relationship("Ticket", back_populates="price_adjustments")


class SatisfactionRating(Base):
    """Customer feedback left from the tracking page (one per ticket)"""
    __tablename__ = "satisfaction_ratings"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    ticket_id = Column(GUID, ForeignKey("tickets.id", ondelete="CASCADE"), unique=True, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    customer_email = Column(String(255), nullable=True)
    verification_method = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    ticket = relationship("Ticket", back_populates="satisfaction_rating")
