from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from repairflow.core.database import Base
from repairflow.core.types import GUID, generate_uuid


class NotificationType(str, enum.Enum):
    STATUS_CHANGE = "STATUS_CHANGE"
    PRICE_ADJUSTMENT = "PRICE_ADJUSTMENT"
    PAYMENT_STATUS_CHANGE = "PAYMENT_STATUS_CHANGE"
    ASSIGNMENT = "ASSIGNMENT"
    TICKET_CREATED = "TICKET_CREATED"
    RETURN_CREATED = "RETURN_CREATED"
    RETURN_APPROVED = "RETURN_APPROVED"
    RETURN_REJECTED = "RETURN_REJECTED"
    LOW_STOCK = "LOW_STOCK"


class Notification(Base):
    """In-app notification for one user"""
    __tablename__ = "notifications"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(SQLEnum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    ticket_id = Column(GUID, ForeignKey("tickets.id", ondelete="SET NULL"), nullable=True)
    read = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class NotificationPreference(Base):
    """Per-user opt-out for a notification type (absent row means enabled)"""
    __tablename__ = "notification_preferences"
    __table_args__ = (UniqueConstraint("user_id", "type", name="uq_notification_pref"),)

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(SQLEnum(NotificationType), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="notification_preferences")
