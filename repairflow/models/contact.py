from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from repairflow.core.database import Base
from repairflow.core.types import GUID, generate_uuid


class ContactMessageStatus(str, enum.Enum):
    NEW = "NEW"
    READ = "READ"
    ARCHIVED = "ARCHIVED"


class ContactMessage(Base):
    """Message sent from the public contact form, optionally about a ticket"""
    __tablename__ = "contact_messages"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    message = Column(Text, nullable=False)
    status = Column(SQLEnum(ContactMessageStatus), default=ContactMessageStatus.NEW, nullable=False, index=True)

    ticket_id = Column(GUID, ForeignKey("tickets.id", ondelete="SET NULL"), nullable=True, index=True)
    assigned_to_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    ticket = relationship("Ticket", lazy="selectin")
    assigned_to = relationship("User", lazy="selectin")

    def __repr__(self):
        return f"<ContactMessage {self.email} ({self.status.value if self.status else '-'})>"
