from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from repairflow.core.database import Base
from repairflow.core.types import GUID, generate_uuid


class Customer(Base):
    """Walk-in customer who owns one or more repair tickets"""
    __tablename__ = "customers"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=False, index=True)
    email = Column(String(255), nullable=True, index=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tickets = relationship("Ticket", back_populates="customer", passive_deletes=True)

    @property
    def first_name(self) -> str:
        return (self.name or "").split(" ")[0]

    def __repr__(self):
        return f"<Customer {self.name}>"
