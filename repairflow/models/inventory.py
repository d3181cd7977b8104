from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from repairflow.core.database import Base
from repairflow.core.types import GUID, Money, generate_uuid


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False, index=True)
    contact_person = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    parts = relationship("Part", back_populates="supplier_ref", passive_deletes=True)

    def __repr__(self):
        return f"<Supplier {self.name}>"


class Part(Base):
    """Stocked spare part"""
    __tablename__ = "parts"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False, index=True)
    sku = Column(String(100), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, default=0, nullable=False)
    reorder_level = Column(Integer, default=5, nullable=False)
    unit_price = Column(Money, default=0, nullable=False)

    # Free-text supplier name kept alongside the optional supplier record
    supplier = Column(String(255), nullable=True)
    supplier_id = Column(GUID, ForeignKey("suppliers.id"), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    supplier_ref = relationship("Supplier", back_populates="parts", lazy="selectin")
    transactions = relationship(
        "InventoryTransaction", back_populates="part", cascade="all, delete-orphan",
        order_by="InventoryTransaction.created_at.desc()", passive_deletes=True
    )

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.reorder_level

    def __repr__(self):
        return f"<Part {self.sku} qty={self.quantity}>"


class InventoryTransactionType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"


class InventoryTransaction(Base):
    """Stock movement ledger (every quantity change on a part)"""
    __tablename__ = "inventory_transactions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    part_id = Column(GUID, ForeignKey("parts.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(SQLEnum(InventoryTransactionType), nullable=False)
    quantity = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=True)
    ticket_id = Column(GUID, ForeignKey("tickets.id"), nullable=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    part = relationship("Part", back_populates="transactions")

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.type == InventoryTransactionType.IN else -self.quantity


class InventoryAdjustment(Base):
    """Manual stock correction with its cost (loss when qty_change < 0)"""
    __tablename__ = "inventory_adjustments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    part_id = Column(GUID, ForeignKey("parts.id"), nullable=False, index=True)
    qty_change = Column(Integer, nullable=False)
    cost = Column(Money, default=0, nullable=False)
    cost_per_unit = Column(Money, default=0, nullable=False)
    reason = Column(Text, nullable=False)
    related_return_id = Column(GUID, ForeignKey("returns.id"), nullable=True, index=True)
    created_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    part = relationship("Part", lazy="selectin")
