from pydantic import BaseModel, Field, EmailStr, model_validator
from typing import Optional, List
from datetime import datetime

from repairflow.models.inventory import InventoryTransactionType


# ==================== Suppliers ====================

class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    contact_person: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    notes: Optional[str] = None


class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_person: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    notes: Optional[str] = None


class SupplierResponse(BaseModel):
    id: str
    name: str
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    parts_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True


# ==================== Parts ====================

class PartCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    # Generated from the name when omitted
    sku: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    quantity: int = Field(0, ge=0)
    reorder_level: int = Field(5, ge=0)
    unit_price: float = Field(0, ge=0)
    supplier: Optional[str] = Field(None, max_length=255)
    supplier_id: Optional[str] = None


class PartUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    sku: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)
    unit_price: Optional[float] = Field(None, ge=0)
    supplier: Optional[str] = Field(None, max_length=255)
    supplier_id: Optional[str] = None


class PartResponse(BaseModel):
    id: str
    name: str
    sku: str
    description: Optional[str] = None
    quantity: int
    reorder_level: int
    unit_price: float
    supplier: Optional[str] = None
    supplier_id: Optional[str] = None
    is_low_stock: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InventoryTransactionResponse(BaseModel):
    id: str
    part_id: str
    type: InventoryTransactionType
    quantity: int
    reason: Optional[str] = None
    ticket_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ==================== Adjustments ====================

class InventoryAdjustmentCreate(BaseModel):
    part_id: str
    qty_change: int
    cost: float = Field(0, ge=0)
    cost_per_unit: Optional[float] = Field(None, ge=0)
    reason: str = Field(..., min_length=3)
    related_return_id: Optional[str] = None

    @model_validator(mode="after")
    def check_quantity(self):
        if self.qty_change == 0:
            raise ValueError("qty_change must not be zero")
        if self.cost_per_unit is None:
            self.cost_per_unit = round(self.cost / abs(self.qty_change), 2)
        return self


class InventoryAdjustmentResponse(BaseModel):
    id: str
    part_id: str
    part: Optional[PartResponse] = None
    qty_change: int
    cost: float
    cost_per_unit: float
    reason: str
    related_return_id: Optional[str] = None
    created_by_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
