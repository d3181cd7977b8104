from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List, Dict, Literal
from datetime import datetime

from repairflow.models.ticket import TicketStatus, TicketPriority
from repairflow.schemas.auth import UserBrief
from repairflow.schemas.customer import CustomerResponse
from repairflow.schemas.finance import PaymentResponse


class TicketCreate(BaseModel):
    customer_id: str
    device_brand: str = Field(..., min_length=1, max_length=100)
    device_model: Optional[str] = Field(None, max_length=100)
    device_issue: str = Field(..., min_length=1)
    device_condition_front: Optional[str] = None
    device_condition_back: Optional[str] = None
    # Falls back to the default_priority setting
    priority: Optional[TicketPriority] = None
    estimated_price: float = Field(0, ge=0)
    assigned_to_id: Optional[str] = None
    warranty_days: Optional[int] = Field(None, ge=0)
    warranty_text: Optional[str] = None
    notes: Optional[str] = None


class TicketUpdate(BaseModel):
    status: Optional[TicketStatus] = None
    status_notes: Optional[str] = None
    final_price: Optional[float] = Field(None, ge=0)
    price_adjustment_reason: Optional[str] = None
    return_reason: Optional[str] = None

    device_brand: Optional[str] = Field(None, min_length=1, max_length=100)
    device_model: Optional[str] = Field(None, max_length=100)
    device_issue: Optional[str] = Field(None, min_length=1)
    device_condition_front: Optional[str] = None
    device_condition_back: Optional[str] = None
    priority: Optional[TicketPriority] = None
    estimated_price: Optional[float] = Field(None, ge=0)
    assigned_to_id: Optional[str] = None
    warranty_days: Optional[int] = Field(None, ge=0)
    warranty_text: Optional[str] = None
    notes: Optional[str] = None


class StatusHistoryResponse(BaseModel):
    id: str
    status: TicketStatus
    notes: Optional[str] = None
    user: Optional[UserBrief] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PartBrief(BaseModel):
    id: str
    name: str
    sku: str
    unit_price: float

    class Config:
        from_attributes = True


class TicketPartCreate(BaseModel):
    part_id: str
    quantity: int = Field(1, gt=0)


class TicketPartResponse(BaseModel):
    id: str
    part_id: str
    quantity: int
    part: Optional[PartBrief] = None
    line_cost: float
    created_at: datetime

    class Config:
        from_attributes = True


class PriceAdjustmentResponse(BaseModel):
    id: str
    old_price: float
    new_price: float
    reason: str
    user_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TicketResponse(BaseModel):
    id: str
    ticket_number: str
    tracking_code: str
    customer_id: str
    customer: Optional[CustomerResponse] = None
    device_brand: str
    device_model: Optional[str] = None
    device_issue: str
    device_condition_front: Optional[str] = None
    device_condition_back: Optional[str] = None
    status: TicketStatus
    priority: TicketPriority
    estimated_price: float
    final_price: Optional[float] = None
    total_price: float
    paid: bool
    assigned_to: Optional[UserBrief] = None
    warranty_days: Optional[int] = None
    warranty_text: Optional[str] = None
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TicketDetailResponse(TicketResponse):
    history: List[StatusHistoryResponse] = []
    parts: List[TicketPartResponse] = []
    payments: List[PaymentResponse] = []
    price_adjustments: List[PriceAdjustmentResponse] = []
    parts_cost: float = 0
    total_paid: float = 0
    outstanding: float = 0
    allowed_transitions: List[TicketStatus] = []
    status_info: Dict[str, str] = {}
    has_return: bool = False


class TicketListResponse(BaseModel):
    items: List[TicketResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


# ==================== Satisfaction ====================

class SatisfactionCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
    verification_method: Literal["TOKEN", "EMAIL", "AUTH"] = "TOKEN"
    ticket_number: Optional[str] = None
    tracking_code: Optional[str] = None
    email: Optional[EmailStr] = None
    # Admin-only: skip customer verification when allowed by settings
    override: bool = False


class SatisfactionResponse(BaseModel):
    id: str
    ticket_id: str
    rating: int
    comment: Optional[str] = None
    verification_method: str
    created_at: datetime

    class Config:
        from_attributes = True
