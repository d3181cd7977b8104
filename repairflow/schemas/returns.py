from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from repairflow.models.returns import ReturnStatus, ItemCondition


class ReturnItemCreate(BaseModel):
    part_id: str
    quantity: int = Field(1, gt=0)
    reason: Optional[str] = None
    condition: ItemCondition = ItemCondition.GOOD


class ReturnCreate(BaseModel):
    ticket_id: str
    reason: str = Field(..., min_length=1)
    # Defaults to the ticket's final price (or estimate)
    refund_amount: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    items: List[ReturnItemCreate] = []


class ReturnApprove(BaseModel):
    partial_amount: Optional[float] = Field(None, gt=0)
    adjust_inventory: bool = True
    notes: Optional[str] = None


class ReturnReject(BaseModel):
    reason: str = Field(..., min_length=1)


class ReturnItemResponse(BaseModel):
    id: str
    part_id: str
    quantity: int
    reason: Optional[str] = None
    condition: ItemCondition

    class Config:
        from_attributes = True


class ReturnTicketBrief(BaseModel):
    id: str
    ticket_number: str
    device_brand: str
    device_model: Optional[str] = None

    class Config:
        from_attributes = True


class ReturnResponse(BaseModel):
    id: str
    ticket_id: str
    ticket: Optional[ReturnTicketBrief] = None
    reason: str
    refund_amount: float
    status: ReturnStatus
    notes: Optional[str] = None
    items: List[ReturnItemResponse] = []
    created_by_id: Optional[str] = None
    handled_by_id: Optional[str] = None
    handled_at: Optional[datetime] = None
    refund_payment_id: Optional[str] = None
    inventory_adjustment_id: Optional[str] = None
    is_refunded: bool
    refunded_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReturnValidation(BaseModel):
    valid: bool
    ticket_id: str
    refund_amount: float
    return_window_days: int
