from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from repairflow.models.contact import ContactMessageStatus


class ContactMessageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    message: str = Field(..., min_length=1, max_length=5000)
    ticket_id: Optional[str] = None

    @field_validator("name", "message")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("phone")
    @classmethod
    def empty_phone_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class ContactMessageUpdate(BaseModel):
    """Only the fields sent are applied; assigned_to_id null unassigns"""
    status: Optional[ContactMessageStatus] = None
    assigned_to_id: Optional[str] = None


class ContactMessageCreated(BaseModel):
    id: str
    success: bool = True
    message: str = "Message sent successfully! We'll get back to you soon."


class ContactTicketBrief(BaseModel):
    id: str
    ticket_number: str

    class Config:
        from_attributes = True


class ContactAssigneeBrief(BaseModel):
    id: str
    name: str
    username: str

    class Config:
        from_attributes = True


class ContactMessageResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    message: str
    status: ContactMessageStatus
    ticket: Optional[ContactTicketBrief] = None
    assigned_to: Optional[ContactAssigneeBrief] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContactMessageDeleteAllResponse(BaseModel):
    success: bool = True
    deleted_count: int
