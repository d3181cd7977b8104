from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict
from datetime import datetime


class SMSTemplateCreate(BaseModel):
    template_id: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9_]+$")
    language: str = Field("en", min_length=2, max_length=5)
    name: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=1000)
    is_active: bool = True


class SMSTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    message: Optional[str] = Field(None, min_length=1, max_length=1000)
    is_active: Optional[bool] = None


class SMSTemplateResponse(BaseModel):
    # Stored row id, or None for a built-in template
    id: Optional[str] = None
    template_id: str
    language: str
    name: str
    message: str
    variables: List[str] = []
    is_active: bool = True
    is_default: bool = False
    updated_at: Optional[datetime] = None


class SMSSendRequest(BaseModel):
    phone_number: str = Field(..., min_length=3, max_length=30)
    message: Optional[str] = Field(None, max_length=1000)
    template_id: Optional[str] = None
    variables: Dict[str, str] = {}
    language: Optional[str] = None
    ticket_id: Optional[str] = None

    @model_validator(mode="after")
    def message_or_template(self):
        if not (self.message and self.message.strip()) and not self.template_id:
            raise ValueError("Either message or template_id is required")
        return self


class SMSSendResponse(BaseModel):
    success: bool
    provider: str
    phone_number: str
    message: str
    message_id: Optional[str] = None
