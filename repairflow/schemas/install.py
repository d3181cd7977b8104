from pydantic import BaseModel, EmailStr, Field, HttpUrl, field_validator
from typing import Optional, Literal, Dict
from datetime import datetime


class InstallStatus(BaseModel):
    is_installed: bool
    database_connected: bool
    admin_exists: bool
    installed_at: Optional[datetime] = None


class EnvironmentCheck(BaseModel):
    name: str
    ok: bool
    message: str


class EnvironmentReport(BaseModel):
    ready: bool
    checks: Dict[str, EnvironmentCheck]


class InstallAdminCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1, max_length=255)


class InstallCompany(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=100)
    company_email: EmailStr
    company_phone: str = Field(..., min_length=1, max_length=50)
    company_address: Optional[str] = Field(None, max_length=500)
    country: str = Field(..., min_length=2, max_length=3)
    language: Literal["en", "fr", "ar"] = "en"
    currency: str = Field(..., min_length=3, max_length=4)


class InstallPreferences(BaseModel):
    timezone: Optional[str] = None
    sms_enabled: bool = False
    facebook_url: Optional[HttpUrl] = None
    youtube_url: Optional[HttpUrl] = None
    instagram_url: Optional[HttpUrl] = None
    theme: Literal["light", "dark", "system"] = "system"

    @field_validator("facebook_url", "youtube_url", "instagram_url", mode="before")
    @classmethod
    def blank_url(cls, value):
        return value or None


class SampleDataResult(BaseModel):
    suppliers_created: int
    parts_created: int
    customers_created: int = 0


class InstallStepResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    files: Optional[Dict[str, str]] = None
