from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Literal, Dict, Any, List
from datetime import datetime

# Settings are stored as strings, so group schemas validate the string form
BoolStr = Literal["true", "false"]
DIGITS = r"^\d+$"
DECIMAL = r"^\d+(\.\d{1,2})?$"


# ==================== Group Schemas ====================

class CompanySettings(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=100)
    company_email: Optional[str] = Field(None, pattern=r"^$|^[^@\s]+@[^@\s]+\.[^@\s]+$")
    company_phone: Optional[str] = Field(None, max_length=50)
    company_address: Optional[str] = Field(None, max_length=500)
    currency: str = Field("USD", min_length=2, max_length=4)
    country: str = Field("US", min_length=2, max_length=3)
    language: Literal["en", "fr", "ar"] = "en"


class TicketSettings(BaseModel):
    auto_mark_tickets_as_paid: BoolStr = "false"
    require_device_photos: BoolStr = "false"
    require_estimated_price: BoolStr = "true"
    require_status_notes: BoolStr = "false"
    auto_assign_creator: BoolStr = "true"
    default_priority: Literal["LOW", "MEDIUM", "HIGH", "URGENT"] = "MEDIUM"
    ticket_prefix: str = Field("T", min_length=1, max_length=5)
    enable_auto_close: BoolStr = "false"
    auto_close_days: str = Field("30", pattern=DIGITS)
    allow_price_below_estimate: BoolStr = "true"


class WarrantySettings(BaseModel):
    enable_warranty_tracking: BoolStr = "true"
    default_warranty_days: str = Field("30", pattern=DIGITS)
    default_warranty_text: str = Field("Standard 30-day warranty on parts and labor", max_length=500)
    return_window_days: str = Field("14", pattern=DIGITS)
    require_return_approval: BoolStr = "true"
    allow_partial_refunds: BoolStr = "true"
    auto_restock_returns: BoolStr = "true"


class InventorySettings(BaseModel):
    enable_inventory_tracking: BoolStr = "true"
    auto_deduct_parts: BoolStr = "true"
    allow_negative_stock: BoolStr = "false"
    enable_low_stock_alerts: BoolStr = "true"
    default_low_stock_threshold: str = Field("5", pattern=DIGITS)
    default_reorder_level: str = Field("10", pattern=DIGITS)
    require_supplier: BoolStr = "false"


class FinanceSettings(BaseModel):
    currency_code: str = Field("USD", min_length=2, max_length=4)
    currency_symbol: str = Field("$", min_length=1, max_length=5)
    currency_position: Literal["before", "after"] = "before"
    enable_tax: BoolStr = "false"
    tax_rate: str = Field("0", pattern=DECIMAL)
    tax_label: str = Field("Tax", max_length=50)
    prices_include_tax: BoolStr = "false"
    accept_cash: BoolStr = "true"
    accept_card: BoolStr = "true"
    accept_mobile: BoolStr = "true"
    enable_diagnostic_fee: BoolStr = "false"
    diagnostic_fee: str = Field("0", pattern=DECIMAL)
    enable_rush_fee: BoolStr = "false"
    rush_fee: str = Field("0", pattern=DECIMAL)


class PrintSettings(BaseModel):
    label_size: Literal["1x1", "2x1", "2x2"] = "2x1"
    print_qr_code: BoolStr = "true"
    print_barcode: BoolStr = "false"
    invoice_prefix: str = Field("INV-", max_length=10)
    show_logo_on_invoice: BoolStr = "true"
    show_terms_on_invoice: BoolStr = "true"
    invoice_terms: str = Field("Payment is due upon receipt of device.", max_length=1000)
    invoice_footer: str = Field("Thank you for your business!", max_length=500)
    invoice_thank_you: str = Field("Thank you for choosing us!", max_length=200)


class TrackingSettings(BaseModel):
    enable_public_tracking: BoolStr = "true"
    show_price_on_tracking: BoolStr = "false"
    show_notes_on_tracking: BoolStr = "false"
    show_eta_on_tracking: BoolStr = "true"
    tracking_welcome_message: str = Field("Track your repair status", max_length=500)
    tracking_completion_message: str = Field(
        "Your repair is complete! Please pick up your device.", max_length=500
    )
    show_contact_form: BoolStr = "true"
    show_phone_on_tracking: BoolStr = "true"
    allow_satisfaction_override: BoolStr = "false"


class SecuritySettings(BaseModel):
    password_min_length: str = Field("8", pattern=DIGITS)
    require_uppercase: BoolStr = "true"
    require_number: BoolStr = "true"
    require_special_char: BoolStr = "false"
    session_timeout: str = Field("60", pattern=DIGITS)
    max_login_attempts: str = Field("5", pattern=DIGITS)
    lockout_duration: str = Field("15", pattern=DIGITS)


class NotificationSettings(BaseModel):
    sms_enabled: BoolStr = "false"
    sms_provider: Literal["log", "httpsms"] = "log"
    sms_default_language: Literal["en", "fr", "ar"] = "en"
    enable_email_notifications: BoolStr = "true"


SETTINGS_GROUPS = {
    "company": CompanySettings,
    "ticket": TicketSettings,
    "warranty": WarrantySettings,
    "inventory": InventorySettings,
    "finance": FinanceSettings,
    "print": PrintSettings,
    "tracking": TrackingSettings,
    "security": SecuritySettings,
    "notifications": NotificationSettings,
}


# ==================== Request / Response ====================

class SettingResponse(BaseModel):
    key: str
    value: str
    description: Optional[str] = None
    category: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SettingUpdate(BaseModel):
    value: str
    description: Optional[str] = None


class SettingsResetRequest(BaseModel):
    confirmation: str = Field(..., description="Must be RESET")


class SettingsGroupedResponse(BaseModel):
    settings: Dict[str, List[SettingResponse]]
    total: int


class GroupUpdateResponse(BaseModel):
    group: str
    updated: Dict[str, str]


class EmailSettingsUpdate(BaseModel):
    smtp_host: str = Field(..., min_length=1)
    smtp_port: int = Field(587, ge=1, le=65535)
    smtp_secure: bool = False
    smtp_user: str = Field(..., min_length=1)
    # Blank keeps the stored password
    smtp_password: Optional[str] = None
    email_from: EmailStr
    email_from_name: str = Field(..., min_length=1)


class EmailSettingsResponse(BaseModel):
    configured: bool
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_secure: bool = False
    smtp_user: Optional[str] = None
    email_from: Optional[str] = None
    email_from_name: Optional[str] = None
    has_password: bool = False


class EmailTestRequest(BaseModel):
    to_email: EmailStr


class MessageResponse(BaseModel):
    message: str
    success: bool = True
    data: Optional[Dict[str, Any]] = None
