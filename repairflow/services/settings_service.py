"""
Settings Service - tenant-wide key/value configuration

Values are always strings. Booleans are stored as "true"/"false" and read
back through get_boolean_setting, which also accepts "1".
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from datetime import datetime
from typing import Optional, Dict, Any, Iterable, List

from repairflow.core.logging_config import logger
from repairflow.models.setting import Setting
from repairflow.schemas.settings import SETTINGS_GROUPS


def _d(value: str, description: str, category: str) -> Dict[str, str]:
    return {"value": value, "description": description, "category": category}


DEFAULT_SETTINGS: Dict[str, Dict[str, str]] = {
    # Company
    "company_name": _d("RepairShop", "Company name", "company"),
    "company_email": _d("", "Company email", "company"),
    "company_phone": _d("", "Company phone", "company"),
    "company_address": _d("", "Company address", "company"),
    "company_logo": _d("", "Company logo URL", "company"),
    "company_favicon": _d("", "Favicon URL", "company"),
    "login_background_image": _d("", "Login page background image URL", "company"),
    "currency": _d("USD", "Default currency", "company"),
    "country": _d("US", "Default country", "company"),
    "language": _d("en", "Default language", "company"),
    "timezone": _d("UTC", "System timezone", "company"),
    "theme": _d("system", "Default theme mode", "company"),
    "facebook_url": _d("", "Facebook page URL", "company"),
    "youtube_url": _d("", "YouTube channel URL", "company"),
    "instagram_url": _d("", "Instagram profile URL", "company"),
    # Ticket
    "auto_mark_tickets_as_paid": _d("false", "Auto-mark tickets as paid when completed", "ticket"),
    "require_device_photos": _d("false", "Require photos when creating tickets", "ticket"),
    "require_estimated_price": _d("true", "Require estimated price for tickets", "ticket"),
    "require_status_notes": _d("false", "Require notes when changing status", "ticket"),
    "auto_assign_creator": _d("true", "Auto-assign tickets to creator", "ticket"),
    "default_priority": _d("MEDIUM", "Default ticket priority", "ticket"),
    "ticket_prefix": _d("T", "Ticket number prefix", "ticket"),
    "enable_auto_close": _d("false", "Enable auto-close for completed tickets", "ticket"),
    "auto_close_days": _d("30", "Days after which completed tickets auto-close", "ticket"),
    "allow_price_below_estimate": _d("true", "Allow final price below estimate", "ticket"),
    # Warranty
    "enable_warranty_tracking": _d("true", "Enable warranty tracking", "warranty"),
    "default_warranty_days": _d("30", "Default warranty period in days", "warranty"),
    "default_warranty_text": _d(
        "Standard 30-day warranty on parts and labor", "Default warranty text", "warranty"
    ),
    "return_window_days": _d("14", "Return window in days", "warranty"),
    "require_return_approval": _d("true", "Require admin approval for returns", "warranty"),
    "allow_partial_refunds": _d("true", "Allow partial refunds", "warranty"),
    "auto_restock_returns": _d("true", "Auto-restock returned parts", "warranty"),
    # Inventory
    "enable_inventory_tracking": _d("true", "Enable inventory tracking", "inventory"),
    "auto_deduct_parts": _d("true", "Auto-deduct parts from stock", "inventory"),
    "allow_negative_stock": _d("false", "Allow negative stock levels", "inventory"),
    "enable_low_stock_alerts": _d("true", "Enable low stock alerts", "inventory"),
    "default_low_stock_threshold": _d("5", "Default low stock threshold", "inventory"),
    "default_reorder_level": _d("10", "Default reorder level", "inventory"),
    "require_supplier": _d("false", "Require supplier for parts", "inventory"),
    # Finance
    "currency_code": _d("USD", "Currency code", "finance"),
    "currency_symbol": _d("$", "Currency symbol", "finance"),
    "currency_position": _d("before", "Currency symbol position", "finance"),
    "enable_tax": _d("false", "Enable tax/VAT", "finance"),
    "tax_rate": _d("0", "Tax rate percentage", "finance"),
    "tax_label": _d("Tax", "Tax label", "finance"),
    "prices_include_tax": _d("false", "Prices include tax", "finance"),
    "accept_cash": _d("true", "Accept cash payments", "finance"),
    "accept_card": _d("true", "Accept card payments", "finance"),
    "accept_mobile": _d("true", "Accept mobile payments", "finance"),
    "enable_diagnostic_fee": _d("false", "Enable diagnostic fee", "finance"),
    "diagnostic_fee": _d("0", "Default diagnostic fee", "finance"),
    "enable_rush_fee": _d("false", "Enable rush fee", "finance"),
    "rush_fee": _d("0", "Default rush fee", "finance"),
    # Print
    "label_size": _d("2x1", "Label size for printing", "print"),
    "print_qr_code": _d("true", "Print QR code on labels", "print"),
    "print_barcode": _d("false", "Print barcode on labels", "print"),
    "invoice_prefix": _d("INV-", "Invoice number prefix", "print"),
    "show_logo_on_invoice": _d("true", "Show logo on invoices", "print"),
    "show_terms_on_invoice": _d("true", "Show terms on invoices", "print"),
    "invoice_terms": _d("Payment is due upon receipt of device.", "Invoice terms text", "print"),
    "invoice_footer": _d("Thank you for your business!", "Invoice footer text", "print"),
    "invoice_thank_you": _d("Thank you for choosing us!", "Thank you message", "print"),
    # Tracking
    "enable_public_tracking": _d("true", "Enable public tracking page", "tracking"),
    "show_price_on_tracking": _d("false", "Show price on tracking page", "tracking"),
    "show_notes_on_tracking": _d("false", "Show notes on tracking page", "tracking"),
    "show_eta_on_tracking": _d("true", "Show ETA on tracking page", "tracking"),
    "tracking_welcome_message": _d("Track your repair status", "Tracking welcome message", "tracking"),
    "tracking_completion_message": _d(
        "Your repair is complete! Please pick up your device.", "Tracking completion message", "tracking"
    ),
    "show_contact_form": _d("true", "Show contact form on tracking", "tracking"),
    "show_phone_on_tracking": _d("true", "Show phone on tracking page", "tracking"),
    "allow_satisfaction_override": _d(
        "false", "Let admins record ratings without customer verification", "tracking"
    ),
    # Security
    "password_min_length": _d("8", "Minimum password length", "security"),
    "require_uppercase": _d("true", "Require uppercase in password", "security"),
    "require_number": _d("true", "Require number in password", "security"),
    "require_special_char": _d("false", "Require special character in password", "security"),
    "session_timeout": _d("60", "Session timeout in minutes", "security"),
    "max_login_attempts": _d("5", "Max failed login attempts", "security"),
    "lockout_duration": _d("15", "Lockout duration in minutes", "security"),
    # Notifications
    "sms_enabled": _d("false", "SMS notifications enabled", "notifications"),
    "sms_provider": _d("log", "SMS gateway (log or httpsms)", "notifications"),
    "sms_default_language": _d("en", "Default SMS template language", "notifications"),
    "enable_email_notifications": _d("true", "Send customer emails", "notifications"),
    # Install
    "is_installed": _d("false", "Installation completed", "install"),
    "installed_at": _d("", "Installation timestamp", "install"),
}

# Readable without authentication (branding on the login and tracking pages)
PUBLIC_SETTINGS_KEYS = [
    "company_name",
    "company_logo",
    "company_favicon",
    "company_phone",
    "company_email",
    "company_address",
    "login_background_image",
    "language",
    "theme",
    "currency",
    "currency_symbol",
    "currency_code",
    "currency_position",
    "facebook_url",
    "youtube_url",
    "instagram_url",
    "enable_public_tracking",
    "show_price_on_tracking",
    "show_eta_on_tracking",
    "show_contact_form",
    "show_phone_on_tracking",
    "tracking_welcome_message",
    "tracking_completion_message",
    "invoice_prefix",
    "show_logo_on_invoice",
]

TRUE_VALUES = ("true", "1")

# Kept through a reset so the installer stays locked
RESET_PRESERVED_KEYS = ("is_installed", "installed_at")


def _as_setting_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


async def ensure_default_settings(db: AsyncSession) -> int:
    """Insert any missing default settings. Returns how many rows were created."""
    result = await db.execute(select(Setting.key))
    existing = set(result.scalars().all())

    created = 0
    for key, config in DEFAULT_SETTINGS.items():
        if key in existing:
            continue
        db.add(Setting(
            key=key,
            value=config["value"],
            description=config["description"],
            category=config["category"],
        ))
        created += 1

    if created:
        await db.flush()
        logger.info(f"Seeded {created} default settings")
    return created


async def get_setting_row(db: AsyncSession, key: str) -> Optional[Setting]:
    result = await db.execute(select(Setting).where(Setting.key == key))
    return result.scalar_one_or_none()


async def get_setting(db: AsyncSession, key: str, default: Optional[str] = None) -> str:
    """Stored value, else the given default, else the built-in default, else ''"""
    row = await get_setting_row(db, key)
    if row is not None and row.value is not None:
        return row.value
    if default is not None:
        return default
    return DEFAULT_SETTINGS.get(key, {}).get("value", "")


async def get_boolean_setting(db: AsyncSession, key: str, default: bool = False) -> bool:
    value = await get_setting(db, key, "true" if default else "false")
    return value.strip().lower() in TRUE_VALUES


async def get_int_setting(db: AsyncSession, key: str, default: int = 0) -> int:
    value = await get_setting(db, key, str(default))
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


async def get_settings_map(db: AsyncSession, keys: Iterable[str]) -> Dict[str, str]:
    """Values for several keys at once; missing keys fall back to the built-in defaults"""
    keys = list(keys)
    result = await db.execute(select(Setting).where(Setting.key.in_(keys)))
    stored = {row.key: row.value for row in result.scalars().all()}
    return {
        key: stored.get(key, DEFAULT_SETTINGS.get(key, {}).get("value", ""))
        for key in keys
    }


async def set_setting(
    db: AsyncSession,
    key: str,
    value: Any,
    user_id: Optional[str] = None,
    description: Optional[str] = None,
    category: Optional[str] = None,
) -> Setting:
    """Upsert one setting"""
    value = _as_setting_value(value)

    row = await get_setting_row(db, key)
    if row is None:
        defaults = DEFAULT_SETTINGS.get(key, {})
        row = Setting(
            key=key,
            value=value,
            description=description or defaults.get("description"),
            category=category or defaults.get("category"),
            updated_by=user_id,
        )
        db.add(row)
    else:
        row.value = value
        row.updated_by = user_id
        row.updated_at = datetime.utcnow()
        if description is not None:
            row.description = description
        if category is not None:
            row.category = category

    await db.flush()
    return row


async def set_settings(
    db: AsyncSession,
    values: Dict[str, Any],
    user_id: Optional[str] = None,
    category: Optional[str] = None,
) -> None:
    for key, value in values.items():
        await set_setting(db, key, value, user_id=user_id, category=category)


async def list_settings_grouped(db: AsyncSession, category: Optional[str] = None) -> Dict[str, List[Setting]]:
    query = select(Setting)
    if category:
        query = query.where(Setting.category == category)
    query = query.order_by(Setting.category, Setting.key)
    result = await db.execute(query)

    grouped: Dict[str, List[Setting]] = {}
    for row in result.scalars().all():
        grouped.setdefault(row.category or "general", []).append(row)
    return grouped


def validate_group(group: str, values: Dict[str, Any]) -> Dict[str, str]:
    """
    Validate settings for one group against its schema.

    Raises KeyError for an unknown group and pydantic.ValidationError when a
    value is rejected. Returns only the keys the group owns.
    """
    schema = SETTINGS_GROUPS[group]
    model = schema.model_validate(values)
    dumped = model.model_dump(exclude_none=True)
    return {key: str(value) for key, value in dumped.items() if key in values}


async def update_group(
    db: AsyncSession,
    group: str,
    values: Dict[str, Any],
    user_id: Optional[str] = None,
) -> Dict[str, str]:
    """Validate the stored group merged with `values`, then persist the changed keys"""
    schema = SETTINGS_GROUPS[group]
    current = await get_settings_map(db, schema.model_fields.keys())
    merged = {key: value for key, value in current.items() if value != ""}
    merged.update({
        key: _as_setting_value(value) for key, value in values.items() if key in schema.model_fields
    })

    cleaned = validate_group(group, merged)
    changed = {key: cleaned[key] for key in values if key in cleaned}
    await set_settings(db, changed, user_id=user_id, category=group)

    logger.log_business_event("settings", "group_updated", group=group, keys=sorted(changed))
    return changed


async def reset_settings(db: AsyncSession) -> int:
    """
    Restore the built-in defaults.

    Every stored row except the install state is dropped (custom keys and
    SMTP settings included) and the defaults are seeded again. Returns the
    number of rows seeded.
    """
    await db.execute(delete(Setting).where(Setting.key.not_in(RESET_PRESERVED_KEYS)))
    restored = await ensure_default_settings(db)
    logger.log_business_event("settings", "reset", restored=restored)
    return restored
