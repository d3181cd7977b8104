"""
Settings API

Grouped key/value settings (admin), the unauthenticated public subset used
by the login and tracking pages, and SMTP settings with an encrypted
password.
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import ValidationError as PydanticValidationError
from typing import Any, Dict, Optional

from repairflow.core.database import get_db
from repairflow.core.logging_config import logger
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import require_admin
from repairflow.schemas.settings import (
    SETTINGS_GROUPS,
    SettingResponse,
    SettingUpdate,
    SettingsGroupedResponse,
    GroupUpdateResponse,
    EmailSettingsUpdate,
    EmailSettingsResponse,
    EmailTestRequest,
    MessageResponse,
    SettingsResetRequest,
)
from repairflow.services import settings_service
from repairflow.services.email_service import email_service

router = APIRouter()

# Never returned through the generic settings routes
SECRET_SETTING_KEYS = {"smtp_password"}


def _check_key(key: str) -> None:
    if key in SECRET_SETTING_KEYS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This setting is managed through /settings/email"
        )


@router.get("", response_model=SettingsGroupedResponse)
async def list_settings(
    category: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    grouped = await settings_service.list_settings_grouped(db, category)
    visible = {
        group: [SettingResponse.model_validate(row) for row in rows if row.key not in SECRET_SETTING_KEYS]
        for group, rows in grouped.items()
    }
    return SettingsGroupedResponse(settings=visible, total=sum(len(rows) for rows in visible.values()))


@router.get("/public")
async def get_public_settings(db: AsyncSession = Depends(get_db)) -> Dict[str, str]:
    """Branding and tracking display flags; no authentication"""
    return await settings_service.get_settings_map(db, settings_service.PUBLIC_SETTINGS_KEYS)


# ==================== Email ====================

@router.get("/email", response_model=EmailSettingsResponse)
async def get_email_settings(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await email_service.get_email_settings(db)


@router.put("/email", response_model=EmailSettingsResponse)
async def update_email_settings(
    data: EmailSettingsUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await email_service.save_email_settings(db, data, current_user.id)
    await db.commit()
    return result


@router.post("/email/test", response_model=MessageResponse)
async def send_test_email(
    data: EmailTestRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    config = await email_service.load_smtp_config(db)
    if not email_service.is_configured(config):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is not configured"
        )

    company_name = await settings_service.get_setting(db, "company_name", "RepairFlow")
    sent = await email_service.send_test_email(data.to_email, config=config, company_name=company_name)
    if not sent:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send test email. Check the SMTP settings and server logs."
        )
    return MessageResponse(message=f"Test email sent to {data.to_email}")


# ==================== Groups ====================

@router.put("/group/{group}", response_model=GroupUpdateResponse)
async def update_settings_group(
    group: str,
    values: Dict[str, Any],
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    if group not in SETTINGS_GROUPS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown settings group: {group}"
        )

    try:
        updated = await settings_service.update_group(db, group, values, current_user.id)
    except PydanticValidationError as e:
        logger.warning(f"[Settings] Rejected update for group {group}: {e.error_count()} error(s)")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False)
        )

    await db.commit()
    return GroupUpdateResponse(group=group, updated=updated)


# ==================== Reset ====================

@router.post("/reset", response_model=MessageResponse)
async def reset_settings(
    data: SettingsResetRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Restore default settings (the body must confirm with RESET)"""
    if data.confirmation != "RESET":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Confirmation required. Send RESET to confirm."
        )

    restored = await settings_service.reset_settings(db)
    await db.commit()
    logger.warning(f"[Settings] Reset to defaults by {current_user.id}")
    return MessageResponse(message="Settings restored to defaults", data={"restored": restored})


# ==================== Single keys ====================

@router.get("/{key}", response_model=SettingResponse)
async def get_setting(
    key: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    _check_key(key)
    row = await settings_service.get_setting_row(db, key)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Setting '{key}' not found")
    return row


@router.put("/{key}", response_model=SettingResponse)
async def update_setting(
    key: str,
    data: SettingUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    _check_key(key)
    row = await settings_service.set_setting(
        db, key, data.value, user_id=current_user.id, description=data.description
    )
    await db.commit()
    logger.log_business_event("settings", "updated", key, updated_by=current_user.id)
    return row
