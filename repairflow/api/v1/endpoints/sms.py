"""
SMS API

Templates (built-in defaults overridden per language by stored rows)
and sending through the configured gateway.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from repairflow.core.database import get_db
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import require_admin, require_staff
from repairflow.schemas.sms import (
    SMSTemplateCreate,
    SMSTemplateUpdate,
    SMSTemplateResponse,
    SMSSendRequest,
    SMSSendResponse,
)
from repairflow.services.sms_service import sms_service

router = APIRouter()


@router.get("/templates", response_model=List[SMSTemplateResponse])
async def list_templates(
    language: str = Query("en", min_length=2, max_length=5),
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    return await sms_service.list_templates(db, language)


@router.post("/templates", response_model=SMSTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    data: SMSTemplateCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    row = await sms_service.create_template(db, data)
    await db.commit()
    return sms_service.template_dict(row)


@router.put("/templates/{template_id}", response_model=SMSTemplateResponse)
async def update_template(
    template_id: str,
    data: SMSTemplateUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    row = await sms_service.update_template(db, template_id, data)
    await db.commit()
    return sms_service.template_dict(row)


@router.delete("/templates/{template_id}")
async def delete_template(
    template_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await sms_service.delete_template(db, template_id)
    await db.commit()
    return {"success": True, "message": "Template deleted"}


@router.post("/send", response_model=SMSSendResponse)
async def send_sms(
    data: SMSSendRequest,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    return await sms_service.send(db, data, current_user.id)
