"""
Installer API

First-run wizard: environment check, admin account, company details,
preferences, branding, sample data and finalize. Every step is locked
(403) once installation has been finalized.
"""
from fastapi import APIRouter, Depends, status, UploadFile, File
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from repairflow.core.database import get_db
from repairflow.core.config import settings
from repairflow.core.exceptions import ValidationError
from repairflow.schemas.auth import UserResponse
from repairflow.schemas.install import (
    InstallStatus,
    EnvironmentReport,
    InstallAdminCreate,
    InstallCompany,
    InstallPreferences,
    InstallStepResponse,
    SampleDataResult,
)
from repairflow.services.install_service import install_service, MAX_BRANDING_FILE_SIZE

router = APIRouter()


async def _read_upload(upload: Optional[UploadFile], field: str):
    if upload is None or not upload.filename:
        return None
    # Read one byte past the limit so oversize files are detected without loading them whole
    content = await upload.read(MAX_BRANDING_FILE_SIZE + 1)
    if len(content) > MAX_BRANDING_FILE_SIZE:
        raise ValidationError(f"{field} exceeds the 5MB limit", field=field)
    return upload.content_type, content


@router.get("/status", response_model=InstallStatus)
async def get_install_status(db: AsyncSession = Depends(get_db)):
    return await install_service.get_status(db)


@router.get("/environment", response_model=EnvironmentReport)
async def check_environment(db: AsyncSession = Depends(get_db)):
    await install_service.ensure_not_installed(db)
    return install_service.check_environment()


@router.post("/admin", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_admin(
    data: InstallAdminCreate,
    db: AsyncSession = Depends(get_db)
):
    user = await install_service.create_admin(db, data)
    await db.commit()
    await db.refresh(user)
    return user


@router.post("/company", response_model=InstallStepResponse)
async def save_company(
    data: InstallCompany,
    db: AsyncSession = Depends(get_db)
):
    await install_service.save_company(db, data)
    await db.commit()
    return InstallStepResponse(message="Company information saved")


@router.post("/preferences", response_model=InstallStepResponse)
async def save_preferences(
    data: InstallPreferences,
    db: AsyncSession = Depends(get_db)
):
    await install_service.save_preferences(db, data)
    await db.commit()
    return InstallStepResponse(message="Preferences saved")


@router.post("/branding", response_model=InstallStepResponse)
async def upload_branding(
    logo: Optional[UploadFile] = File(None, description="Company logo (image, max 5MB)"),
    favicon: Optional[UploadFile] = File(None, description="Favicon (image, max 5MB)"),
    login_background: Optional[UploadFile] = File(None, description="Login background (image, max 5MB)"),
    db: AsyncSession = Depends(get_db)
):
    await install_service.ensure_not_installed(db)

    uploads = {}
    for field, upload in (("logo", logo), ("favicon", favicon), ("login_background", login_background)):
        item = await _read_upload(upload, field)
        if item is not None:
            uploads[field] = item

    if not uploads:
        return InstallStepResponse(message="No branding files uploaded", files={})

    saved = await install_service.save_branding(db, uploads, settings.UPLOAD_DIR)
    await db.commit()
    return InstallStepResponse(message="Branding saved", files=saved)


@router.post("/sample-data", response_model=SampleDataResult)
async def load_sample_data(db: AsyncSession = Depends(get_db)):
    counts = await install_service.load_sample_data(db)
    await db.commit()
    return counts


@router.post("/finalize", response_model=InstallStepResponse)
async def finalize_install(db: AsyncSession = Depends(get_db)):
    result = await install_service.finalize(db)
    await db.commit()
    return InstallStepResponse(
        message=f"Installation completed at {result['installed_at'].isoformat()}"
    )
