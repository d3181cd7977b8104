"""
Install Service - first-run setup (admin, company, preferences, branding, sample data)

Every step is refused once the `is_installed` setting is "true".
"""

import aiofiles
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from repairflow.core.config import settings
from repairflow.core.database import check_database_connection, is_database_configured
from repairflow.core.exceptions import ConflictError, InstallationLockedError, ValidationError
from repairflow.core.logging_config import logger
from repairflow.core.security import get_password_hash
from repairflow.db.seed_data import load_sample_data
from repairflow.models.user import User, UserRole
from repairflow.schemas.install import InstallAdminCreate, InstallCompany, InstallPreferences
from repairflow.services import settings_service

MAX_BRANDING_FILE_SIZE = 5 * 1024 * 1024
ALLOWED_IMAGE_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/x-icon": "ico",
    "image/vnd.microsoft.icon": "ico",
}
# Upload field -> (setting key, file name prefix)
BRANDING_FIELDS = {
    "logo": ("company_logo", "logo"),
    "favicon": ("company_favicon", "favicon"),
    "login_background": ("login_background_image", "login-bg"),
}
BRANDING_SUBDIR = "branding"


class InstallService:
    """Installer wizard backend"""

    async def is_installed(self, db: AsyncSession) -> bool:
        return await settings_service.get_boolean_setting(db, "is_installed")

    async def ensure_not_installed(self, db: AsyncSession) -> None:
        if await self.is_installed(db):
            raise InstallationLockedError()

    async def admin_exists(self, db: AsyncSession) -> bool:
        count = await db.scalar(select(func.count(User.id)).where(User.role == UserRole.ADMIN))
        return bool(count)

    async def get_status(self, db: AsyncSession) -> dict:
        database_connected = await check_database_connection()
        status = {
            "is_installed": False,
            "database_connected": database_connected,
            "admin_exists": False,
            "installed_at": None,
        }
        if not database_connected:
            return status

        status["is_installed"] = await self.is_installed(db)
        status["admin_exists"] = await self.admin_exists(db)
        installed_at = await settings_service.get_setting(db, "installed_at")
        if installed_at:
            try:
                status["installed_at"] = datetime.fromisoformat(installed_at)
            except ValueError:
                logger.warning(f"Unparseable installed_at setting: {installed_at!r}")
        return status

    def check_environment(self) -> dict:
        """Required: database URL and JWT secret. SMTP and the encryption key only warn."""
        checks = {
            "database_url": {
                "name": "Database URL",
                "ok": is_database_configured(),
                "required": True,
                "message": "Configured" if is_database_configured() else "DATABASE_URL is missing or a placeholder",
            },
            "jwt_secret": {
                "name": "JWT secret",
                "ok": bool(settings.JWT_SECRET_KEY),
                "required": True,
                "message": "Configured" if settings.JWT_SECRET_KEY else "JWT_SECRET_KEY is required",
            },
            "smtp": {
                "name": "SMTP configuration",
                "ok": bool(settings.SMTP_HOST and settings.SMTP_USER),
                "required": False,
                "message": (
                    "Email sending configured" if settings.SMTP_HOST and settings.SMTP_USER
                    else "Email features will be limited without SMTP configuration"
                ),
            },
            "email_encryption_key": {
                "name": "Email encryption key",
                "ok": bool(settings.EMAIL_ENCRYPTION_KEY),
                "required": False,
                "message": (
                    "Configured for secure password storage" if settings.EMAIL_ENCRYPTION_KEY
                    else "Set EMAIL_ENCRYPTION_KEY to store the SMTP password"
                ),
            },
        }
        ready = all(check["ok"] for check in checks.values() if check["required"])
        return {
            "ready": ready,
            "checks": {
                key: {"name": c["name"], "ok": c["ok"], "message": c["message"]} for key, c in checks.items()
            },
        }

    async def create_admin(self, db: AsyncSession, data: InstallAdminCreate) -> User:
        await self.ensure_not_installed(db)
        if await self.admin_exists(db):
            raise ConflictError("An administrator already exists", code="ADMIN_EXISTS")

        username = data.username.strip()
        email = data.email.lower()
        taken = await db.execute(
            select(User.id).where(or_(func.lower(User.username) == username.lower(), User.email == email))
        )
        if taken.first() is not None:
            raise ConflictError("Username or email already in use", code="USER_EXISTS")

        user = User(
            username=username,
            email=email,
            name=data.name.strip(),
            hashed_password=get_password_hash(data.password),
            role=UserRole.ADMIN,
            is_active=True,
        )
        db.add(user)
        await db.flush()
        logger.log_business_event("install", "admin_created", user.id, username=username)
        return user

    async def save_company(self, db: AsyncSession, data: InstallCompany) -> None:
        await self.ensure_not_installed(db)
        currency = data.currency.upper()
        values = {
            "company_name": data.company_name.strip(),
            "company_email": data.company_email,
            "company_phone": data.company_phone.strip(),
            "company_address": (data.company_address or "").strip(),
            "country": data.country.upper(),
            "language": data.language,
            "currency": currency,
            "currency_code": currency,
        }
        await settings_service.set_settings(db, values)
        logger.log_business_event("install", "company_saved", company=values["company_name"])

    async def save_preferences(self, db: AsyncSession, data: InstallPreferences) -> None:
        await self.ensure_not_installed(db)
        values = {
            "sms_enabled": data.sms_enabled,
            "theme": data.theme,
            "facebook_url": str(data.facebook_url) if data.facebook_url else "",
            "youtube_url": str(data.youtube_url) if data.youtube_url else "",
            "instagram_url": str(data.instagram_url) if data.instagram_url else "",
        }
        if data.timezone:
            values["timezone"] = data.timezone
        await settings_service.set_settings(db, values)
        logger.log_business_event("install", "preferences_saved")

    @staticmethod
    def branding_extension(content_type: Optional[str]) -> str:
        extension = ALLOWED_IMAGE_TYPES.get((content_type or "").lower())
        if not extension:
            raise ValidationError(f"Unsupported file type: {content_type}. Only images are allowed")
        return extension

    async def save_branding(
        self, db: AsyncSession, uploads: Dict[str, tuple], upload_dir: Optional[Path] = None
    ) -> Dict[str, str]:
        """
        Store branding images.

        `uploads` maps a field in BRANDING_FIELDS to (content_type, bytes).
        Returns setting key -> public URL path of each stored file.
        """
        await self.ensure_not_installed(db)

        # Validate everything before writing anything
        prepared = []
        for field, (content_type, content) in uploads.items():
            if field not in BRANDING_FIELDS or not content:
                continue
            extension = self.branding_extension(content_type)
            if len(content) > MAX_BRANDING_FILE_SIZE:
                raise ValidationError(f"{field} exceeds the 5MB limit", field=field)
            prepared.append((field, extension, content))

        target_dir = (upload_dir or settings.UPLOAD_DIR) / BRANDING_SUBDIR
        target_dir.mkdir(parents=True, exist_ok=True)

        saved = {}
        for field, extension, content in prepared:
            setting_key, prefix = BRANDING_FIELDS[field]
            filename = f"{prefix}-{uuid.uuid4().hex[:12]}.{extension}"
            async with aiofiles.open(target_dir / filename, "wb") as f:
                await f.write(content)
            saved[setting_key] = f"/uploads/{BRANDING_SUBDIR}/{filename}"

        if saved:
            await settings_service.set_settings(db, saved, category="company")
        logger.log_business_event("install", "branding_saved", files=sorted(saved))
        return saved

    async def load_sample_data(self, db: AsyncSession) -> Dict[str, int]:
        await self.ensure_not_installed(db)
        return await load_sample_data(db)

    async def finalize(self, db: AsyncSession) -> dict:
        await self.ensure_not_installed(db)
        if not await self.admin_exists(db):
            raise ValidationError("Create an administrator before finishing installation")

        created = await settings_service.ensure_default_settings(db)
        installed_at = datetime.utcnow()
        await settings_service.set_settings(db, {
            "is_installed": True,
            "installed_at": installed_at.isoformat(),
        })
        logger.log_business_event("install", "finalized", defaults_created=created)
        return {"is_installed": True, "installed_at": installed_at}


install_service = InstallService()
