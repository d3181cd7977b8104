"""
Email Service for RepairFlow
============================
Handles outgoing email:
- Password reset links
- Password changed confirmations
- SMTP test messages

Supports both SMTP and SendGrid. SMTP settings stored in the settings table
(category "email", password Fernet-encrypted) win over the environment.
"""

import aiosmtplib
import asyncio
from dataclasses import dataclass, replace
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from datetime import datetime

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content
from sqlalchemy.ext.asyncio import AsyncSession

from repairflow.core.config import settings
from repairflow.core.encryption import decrypt_secret, encrypt_secret
from repairflow.core.exceptions import RepairFlowError
from repairflow.core.logging_config import logger
from repairflow.schemas.settings import EmailSettingsUpdate
from repairflow.services import settings_service

EMAIL_CATEGORY = "email"
EMAIL_SETTING_KEYS = (
    "smtp_host",
    "smtp_port",
    "smtp_secure",
    "smtp_user",
    "smtp_password",
    "email_from",
    "email_from_name",
)


@dataclass
class SMTPConfig:
    host: str
    port: int
    user: str
    password: str
    from_email: str
    from_name: str
    secure: bool = False

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    @classmethod
    def from_env(cls) -> "SMTPConfig":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            from_email=settings.EMAIL_FROM,
            from_name=settings.EMAIL_FROM_NAME,
            secure=settings.SMTP_PORT == 465,
        )


class EmailService:
    """Async email service using SMTP or SendGrid"""

    def __init__(self):
        self.frontend_url = settings.FRONTEND_URL
        self.sendgrid_api_key = settings.SENDGRID_API_KEY
        self.use_sendgrid = settings.USE_SENDGRID and bool(self.sendgrid_api_key)

    # ==================== CONFIGURATION ====================

    async def _stored_values(self, db: AsyncSession) -> dict:
        values = {}
        for key in EMAIL_SETTING_KEYS:
            row = await settings_service.get_setting_row(db, key)
            if row is not None and row.value:
                values[key] = row.value
        return values

    async def load_smtp_config(self, db: Optional[AsyncSession] = None) -> SMTPConfig:
        """SMTP settings from the settings table, falling back to the environment"""
        config = SMTPConfig.from_env()
        if db is None:
            return config

        stored = await self._stored_values(db)
        if not stored.get("smtp_host"):
            return config

        password = config.password
        if stored.get("smtp_password"):
            try:
                password = decrypt_secret(stored["smtp_password"])
            except RepairFlowError as e:
                logger.error(f"[Email] Stored SMTP password unusable: {e.message}")
                password = ""

        try:
            port = int(stored.get("smtp_port", config.port))
        except ValueError:
            port = config.port

        return replace(
            config,
            host=stored["smtp_host"],
            port=port,
            user=stored.get("smtp_user", config.user),
            password=password,
            from_email=stored.get("email_from", config.from_email),
            from_name=stored.get("email_from_name", config.from_name),
            secure=stored.get("smtp_secure", "false").lower() in settings_service.TRUE_VALUES,
        )

    async def get_email_settings(self, db: AsyncSession) -> dict:
        """Stored SMTP settings without the password"""
        stored = await self._stored_values(db)
        config = await self.load_smtp_config(db)
        return {
            "configured": bool(stored.get("smtp_host")),
            "smtp_host": config.host,
            "smtp_port": config.port,
            "smtp_secure": config.secure,
            "smtp_user": config.user,
            "email_from": config.from_email,
            "email_from_name": config.from_name,
            "has_password": bool(stored.get("smtp_password")),
        }

    async def save_email_settings(self, db: AsyncSession, data: EmailSettingsUpdate, user_id: str) -> dict:
        values = {
            "smtp_host": data.smtp_host,
            "smtp_port": data.smtp_port,
            "smtp_secure": data.smtp_secure,
            "smtp_user": data.smtp_user,
            "email_from": data.email_from,
            "email_from_name": data.email_from_name,
        }
        if data.smtp_password:
            values["smtp_password"] = encrypt_secret(data.smtp_password)

        await settings_service.set_settings(db, values, user_id=user_id, category=EMAIL_CATEGORY)
        logger.log_business_event("settings", "email_updated", host=data.smtp_host)
        return await self.get_email_settings(db)

    # ==================== SENDING ====================

    def is_configured(self, config: SMTPConfig) -> bool:
        if self.use_sendgrid:
            return True
        return config.is_configured

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        config: Optional[SMTPConfig] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        config = config or SMTPConfig.from_env()
        if not self.is_configured(config):
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        if self.use_sendgrid:
            return await self._send_via_sendgrid(to_email, subject, html_content, text_content, config)
        return await self._send_via_smtp(to_email, subject, html_content, text_content, config)

    async def _send_via_sendgrid(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str],
        config: SMTPConfig
    ) -> bool:
        """Send email via SendGrid API"""
        try:
            message = Mail(
                from_email=Email(config.from_email, config.from_name),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )
            if text_content:
                message.add_content(Content("text/plain", text_content))

            sg = SendGridAPIClient(self.sendgrid_api_key)
            # SendGrid client is synchronous
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(None, sg.send, message)

            if response.status_code in (200, 201, 202):
                logger.info(f"[Email/SendGrid] Sent email to {to_email}: {subject}")
                return True
            logger.error(f"[Email/SendGrid] Failed with status {response.status_code}: {response.body}")
            return False

        except Exception as e:
            logger.error(f"[Email/SendGrid] Failed to send email to {to_email}: {e}")
            return False

    async def _send_via_smtp(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str],
        config: SMTPConfig
    ) -> bool:
        """Send email via SMTP"""
        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{config.from_name} <{config.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject

            # Plain text first so clients prefer the HTML part
            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=config.host,
                port=config.port,
                username=config.user,
                password=config.password,
                use_tls=config.secure,
                start_tls=None if config.secure else True,
            )

            logger.info(f"[Email/SMTP] Sent email to {to_email}: {subject}")
            return True

        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

    # ==================== TEMPLATES ====================

    def _wrap(self, title: str, body: str, company_name: str) -> str:
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background: #1f2937; color: white; padding: 24px; text-align: center; border-radius: 10px 10px 0 0; }}
                .content {{ background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px; }}
                .button {{ display: inline-block; background: #2563eb; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; font-weight: 600; margin: 20px 0; }}
                .footer {{ text-align: center; margin-top: 30px; font-size: 12px; color: #6b7280; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header">
                    <h1>{title}</h1>
                </div>
                <div class="content">
                    {body}
                </div>
                <div class="footer">
                    <p>&copy; {datetime.utcnow().year} {company_name}. All rights reserved.</p>
                </div>
            </div>
        </body>
        </html>
        """

    async def send_password_reset_email(
        self,
        to_email: str,
        user_name: str,
        reset_token: str,
        config: Optional[SMTPConfig] = None,
        company_name: str = "RepairFlow"
    ) -> bool:
        """Send password reset link (valid for one hour)"""
        reset_link = settings.get_reset_password_url(reset_token)
        subject = f"Reset your password - {company_name}"

        html_content = self._wrap("Password Reset", f"""
                    <p>Hi {user_name or 'there'},</p>
                    <p>We received a request to reset your password. Click the button below to choose a new one.</p>
                    <p style="text-align: center;">
                        <a href="{reset_link}" class="button">Reset Password</a>
                    </p>
                    <p style="font-size: 14px; color: #6b7280;">
                        Or copy and paste this link in your browser:<br>
                        <code style="word-break: break-all;">{reset_link}</code>
                    </p>
                    <p style="font-size: 14px; color: #6b7280;">This link will expire in 1 hour.
                    If you didn't request a password reset, you can ignore this email.</p>
        """, company_name)

        text_content = f"""
        Hi {user_name or 'there'},

        We received a request to reset your password. Open this link to choose a new one:

        {reset_link}

        This link will expire in 1 hour. If you didn't request a password reset, ignore this email.
        """

        return await self.send_email(to_email, subject, html_content, text_content, config)

    async def send_password_changed_email(
        self,
        to_email: str,
        user_name: str,
        config: Optional[SMTPConfig] = None,
        company_name: str = "RepairFlow"
    ) -> bool:
        subject = f"Your password was changed - {company_name}"
        changed_at = datetime.utcnow().strftime("%Y-%m-%d %H:%M UTC")

        html_content = self._wrap("Password Changed", f"""
                    <p>Hi {user_name or 'there'},</p>
                    <p>The password for your account was changed on {changed_at}.</p>
                    <p>If you did not make this change, contact your administrator immediately.</p>
        """, company_name)
        text_content = (
            f"Hi {user_name or 'there'},\n\n"
            f"The password for your account was changed on {changed_at}.\n"
            "If you did not make this change, contact your administrator immediately."
        )
        return await self.send_email(to_email, subject, html_content, text_content, config)

    async def send_test_email(
        self,
        to_email: str,
        config: Optional[SMTPConfig] = None,
        company_name: str = "RepairFlow"
    ) -> bool:
        subject = f"Test email - {company_name}"
        html_content = self._wrap("Email Test", """
                    <p>This is a test message. Your email settings are working.</p>
        """, company_name)
        return await self.send_email(
            to_email, subject, html_content, "This is a test message. Your email settings are working.", config
        )


email_service = EmailService()
