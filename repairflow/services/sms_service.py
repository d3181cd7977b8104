"""
SMS Service - message templates and pluggable delivery gateways

Gateways:
- log:     writes the message to the application log (development default)
- httpsms: httpsms.com REST API
"""

import re
import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Dict, List, Optional

from repairflow.core.config import settings
from repairflow.core.exceptions import (
    ConflictError,
    ResourceNotFoundError,
    SMSDeliveryError,
    TicketNotFoundError,
    ValidationError,
)
from repairflow.core.logging_config import logger
from repairflow.models.setting import SMSTemplate
from repairflow.models.ticket import Ticket
from repairflow.schemas.sms import SMSSendRequest, SMSTemplateCreate, SMSTemplateUpdate
from repairflow.services import settings_service

VARIABLE_PATTERN = re.compile(r"\{([a-z_][a-z0-9_]*)\}")
PHONE_STRIP_PATTERN = re.compile(r"[\s\-()]")

DEFAULT_SMS_TEMPLATES = {
    "ticket_created": {
        "name": "Ticket Created",
        "message": "Hello {customer_name}, your repair ticket #{ticket_number} has been created. "
                   "Tracking code: {tracking_code}. We will update you soon.",
    },
    "ticket_in_progress": {
        "name": "Repair In Progress",
        "message": "Hello {customer_name}, your device repair (Ticket #{ticket_number}) is now in progress. "
                   "We will keep you updated.",
    },
    "ticket_waiting_parts": {
        "name": "Waiting for Parts",
        "message": "Hello {customer_name}, your repair (Ticket #{ticket_number}) is waiting for parts. "
                   "We will notify you when parts arrive.",
    },
    "ticket_repaired": {
        "name": "Device Repaired",
        "message": "Hello {customer_name}, your device repair (Ticket #{ticket_number}) is complete! "
                   "Final price: {final_price}. Please come to collect your device.",
    },
    "ticket_completed": {
        "name": "Ticket Completed",
        "message": "Hello {customer_name}, your repair ticket #{ticket_number} has been completed. "
                   "Thank you for choosing our service!",
    },
    "payment_reminder": {
        "name": "Payment Reminder",
        "message": "Hello {customer_name}, reminder: Payment pending for ticket #{ticket_number}. "
                   "Amount: {final_price}. Please visit us to complete payment.",
    },
    "custom": {"name": "Custom Message", "message": ""},
}


def extract_variables(message: str) -> List[str]:
    """Placeholder names in order of first appearance"""
    seen = []
    for name in VARIABLE_PATTERN.findall(message or ""):
        if name not in seen:
            seen.append(name)
    return seen


def render_template(message: str, variables: Dict[str, str]) -> str:
    """Fill {placeholders}; unknown or empty ones are left as written"""
    def replace(match):
        value = variables.get(match.group(1))
        return str(value) if value not in (None, "") else match.group(0)

    return VARIABLE_PATTERN.sub(replace, message or "")


def clean_phone_number(phone: str) -> str:
    return PHONE_STRIP_PATTERN.sub("", phone or "")


# ==================== GATEWAYS ====================

class SMSGateway:
    name = "base"

    async def send(self, phone_number: str, message: str) -> Optional[str]:
        """Deliver one message; returns the provider message id when there is one"""
        raise NotImplementedError


class LogSMSGateway(SMSGateway):
    name = "log"

    async def send(self, phone_number: str, message: str) -> Optional[str]:
        logger.info(f"[SMS] to={phone_number} message={message}")
        return None


class HttpSMSGateway(SMSGateway):
    name = "httpsms"
    SEND_PATH = "/v1/messages/send"

    def __init__(
        self,
        api_key: str,
        sender: str,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def send(self, phone_number: str, message: str) -> Optional[str]:
        if not self.api_key or not self.sender:
            raise SMSDeliveryError("httpsms is not configured", provider=self.name)

        payload = {"content": message, "from": self.sender, "to": phone_number}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}{self.SEND_PATH}",
                    json=payload,
                    headers={"x-api-key": self.api_key, "Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error(f"httpsms request failed: {e}")
            raise SMSDeliveryError(f"SMS gateway unreachable: {e}", provider=self.name)

        if not response.is_success:
            logger.error(f"httpsms returned {response.status_code}: {response.text[:200]}")
            raise SMSDeliveryError(f"SMS gateway returned {response.status_code}", provider=self.name)

        # Delivered either way; the message id is only a nice-to-have
        try:
            body = response.json()
        except ValueError:
            logger.warning(f"httpsms returned a non-JSON body with status {response.status_code}")
            return None
        data = body.get("data") if isinstance(body, dict) else None
        return data.get("id") if isinstance(data, dict) else None


def build_gateway(provider: str) -> SMSGateway:
    if provider == HttpSMSGateway.name:
        return HttpSMSGateway(
            api_key=settings.HTTPSMS_API_KEY,
            sender=settings.HTTPSMS_FROM,
            base_url=settings.HTTPSMS_BASE_URL,
            timeout=settings.SMS_REQUEST_TIMEOUT,
        )
    return LogSMSGateway()


class SMSService:
    """Templates plus sending through the configured gateway"""

    # ==================== TEMPLATES ====================

    @staticmethod
    def _default_template(template_id: str, language: str) -> dict:
        default = DEFAULT_SMS_TEMPLATES[template_id]
        return {
            "id": None,
            "template_id": template_id,
            "language": language,
            "name": default["name"],
            "message": default["message"],
            "variables": extract_variables(default["message"]),
            "is_active": True,
            "is_default": True,
            "updated_at": None,
        }

    @staticmethod
    def template_dict(row: SMSTemplate) -> dict:
        return {
            "id": row.id,
            "template_id": row.template_id,
            "language": row.language,
            "name": row.name,
            "message": row.message,
            "variables": extract_variables(row.message),
            "is_active": row.is_active,
            "is_default": False,
            "updated_at": row.updated_at,
        }

    async def list_templates(self, db: AsyncSession, language: str = "en") -> List[dict]:
        """Built-in templates overlaid with the stored ones for `language`"""
        result = await db.execute(select(SMSTemplate).where(SMSTemplate.language == language))
        stored = {row.template_id: row for row in result.scalars().all()}

        templates = []
        for template_id in DEFAULT_SMS_TEMPLATES:
            row = stored.pop(template_id, None)
            templates.append(self.template_dict(row) if row else self._default_template(template_id, language))
        templates.extend(self.template_dict(row) for row in stored.values())
        return templates

    async def get_template_row(self, db: AsyncSession, template_pk: str) -> SMSTemplate:
        row = await db.get(SMSTemplate, template_pk)
        if not row:
            raise ResourceNotFoundError("SMS template", template_pk)
        return row

    async def resolve_template(self, db: AsyncSession, template_id: str, language: str) -> Optional[str]:
        """Active stored text for the language, else the built-in text"""
        result = await db.execute(
            select(SMSTemplate).where(
                SMSTemplate.template_id == template_id,
                SMSTemplate.language == language,
                SMSTemplate.is_active.is_(True),
            )
        )
        row = result.scalar_one_or_none()
        if row:
            return row.message
        default = DEFAULT_SMS_TEMPLATES.get(template_id)
        return default["message"] if default else None

    async def create_template(self, db: AsyncSession, data: SMSTemplateCreate) -> SMSTemplate:
        existing = await db.execute(
            select(SMSTemplate.id).where(
                SMSTemplate.template_id == data.template_id, SMSTemplate.language == data.language
            )
        )
        if existing.first() is not None:
            raise ConflictError(
                f"Template '{data.template_id}' already exists for language '{data.language}'",
                code="TEMPLATE_EXISTS",
            )
        row = SMSTemplate(**data.model_dump())
        db.add(row)
        await db.flush()
        logger.log_business_event("sms_template", "created", row.id, template_id=row.template_id)
        return row

    async def update_template(self, db: AsyncSession, template_pk: str, data: SMSTemplateUpdate) -> SMSTemplate:
        row = await self.get_template_row(db, template_pk)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(row, field, value)
        await db.flush()
        return row

    async def delete_template(self, db: AsyncSession, template_pk: str) -> None:
        row = await self.get_template_row(db, template_pk)
        await db.delete(row)
        await db.flush()

    # ==================== SENDING ====================

    async def ticket_variables(self, db: AsyncSession, ticket_id: str) -> Dict[str, str]:
        ticket = await db.get(Ticket, ticket_id)
        if not ticket or ticket.deleted_at is not None:
            raise TicketNotFoundError(ticket_id)
        return {
            "customer_name": ticket.customer.name if ticket.customer else "",
            "ticket_number": ticket.ticket_number,
            "tracking_code": ticket.tracking_code,
            "final_price": f"{ticket.total_price:.2f}",
        }

    async def compose(self, db: AsyncSession, data: SMSSendRequest) -> str:
        variables = {}
        if data.ticket_id:
            variables.update(await self.ticket_variables(db, data.ticket_id))
        variables.update({k: v for k, v in data.variables.items() if v not in (None, "")})

        if data.template_id and data.template_id != "custom":
            language = data.language or await settings_service.get_setting(db, "sms_default_language", "en")
            text = await self.resolve_template(db, data.template_id, language)
            if text is None:
                raise ResourceNotFoundError("SMS template", data.template_id)
        else:
            text = data.message or ""

        message = render_template(text, variables).strip()
        if not message:
            raise ValidationError("Message is empty", field="message")
        return message

    async def send(self, db: AsyncSession, data: SMSSendRequest, user_id: Optional[str] = None) -> dict:
        if not await settings_service.get_boolean_setting(db, "sms_enabled"):
            raise ValidationError("SMS notifications are disabled", field="sms_enabled")

        phone_number = clean_phone_number(data.phone_number)
        if not phone_number:
            raise ValidationError("Phone number is required", field="phone_number")

        message = await self.compose(db, data)
        provider = await settings_service.get_setting(db, "sms_provider", settings.SMS_PROVIDER)
        gateway = build_gateway(provider)
        message_id = await gateway.send(phone_number, message)

        logger.log_business_event(
            "sms", "sent", message_id, provider=gateway.name, ticket_id=data.ticket_id, sent_by=user_id
        )
        return {
            "success": True,
            "provider": gateway.name,
            "phone_number": phone_number,
            "message": message,
            "message_id": message_id,
        }


sms_service = SMSService()
