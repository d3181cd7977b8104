"""
Unit Tests for SMS templates and sending
"""
import json

import httpx
import pytest

from repairflow.core.exceptions import SMSDeliveryError, ValidationError
from repairflow.models.setting import SMSTemplate
from repairflow.schemas.sms import SMSSendRequest
from repairflow.services import settings_service
from repairflow.services.sms_service import (
    DEFAULT_SMS_TEMPLATES,
    HttpSMSGateway,
    LogSMSGateway,
    build_gateway,
    clean_phone_number,
    extract_variables,
    render_template,
    sms_service,
)


class TestTemplateText:

    def test_extract_variables_in_order_without_duplicates(self):
        message = "Hi {customer_name}, #{ticket_number} ({customer_name})"
        assert extract_variables(message) == ["customer_name", "ticket_number"]

    def test_extract_variables_empty(self):
        assert extract_variables("") == []
        assert extract_variables(None) == []

    def test_render_fills_known_values(self):
        text = render_template("Hello {customer_name}", {"customer_name": "Jane"})
        assert text == "Hello Jane"

    def test_render_leaves_missing_and_empty_placeholders(self):
        text = render_template("{customer_name} {final_price}", {"customer_name": ""})
        assert text == "{customer_name} {final_price}"

    def test_clean_phone_number(self):
        assert clean_phone_number("+1 (555) 010-0100") == "+15550100100"
        assert clean_phone_number(None) == ""

    def test_default_templates(self):
        assert len(DEFAULT_SMS_TEMPLATES) == 7
        assert "tracking_code" in extract_variables(DEFAULT_SMS_TEMPLATES["ticket_created"]["message"])


class TestGateways:

    def test_build_gateway(self):
        assert isinstance(build_gateway("log"), LogSMSGateway)
        assert isinstance(build_gateway("httpsms"), HttpSMSGateway)
        assert isinstance(build_gateway("unknown"), LogSMSGateway)

    @pytest.mark.asyncio
    async def test_log_gateway_returns_no_id(self):
        assert await LogSMSGateway().send("+15550100", "hi") is None

    @pytest.mark.asyncio
    async def test_httpsms_without_key_fails(self):
        gateway = HttpSMSGateway(api_key="", sender="", base_url="https://sms.invalid")
        with pytest.raises(SMSDeliveryError) as exc_info:
            await gateway.send("+15550100", "hi")
        assert exc_info.value.details["provider"] == "httpsms"

    @pytest.mark.asyncio
    async def test_httpsms_posts_message(self):
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200, json={"status": "success", "data": {"id": "msg-42"}})

        gateway = HttpSMSGateway(
            api_key="key-123",
            sender="+15550199",
            base_url="https://sms.example.com/",
            transport=httpx.MockTransport(handler),
        )
        assert await gateway.send("+15550100", "Your phone is ready") == "msg-42"

        request = sent[0]
        assert request.method == "POST"
        assert str(request.url) == "https://sms.example.com/v1/messages/send"
        assert request.headers["x-api-key"] == "key-123"
        assert json.loads(request.content) == {
            "content": "Your phone is ready",
            "from": "+15550199",
            "to": "+15550100",
        }

    @pytest.mark.asyncio
    async def test_httpsms_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="upstream down"))
        gateway = HttpSMSGateway(api_key="key-123", sender="+15550199",
                                 base_url="https://sms.example.com", transport=transport)
        with pytest.raises(SMSDeliveryError) as exc_info:
            await gateway.send("+15550100", "hi")
        assert exc_info.value.details["provider"] == "httpsms"
        assert "500" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_httpsms_non_json_success_has_no_id(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(202, text="queued"))
        gateway = HttpSMSGateway(api_key="key-123", sender="+15550199",
                                 base_url="https://sms.example.com", transport=transport)
        assert await gateway.send("+15550100", "hi") is None

    @pytest.mark.asyncio
    async def test_httpsms_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = HttpSMSGateway(api_key="key-123", sender="+15550199",
                                 base_url="https://sms.example.com", transport=httpx.MockTransport(handler))
        with pytest.raises(SMSDeliveryError):
            await gateway.send("+15550100", "hi")


class TestSMSService:

    @pytest.mark.asyncio
    async def test_list_templates_defaults(self, db_session):
        templates = await sms_service.list_templates(db_session)
        assert len(templates) == len(DEFAULT_SMS_TEMPLATES)
        assert all(t["is_default"] for t in templates)

    @pytest.mark.asyncio
    async def test_stored_template_overrides_default(self, db_session):
        db_session.add(SMSTemplate(
            template_id="ticket_created",
            language="en",
            name="Created",
            message="Ticket {ticket_number} logged",
        ))
        await db_session.flush()

        templates = {t["template_id"]: t for t in await sms_service.list_templates(db_session)}
        created = templates["ticket_created"]
        assert created["is_default"] is False
        assert created["variables"] == ["ticket_number"]
        assert templates["ticket_repaired"]["is_default"] is True

    @pytest.mark.asyncio
    async def test_send_refused_when_disabled(self, db_session):
        request = SMSSendRequest(phone_number="+1 555 0100", message="Hello")
        with pytest.raises(ValidationError):
            await sms_service.send(db_session, request)

    @pytest.mark.asyncio
    async def test_send_with_template_and_ticket(self, db_session, ticket):
        await settings_service.set_setting(db_session, "sms_enabled", True)
        request = SMSSendRequest(
            phone_number="+1 (555) 010-0100",
            template_id="ticket_created",
            ticket_id=ticket.id,
        )
        result = await sms_service.send(db_session, request)

        assert result["success"] is True
        assert result["provider"] == "log"
        assert result["phone_number"] == "+15550100100"
        assert ticket.ticket_number in result["message"]
        assert ticket.tracking_code in result["message"]
        assert "Jane Doe" in result["message"]

    @pytest.mark.asyncio
    async def test_custom_message_variables(self, db_session):
        await settings_service.set_setting(db_session, "sms_enabled", "true")
        request = SMSSendRequest(
            phone_number="5550100",
            message="Hi {customer_name}",
            variables={"customer_name": "Sam"},
        )
        result = await sms_service.send(db_session, request)
        assert result["message"] == "Hi Sam"

    def test_request_needs_message_or_template(self):
        with pytest.raises(ValueError):
            SMSSendRequest(phone_number="5550100", message="   ")
