"""
Unit Tests for the settings store
"""
import pytest
from pydantic import ValidationError as PydanticValidationError

from repairflow.services import settings_service
from repairflow.services.settings_service import DEFAULT_SETTINGS


class TestValidateGroup:

    def test_valid_ticket_values(self):
        cleaned = settings_service.validate_group("ticket", {"default_priority": "HIGH"})
        assert cleaned == {"default_priority": "HIGH"}

    def test_invalid_ticket_value(self):
        with pytest.raises(PydanticValidationError):
            settings_service.validate_group("ticket", {"default_priority": "NOPE"})

    def test_unknown_group(self):
        with pytest.raises(KeyError):
            settings_service.validate_group("bogus", {})

    def test_company_requires_name(self):
        with pytest.raises(PydanticValidationError):
            settings_service.validate_group("company", {"company_phone": "555"})

    def test_numeric_pattern(self):
        with pytest.raises(PydanticValidationError):
            settings_service.validate_group("warranty", {"return_window_days": "two weeks"})


@pytest.mark.asyncio
class TestSettingsStore:

    async def test_builtin_default_when_missing(self, db_session):
        assert await settings_service.get_setting(db_session, "ticket_prefix") == "T"
        assert await settings_service.get_setting(db_session, "nonexistent") == ""
        assert await settings_service.get_setting(db_session, "nonexistent", "x") == "x"

    async def test_set_and_get(self, db_session):
        await settings_service.set_setting(db_session, "ticket_prefix", "RF", user_id=None)
        assert await settings_service.get_setting(db_session, "ticket_prefix") == "RF"

        row = await settings_service.get_setting_row(db_session, "ticket_prefix")
        assert row.category == "ticket"

    async def test_boolean_values(self, db_session):
        await settings_service.set_setting(db_session, "sms_enabled", "1")
        assert await settings_service.get_boolean_setting(db_session, "sms_enabled") is True

        await settings_service.set_setting(db_session, "sms_enabled", False)
        assert await settings_service.get_boolean_setting(db_session, "sms_enabled") is False

        await settings_service.set_setting(db_session, "sms_enabled", "yes")
        assert await settings_service.get_boolean_setting(db_session, "sms_enabled") is False

    async def test_int_fallback(self, db_session):
        await settings_service.set_setting(db_session, "auto_close_days", "abc")
        assert await settings_service.get_int_setting(db_session, "auto_close_days", 30) == 30

    async def test_update_group_merges_stored_values(self, db_session):
        await settings_service.set_setting(db_session, "company_name", "Fix It Fast")
        changed = await settings_service.update_group(
            db_session, "company", {"company_phone": "+1 555 0199"}
        )
        assert changed == {"company_phone": "+1 555 0199"}
        assert await settings_service.get_setting(db_session, "company_name") == "Fix It Fast"

    async def test_update_group_rejects_invalid(self, db_session):
        with pytest.raises(PydanticValidationError):
            await settings_service.update_group(db_session, "company", {"company_name": ""})

    async def test_update_group_ignores_foreign_keys(self, db_session):
        changed = await settings_service.update_group(
            db_session, "ticket", {"default_priority": "LOW", "company_name": "Nope"}
        )
        assert changed == {"default_priority": "LOW"}
        assert await settings_service.get_setting_row(db_session, "company_name") is None

    async def test_ensure_default_settings_is_idempotent(self, db_session):
        assert await settings_service.ensure_default_settings(db_session) == len(DEFAULT_SETTINGS)
        assert await settings_service.ensure_default_settings(db_session) == 0

    async def test_grouped_listing(self, db_session):
        await settings_service.ensure_default_settings(db_session)
        grouped = await settings_service.list_settings_grouped(db_session)
        assert "tracking" in grouped
        only_print = await settings_service.list_settings_grouped(db_session, "print")
        assert list(only_print) == ["print"]
