"""
Unit Tests for the ticket lifecycle rules
Tests for: transition guard, role permissions, return window
"""
import pytest
from datetime import datetime, timedelta

from repairflow.core.exceptions import TransitionError
from repairflow.models.ticket import TicketStatus as S
from repairflow.models.user import UserRole
from repairflow.services.ticket_lifecycle import (
    can_transition,
    check_return_window,
    get_allowed_transitions,
    get_allowed_transitions_for_role,
    get_status_display_info,
    has_permission,
    is_valid_transition,
    parse_return_window,
    DEFAULT_RETURN_WINDOW_DAYS,
)


class TestTransitionTable:

    def test_valid_pairs(self):
        assert is_valid_transition(S.RECEIVED, S.IN_PROGRESS)
        assert is_valid_transition("IN_PROGRESS", "WAITING_FOR_PARTS")
        assert is_valid_transition(S.REPAIRED, S.COMPLETED)

    def test_invalid_pairs(self):
        assert not is_valid_transition(S.RECEIVED, S.REPAIRED)
        assert not is_valid_transition(S.COMPLETED, S.IN_PROGRESS)
        assert not is_valid_transition(S.REPAIRED, S.RETURNED)

    def test_terminal_states_have_no_targets(self):
        assert get_allowed_transitions(S.RETURNED) == []
        assert get_allowed_transitions(S.CANCELLED) == []
        assert get_allowed_transitions(S.COMPLETED) == []


class TestRolePermissions:

    def test_admin_can_do_every_valid_transition(self):
        assert has_permission(UserRole.ADMIN, S.REPAIRED, S.COMPLETED)
        assert has_permission("ADMIN", S.RECEIVED, S.CANCELLED)

    def test_technician_cannot_cancel_or_complete(self):
        assert not has_permission(UserRole.TECHNICIAN, S.RECEIVED, S.CANCELLED)
        assert not has_permission(UserRole.TECHNICIAN, S.REPAIRED, S.COMPLETED)

    def test_unknown_role_has_no_permissions(self):
        assert not has_permission("JANITOR", S.RECEIVED, S.IN_PROGRESS)

    def test_allowed_transitions_filtered_by_role(self):
        assert get_allowed_transitions_for_role(S.IN_PROGRESS, UserRole.TECHNICIAN) == [
            S.WAITING_FOR_PARTS, S.REPAIRED
        ]
        assert get_allowed_transitions_for_role(S.IN_PROGRESS, UserRole.STAFF) == [
            S.WAITING_FOR_PARTS, S.REPAIRED, S.CANCELLED
        ]


class TestCanTransition:

    def test_same_status_is_a_no_op(self):
        assert can_transition(S.RECEIVED, S.RECEIVED, UserRole.TECHNICIAN).allowed

    def test_terminal_state_checked_first(self):
        result = can_transition(S.CANCELLED, S.IN_PROGRESS, UserRole.ADMIN)
        assert not result.allowed
        assert result.code == "TERMINAL_STATE"

    def test_returned_needs_return_flow(self):
        result = can_transition(S.REPAIRED, S.RETURNED, UserRole.ADMIN)
        assert result.code == "RETURN_FLOW_REQUIRED"

    def test_invalid_transition_lists_allowed_targets(self):
        result = can_transition(S.RECEIVED, S.REPAIRED, UserRole.ADMIN)
        assert result.code == "INVALID_TRANSITION"
        assert "IN_PROGRESS" in result.reason

    def test_permission_denied(self):
        result = can_transition(S.RECEIVED, S.CANCELLED, UserRole.TECHNICIAN)
        assert result.code == "INSUFFICIENT_PERMISSIONS"

    def test_completion_requires_payment(self):
        result = can_transition(S.REPAIRED, S.COMPLETED, UserRole.STAFF, outstanding=10.0)
        assert result.code == "PAYMENT_REQUIRED"
        assert "10.00" in result.reason

    def test_completion_allowed_when_settled(self):
        assert can_transition(S.REPAIRED, S.COMPLETED, UserRole.STAFF, outstanding=0).allowed
        assert can_transition(S.REPAIRED, S.COMPLETED, UserRole.STAFF).allowed

    @pytest.mark.parametrize("code,status_code", [
        ("PAYMENT_REQUIRED", 402),
        ("INSUFFICIENT_PERMISSIONS", 403),
        ("INVALID_TRANSITION", 400),
        ("TERMINAL_STATE", 400),
    ])
    def test_transition_error_status_codes(self, code, status_code):
        assert TransitionError("nope", code).status_code == status_code

    def test_raise_if_denied(self):
        result = can_transition(S.RECEIVED, S.REPAIRED, UserRole.ADMIN)
        with pytest.raises(TransitionError) as exc_info:
            result.raise_if_denied(S.RECEIVED, S.REPAIRED)
        assert exc_info.value.details == {"current": "RECEIVED", "target": "REPAIRED"}


class TestDisplayInfo:

    def test_known_status(self):
        info = get_status_display_info(S.WAITING_FOR_PARTS)
        assert info["label"] == "Waiting for Parts"
        assert info["color"] == "orange"

    def test_unknown_status_falls_back(self):
        assert get_status_display_info("BOGUS")["color"] == "gray"


class TestReturnWindow:

    @pytest.mark.parametrize("value,expected", [
        ("14", 14),
        (" 7 ", 7),
        ("0", DEFAULT_RETURN_WINDOW_DAYS),
        ("-5", DEFAULT_RETURN_WINDOW_DAYS),
        ("abc", DEFAULT_RETURN_WINDOW_DAYS),
        (None, DEFAULT_RETURN_WINDOW_DAYS),
    ])
    def test_parse_return_window(self, value, expected):
        assert parse_return_window(value) == expected

    def test_inside_window(self):
        now = datetime(2024, 3, 20)
        assert check_return_window(now - timedelta(days=10), 14, now).allowed

    def test_last_day_is_inside_window(self):
        now = datetime(2024, 3, 20)
        assert check_return_window(now - timedelta(days=14), 14, now).allowed

    def test_expired_window(self):
        now = datetime(2024, 3, 20)
        result = check_return_window(now - timedelta(days=20), 14, now)
        assert not result.allowed
        assert result.code == "RETURN_WINDOW"
        assert "20 days ago" in result.reason

    def test_missing_completion_date(self):
        assert not check_return_window(None, 14).allowed
