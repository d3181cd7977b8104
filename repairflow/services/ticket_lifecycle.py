"""
Ticket Lifecycle - status transitions, role permissions and the return window

Pure rules live here so the ticket and returns services, the tracking page
and the tests all share one definition of what a ticket may do next.

RETURNED is never a direct transition target; it is reached only by
approving a Return.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy.ext.asyncio import AsyncSession

from repairflow.core.exceptions import TransitionError
from repairflow.models.ticket import TicketStatus
from repairflow.models.user import UserRole
from repairflow.services import settings_service
from repairflow.utils.dates import days_between

S = TicketStatus

VALID_TRANSITIONS: Dict[TicketStatus, List[TicketStatus]] = {
    S.RECEIVED: [S.IN_PROGRESS, S.CANCELLED],
    S.IN_PROGRESS: [S.WAITING_FOR_PARTS, S.REPAIRED, S.CANCELLED],
    S.WAITING_FOR_PARTS: [S.IN_PROGRESS, S.CANCELLED],
    S.REPAIRED: [S.COMPLETED],
    S.COMPLETED: [],
    S.RETURNED: [],
    S.CANCELLED: [],
}

TERMINAL_STATES = (S.RETURNED, S.CANCELLED)

# None means every valid transition
ROLE_PERMISSIONS: Dict[UserRole, Optional[List[Tuple[TicketStatus, TicketStatus]]]] = {
    UserRole.ADMIN: None,
    UserRole.STAFF: [
        (S.RECEIVED, S.IN_PROGRESS),
        (S.RECEIVED, S.CANCELLED),
        (S.IN_PROGRESS, S.WAITING_FOR_PARTS),
        (S.IN_PROGRESS, S.REPAIRED),
        (S.IN_PROGRESS, S.CANCELLED),
        (S.WAITING_FOR_PARTS, S.IN_PROGRESS),
        (S.WAITING_FOR_PARTS, S.CANCELLED),
        (S.REPAIRED, S.COMPLETED),
    ],
    UserRole.TECHNICIAN: [
        (S.RECEIVED, S.IN_PROGRESS),
        (S.IN_PROGRESS, S.WAITING_FOR_PARTS),
        (S.IN_PROGRESS, S.REPAIRED),
        (S.WAITING_FOR_PARTS, S.IN_PROGRESS),
    ],
}

STATUS_DISPLAY_INFO = {
    S.RECEIVED: {"label": "Received", "color": "blue", "description": "Device handed in, ticket created"},
    S.IN_PROGRESS: {
        "label": "In Progress", "color": "yellow", "description": "Technician has begun diagnostics/repair"
    },
    S.WAITING_FOR_PARTS: {
        "label": "Waiting for Parts", "color": "orange", "description": "Awaiting required inventory parts"
    },
    S.REPAIRED: {"label": "Repaired", "color": "green", "description": "Repair completed, awaiting pickup"},
    S.COMPLETED: {"label": "Completed", "color": "emerald", "description": "Device picked up by customer"},
    S.RETURNED: {"label": "Returned", "color": "purple", "description": "Customer returned repaired device"},
    S.CANCELLED: {"label": "Cancelled", "color": "red", "description": "Job aborted"},
}

RETURN_WINDOW_SETTING_KEY = "return_window_days"
DEFAULT_RETURN_WINDOW_DAYS = 30


@dataclass
class TransitionResult:
    allowed: bool
    reason: Optional[str] = None
    code: Optional[str] = None

    def raise_if_denied(self, current: TicketStatus, target: TicketStatus) -> None:
        if not self.allowed:
            raise TransitionError(self.reason, self.code, current=current.value, target=target.value)


def _status(value: Union[str, TicketStatus]) -> TicketStatus:
    return value if isinstance(value, TicketStatus) else TicketStatus(value)


def _role(value: Union[str, UserRole]) -> Optional[UserRole]:
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(value)
    except ValueError:
        return None


def is_valid_transition(current, target) -> bool:
    return _status(target) in VALID_TRANSITIONS.get(_status(current), [])


def has_permission(role, current, target) -> bool:
    role = _role(role)
    if role is None or role not in ROLE_PERMISSIONS:
        return False
    permitted = ROLE_PERMISSIONS[role]
    if permitted is None:
        return True
    return (_status(current), _status(target)) in permitted


def get_allowed_transitions(current) -> List[TicketStatus]:
    return list(VALID_TRANSITIONS.get(_status(current), []))


def get_allowed_transitions_for_role(current, role) -> List[TicketStatus]:
    return [target for target in get_allowed_transitions(current) if has_permission(role, current, target)]


def can_transition(current, target, role, outstanding: Optional[float] = None) -> TransitionResult:
    """
    Run the transition guard. Checks run in order and the first failure wins:
    same status, terminal state, RETURNED target, valid pair, role permission,
    then payment for REPAIRED -> COMPLETED.
    """
    current = _status(current)
    target = _status(target)
    role_name = role.value if isinstance(role, UserRole) else str(role)

    if current == target:
        return TransitionResult(allowed=True)

    if current in TERMINAL_STATES:
        return TransitionResult(
            allowed=False,
            reason=f"Cannot transition from terminal state: {current.value}",
            code="TERMINAL_STATE",
        )

    if target == S.RETURNED:
        return TransitionResult(
            allowed=False,
            reason="RETURNED status can only be set via the Return approval flow",
            code="RETURN_FLOW_REQUIRED",
        )

    if not is_valid_transition(current, target):
        allowed = ", ".join(s.value for s in get_allowed_transitions(current)) or "none"
        return TransitionResult(
            allowed=False,
            reason=f"Invalid transition from {current.value} to {target.value}. Allowed: {allowed}",
            code="INVALID_TRANSITION",
        )

    if not has_permission(role, current, target):
        return TransitionResult(
            allowed=False,
            reason=f"Role {role_name} does not have permission to transition "
                   f"from {current.value} to {target.value}",
            code="INSUFFICIENT_PERMISSIONS",
        )

    if current == S.REPAIRED and target == S.COMPLETED and outstanding is not None and outstanding > 0:
        return TransitionResult(
            allowed=False,
            reason=f"Cannot complete ticket with outstanding balance of {outstanding:.2f}. Payment required.",
            code="PAYMENT_REQUIRED",
        )

    return TransitionResult(allowed=True)


def get_status_display_info(status) -> Dict[str, str]:
    try:
        return dict(STATUS_DISPLAY_INFO[_status(status)])
    except ValueError:
        return {"label": str(status), "color": "gray", "description": ""}


def status_label(status) -> str:
    return get_status_display_info(status)["label"]


def parse_return_window(value: Optional[str]) -> int:
    """Positive integer from the setting; anything else means the 30 day default"""
    try:
        days = int(str(value).strip())
    except (TypeError, ValueError):
        return DEFAULT_RETURN_WINDOW_DAYS
    return days if days > 0 else DEFAULT_RETURN_WINDOW_DAYS


async def get_return_window_days(db: AsyncSession) -> int:
    row = await settings_service.get_setting_row(db, RETURN_WINDOW_SETTING_KEY)
    return parse_return_window(row.value if row else None)


def check_return_window(
    completed_at: Optional[datetime], window_days: int, now: Optional[datetime] = None
) -> TransitionResult:
    if completed_at is None:
        return TransitionResult(allowed=False, reason="Ticket has no completion date", code="RETURN_WINDOW")

    elapsed = days_between(completed_at, now or datetime.utcnow())
    if elapsed > window_days:
        return TransitionResult(
            allowed=False,
            reason=f"Return window of {window_days} days has expired. "
                   f"Ticket was completed {elapsed} days ago.",
            code="RETURN_WINDOW",
        )
    return TransitionResult(allowed=True)


async def is_within_return_window(
    db: AsyncSession, completed_at: Optional[datetime], now: Optional[datetime] = None
) -> TransitionResult:
    window = await get_return_window_days(db)
    return check_return_window(completed_at, window, now)
