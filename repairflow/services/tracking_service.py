"""
Tracking Service - public ticket lookup and customer satisfaction ratings
"""

import asyncio
import random
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, timedelta
from typing import Optional

from repairflow.core.exceptions import (
    AuthorizationError,
    ConflictError,
    ResourceNotFoundError,
    TicketNotFoundError,
    TrackingLookupError,
    ValidationError,
)
from repairflow.core.logging_config import logger
from repairflow.models.ticket import SatisfactionRating, Ticket, TicketStatus
from repairflow.models.user import User, UserRole
from repairflow.schemas.ticket import SatisfactionCreate
from repairflow.services import settings_service, ticket_lifecycle
from repairflow.utils.numbering import mask_tracking_code

S = TicketStatus

PROGRESS_ORDER = [S.RECEIVED, S.IN_PROGRESS, S.WAITING_FOR_PARTS, S.REPAIRED, S.COMPLETED, S.RETURNED]
AVERAGE_DAYS_IN_STATUS = {
    S.RECEIVED: 2,
    S.IN_PROGRESS: 3,
    S.WAITING_FOR_PARTS: 5,
    S.REPAIRED: 1,
}
FINISHED_STATUSES = (S.COMPLETED, S.RETURNED, S.CANCELLED)
RATEABLE_STATUSES = (S.COMPLETED, S.REPAIRED)
NOT_FOUND_DELAY_SECONDS = (0.1, 0.3)


def normalize_lookup(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def calculate_progress(status: TicketStatus) -> int:
    if status not in PROGRESS_ORDER:
        return 0
    return round((PROGRESS_ORDER.index(status) + 1) / len(PROGRESS_ORDER) * 100)


def estimate_completion(status: TicketStatus, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Now plus the average days of the current status and every status still ahead.

    The estimate is cumulative: a RECEIVED ticket is quoted the whole
    RECEIVED -> IN_PROGRESS -> WAITING_FOR_PARTS -> REPAIRED path (11 days),
    not just the 2 days RECEIVED itself usually takes.
    """
    if status in FINISHED_STATUSES:
        return None
    index = PROGRESS_ORDER.index(status)
    remaining = sum(AVERAGE_DAYS_IN_STATUS.get(s, 0) for s in PROGRESS_ORDER[index:])
    return (now or datetime.utcnow()) + timedelta(days=remaining)


class TrackingService:
    """Customer-facing views of a ticket"""

    async def lookup(self, db: AsyncSession, ticket_number: str, tracking_code: str) -> dict:
        if not await settings_service.get_boolean_setting(db, "enable_public_tracking", True):
            raise AuthorizationError("Public tracking is disabled")

        result = await db.execute(
            select(Ticket).where(
                Ticket.ticket_number == normalize_lookup(ticket_number),
                Ticket.tracking_code == normalize_lookup(tracking_code),
                Ticket.deleted_at.is_(None),
            )
        )
        ticket = result.scalar_one_or_none()
        if not ticket:
            await asyncio.sleep(random.uniform(*NOT_FOUND_DELAY_SECONDS))
            raise TrackingLookupError()

        flags = await settings_service.get_settings_map(
            db, ["show_eta_on_tracking", "show_price_on_tracking", "show_notes_on_tracking"]
        )
        show = {key: value in settings_service.TRUE_VALUES for key, value in flags.items()}

        rating = ticket.satisfaction_rating
        return {
            "ticket_id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "tracking_code": mask_tracking_code(ticket.tracking_code),
            "status": ticket.status,
            "status_info": ticket_lifecycle.get_status_display_info(ticket.status),
            "progress": calculate_progress(ticket.status),
            "device_brand": ticket.device_brand,
            "device_model": ticket.device_model,
            "device_issue": ticket.device_issue,
            "customer_first_name": ticket.customer.first_name if ticket.customer else "",
            "created_at": ticket.created_at,
            "completed_at": ticket.completed_at,
            "estimated_completion": (
                estimate_completion(ticket.status) if show.get("show_eta_on_tracking") else None
            ),
            "final_price": ticket.final_price if show.get("show_price_on_tracking") else None,
            "timeline": [
                {
                    "status": entry.status,
                    "label": ticket_lifecycle.status_label(entry.status),
                    "notes": entry.notes if show.get("show_notes_on_tracking") else None,
                    "created_at": entry.created_at,
                }
                for entry in ticket.history
            ],
            "rating": (
                {"rating": rating.rating, "comment": rating.comment, "created_at": rating.created_at}
                if rating else None
            ),
            "can_submit_rating": ticket.status in RATEABLE_STATUSES and rating is None,
        }

    # ==================== SATISFACTION ====================

    async def _verify(
        self, db: AsyncSession, ticket: Ticket, data: SatisfactionCreate, user: Optional[User]
    ) -> str:
        """Returns the verification method that passed, or raises AuthorizationError"""
        customer_email = (ticket.customer.email or "").strip().lower() if ticket.customer else ""

        if data.override:
            if not user or user.role != UserRole.ADMIN:
                raise AuthorizationError("Only administrators can override verification")
            if not await settings_service.get_boolean_setting(db, "allow_satisfaction_override"):
                raise AuthorizationError("Satisfaction override is disabled")
            return "AUTH"

        if data.verification_method == "TOKEN":
            if (
                normalize_lookup(data.ticket_number) == ticket.ticket_number
                and normalize_lookup(data.tracking_code) == ticket.tracking_code
            ):
                return "TOKEN"
        elif data.verification_method == "EMAIL":
            if customer_email and data.email and data.email.strip().lower() == customer_email:
                return "EMAIL"
        elif user is not None and user.is_active:
            return "AUTH"

        raise AuthorizationError("Could not verify that you are the customer for this ticket")

    async def submit_rating(
        self, db: AsyncSession, ticket_id: str, data: SatisfactionCreate, user: Optional[User] = None
    ) -> SatisfactionRating:
        ticket = await db.get(Ticket, ticket_id)
        if not ticket or ticket.deleted_at is not None:
            raise TicketNotFoundError(ticket_id)

        method = await self._verify(db, ticket, data, user)

        if ticket.status not in RATEABLE_STATUSES:
            raise ValidationError("Only completed or repaired tickets can be rated", field="status")

        existing = await db.execute(select(SatisfactionRating.id).where(SatisfactionRating.ticket_id == ticket.id))
        if existing.first() is not None:
            raise ConflictError("This ticket has already been rated", code="DUPLICATE_RATING")

        rating = SatisfactionRating(
            ticket_id=ticket.id,
            rating=data.rating,
            comment=(data.comment or "").strip() or None,
            customer_email=(ticket.customer.email or None) if ticket.customer else None,
            verification_method=method,
        )
        db.add(rating)
        await db.flush()
        logger.log_business_event("satisfaction", "rated", rating.id, ticket_id=ticket.id, rating=data.rating)
        return rating

    async def get_rating(self, db: AsyncSession, ticket_id: str) -> SatisfactionRating:
        result = await db.execute(select(SatisfactionRating).where(SatisfactionRating.ticket_id == ticket_id))
        rating = result.scalar_one_or_none()
        if not rating:
            raise ResourceNotFoundError("Satisfaction rating")
        return rating


tracking_service = TrackingService()
