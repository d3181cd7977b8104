"""
Returns Service - post-repair returns and their approve/reject workflow

Approving a return refunds the customer (negative payment + REFUND journal
entry), optionally puts good parts back on the shelf and moves the ticket
to RETURNED, all inside the caller's transaction.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime
from typing import List, Optional

from repairflow.core.exceptions import (
    ConflictError,
    PartNotFoundError,
    ReturnNotFoundError,
    TicketNotFoundError,
    ValidationError,
)
from repairflow.core.logging_config import logger
from repairflow.models.finance import JournalEntry, JournalEntryType
from repairflow.models.inventory import InventoryAdjustment, Part
from repairflow.models.notification import NotificationType
from repairflow.models.returns import ItemCondition, Return, ReturnItem, ReturnStatus
from repairflow.models.ticket import Ticket, TicketStatus, TicketStatusHistory
from repairflow.models.user import User
from repairflow.schemas.inventory import InventoryAdjustmentCreate
from repairflow.schemas.returns import ReturnApprove, ReturnCreate, ReturnReject
from repairflow.services import settings_service, ticket_lifecycle
from repairflow.services.inventory_service import inventory_service
from repairflow.services.notification_service import notification_service
from repairflow.services.payment_service import payment_service
from repairflow.utils.money import round_money

OPEN_RETURN_STATUSES = (ReturnStatus.PENDING, ReturnStatus.APPROVED)
APPROVABLE_TICKET_STATUSES = (TicketStatus.REPAIRED, TicketStatus.COMPLETED)


class ReturnsService:
    """Return requests for repaired tickets"""

    async def get_return(self, db: AsyncSession, return_id: str, refresh: bool = False) -> Return:
        query = select(Return).where(Return.id == return_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        return_ = (await db.execute(query)).scalar_one_or_none()
        if not return_:
            raise ReturnNotFoundError(return_id)
        return return_

    def list_query(self, ticket_id: Optional[str] = None, status: Optional[ReturnStatus] = None):
        query = select(Return)
        if ticket_id:
            query = query.where(Return.ticket_id == ticket_id)
        if status:
            query = query.where(Return.status == status)
        return query.order_by(Return.created_at.desc())

    async def validate_return(self, db: AsyncSession, ticket_id: str) -> dict:
        """
        Check that a ticket can be returned.

        Raises ValidationError (not repaired, outside the window) or
        ConflictError (an open return already exists).
        """
        ticket = await db.get(Ticket, ticket_id)
        if not ticket or ticket.deleted_at is not None:
            raise TicketNotFoundError(ticket_id)
        if ticket.status != TicketStatus.REPAIRED:
            raise ValidationError("Only repaired tickets can be returned", field="ticket_id")

        existing = await db.execute(
            select(Return.id).where(Return.ticket_id == ticket.id, Return.status.in_(OPEN_RETURN_STATUSES))
        )
        if existing.first() is not None:
            raise ConflictError("A return already exists for this ticket", code="RETURN_EXISTS")

        window_days = await ticket_lifecycle.get_return_window_days(db)
        ticket_lifecycle.check_return_window(ticket.completed_at, window_days).raise_if_denied(
            ticket.status, TicketStatus.RETURNED
        )

        return {
            "valid": True,
            "ticket_id": ticket.id,
            "refund_amount": ticket.total_price,
            "return_window_days": window_days,
        }

    async def create_return(self, db: AsyncSession, data: ReturnCreate, user: User) -> Return:
        validation = await self.validate_return(db, data.ticket_id)

        for item in data.items:
            if not await db.get(Part, item.part_id):
                raise PartNotFoundError(item.part_id)

        refund_amount = data.refund_amount if data.refund_amount is not None else validation["refund_amount"]
        return_ = Return(
            ticket_id=data.ticket_id,
            reason=data.reason.strip(),
            refund_amount=round_money(refund_amount),
            status=ReturnStatus.PENDING,
            notes=data.notes,
            created_by_id=user.id,
            items=[
                ReturnItem(part_id=i.part_id, quantity=i.quantity, reason=i.reason, condition=i.condition)
                for i in data.items
            ],
        )
        db.add(return_)
        await db.flush()

        ticket = await db.get(Ticket, data.ticket_id)
        await notification_service.create_notification(
            db,
            NotificationType.RETURN_CREATED,
            title="Return requested",
            message=f"Return request created for ticket {ticket.ticket_number}. Awaiting approval.",
            ticket_id=ticket.id,
            actor_id=user.id,
        )
        logger.log_business_event("return", "created", return_.id, ticket_id=ticket.id)
        return await self.get_return(db, return_.id, refresh=True)

    async def _restock_items(
        self, db: AsyncSession, return_: Return, ticket: Ticket, user: User
    ) -> List[InventoryAdjustment]:
        """GOOD items go back to stock; without items the first part used on the ticket does"""
        if return_.items:
            lines = [(i.part_id, i.quantity) for i in return_.items if i.condition == ItemCondition.GOOD]
        elif ticket.parts:
            lines = [(ticket.parts[0].part_id, ticket.parts[0].quantity)]
        else:
            lines = []

        adjustments = []
        for part_id, quantity in lines:
            part = await inventory_service.get_part(db, part_id)
            unit_price = float(part.unit_price or 0)
            adjustment = await inventory_service.create_adjustment(
                db,
                InventoryAdjustmentCreate(
                    part_id=part.id,
                    qty_change=quantity,
                    cost=round_money(unit_price * quantity),
                    cost_per_unit=unit_price,
                    reason=f"Restock from return for ticket {ticket.ticket_number}",
                    related_return_id=return_.id,
                ),
                user_id=user.id,
            )
            adjustments.append(adjustment)
        return adjustments

    async def approve_return(self, db: AsyncSession, return_id: str, data: ReturnApprove, user: User) -> Return:
        return_ = await self.get_return(db, return_id)
        if return_.status != ReturnStatus.PENDING or return_.is_refunded:
            raise ValidationError("Only pending returns can be approved", field="status")

        ticket = await db.get(Ticket, return_.ticket_id)
        if not ticket or ticket.status not in APPROVABLE_TICKET_STATUSES:
            raise ValidationError("Ticket must be repaired or completed to approve a return")

        requested = float(return_.refund_amount or 0)
        if data.partial_amount is not None and data.partial_amount > requested:
            raise ValidationError("Partial refund cannot exceed the requested amount", field="partial_amount")
        refund = round_money(data.partial_amount if data.partial_amount is not None else requested)
        if refund <= 0:
            raise ValidationError("Refund amount must be greater than zero", field="partial_amount")

        currency = await settings_service.get_setting(db, "currency", "USD")
        now = datetime.utcnow()

        payment = await payment_service.create_refund_payment(
            db,
            ticket_id=ticket.id,
            amount=refund,
            currency=currency,
            reference=f"REFUND-{return_.id}",
            notes=f"Refund for return on ticket {ticket.ticket_number}",
            user_id=user.id,
            details={"return_id": return_.id, "partial": data.partial_amount is not None},
        )

        adjustments = []
        if data.adjust_inventory:
            adjustments = await self._restock_items(db, return_, ticket, user)

        return_.status = ReturnStatus.APPROVED
        return_.handled_by_id = user.id
        return_.handled_at = now
        return_.refund_payment_id = payment.id
        return_.is_refunded = True
        return_.refunded_at = now
        if adjustments:
            return_.inventory_adjustment_id = adjustments[0].id
        if data.notes:
            return_.notes = f"{return_.notes}\n{data.notes}" if return_.notes else data.notes

        ticket.status = TicketStatus.RETURNED
        db.add(TicketStatusHistory(
            ticket_id=ticket.id,
            status=TicketStatus.RETURNED,
            notes=f"Return approved with refund of {refund:.2f} {currency}",
            user_id=user.id,
        ))
        await db.flush()

        await notification_service.create_notification(
            db,
            NotificationType.RETURN_APPROVED,
            title="Return approved",
            message=f"Return for ticket {ticket.ticket_number} approved. Refund: {refund:.2f} {currency}",
            user_id=ticket.assigned_to_id,
            ticket_id=ticket.id,
            actor_id=user.id,
        )
        logger.log_business_event(
            "return", "approved", return_.id, ticket_id=ticket.id, refund=refund, restocked=len(adjustments)
        )
        return await self.get_return(db, return_.id, refresh=True)

    async def reject_return(self, db: AsyncSession, return_id: str, data: ReturnReject, user: User) -> Return:
        return_ = await self.get_return(db, return_id)
        if return_.status != ReturnStatus.PENDING:
            raise ValidationError("Only pending returns can be rejected", field="status")

        rejection = f"Rejection reason: {data.reason.strip()}"
        return_.status = ReturnStatus.REJECTED
        return_.handled_by_id = user.id
        return_.handled_at = datetime.utcnow()
        return_.notes = f"{return_.notes}\n{rejection}" if return_.notes else rejection

        db.add(JournalEntry(
            type=JournalEntryType.REFUND,
            amount=0,
            description=f"Return rejected: {data.reason.strip()}",
            reference_type="return",
            reference_id=return_.id,
            ticket_id=return_.ticket_id,
            user_id=user.id,
        ))
        await db.flush()

        ticket = await db.get(Ticket, return_.ticket_id)
        await notification_service.create_notification(
            db,
            NotificationType.RETURN_REJECTED,
            title="Return rejected",
            message=f"Return for ticket {ticket.ticket_number} was rejected",
            user_id=ticket.assigned_to_id,
            ticket_id=ticket.id,
            actor_id=user.id,
        )
        logger.log_business_event("return", "rejected", return_.id, ticket_id=return_.ticket_id)
        return await self.get_return(db, return_.id, refresh=True)


returns_service = ReturnsService()
