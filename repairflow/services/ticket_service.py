"""
Ticket Service - intake, updates, lifecycle changes and parts on tickets
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from datetime import datetime
from typing import Optional

from repairflow.core.exceptions import (
    AuthorizationError,
    ConflictError,
    CustomerNotFoundError,
    ResourceInUseError,
    ResourceNotFoundError,
    TicketNotFoundError,
    ValidationError,
)
from repairflow.core.logging_config import logger
from repairflow.models.customer import Customer
from repairflow.models.notification import NotificationType
from repairflow.models.returns import Return, ReturnStatus
from repairflow.models.ticket import (
    PriceAdjustment,
    Ticket,
    TicketPart,
    TicketPriority,
    TicketStatus,
    TicketStatusHistory,
)
from repairflow.models.user import User, UserRole
from repairflow.schemas.ticket import TicketCreate, TicketPartCreate, TicketUpdate
from repairflow.services import settings_service, ticket_lifecycle
from repairflow.services.inventory_service import inventory_service
from repairflow.services.notification_service import get_status_change_message, notification_service
from repairflow.services.payment_service import payment_service
from repairflow.utils.money import MONEY_TOLERANCE
from repairflow.utils.numbering import generate_ticket_number, generate_tracking_code

MAX_NUMBER_ATTEMPTS = 10
PRICE_EDITOR_ROLES = (UserRole.ADMIN, UserRole.STAFF)
# Device fields and other plain columns copied straight from TicketUpdate
PLAIN_FIELDS = (
    "device_brand",
    "device_model",
    "device_issue",
    "device_condition_front",
    "device_condition_back",
    "priority",
    "estimated_price",
    "warranty_days",
    "warranty_text",
    "notes",
)


class TicketService:
    """Repair tickets and their lifecycle"""

    async def get_ticket(self, db: AsyncSession, ticket_id: str, refresh: bool = False) -> Ticket:
        """
        Load a live (not deleted) ticket.

        refresh=True reloads collections that other services appended to by
        foreign key during this request (payments, history, parts).
        """
        query = select(Ticket).where(Ticket.id == ticket_id, Ticket.deleted_at.is_(None))
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await db.execute(query)
        ticket = result.scalar_one_or_none()
        if not ticket:
            raise TicketNotFoundError(ticket_id)
        return ticket

    def list_query(
        self,
        status: Optional[str] = None,
        customer_id: Optional[str] = None,
        search: Optional[str] = None,
    ):
        query = select(Ticket).where(Ticket.deleted_at.is_(None))

        if status == "active":
            query = query.where(Ticket.status.not_in([TicketStatus.COMPLETED, TicketStatus.CANCELLED]))
        elif status:
            try:
                status_value = TicketStatus(status.upper())
            except ValueError:
                raise ValidationError(f"Unknown ticket status: {status}", field="status")
            query = query.where(Ticket.status == status_value)
        if customer_id:
            query = query.where(Ticket.customer_id == customer_id)
        if search:
            term = f"%{search.strip()}%"
            query = query.outerjoin(Customer, Ticket.customer_id == Customer.id).where(or_(
                Ticket.ticket_number.ilike(term),
                Ticket.tracking_code.ilike(term),
                Ticket.device_brand.ilike(term),
                Ticket.device_model.ilike(term),
                Customer.name.ilike(term),
            ))
        return query.order_by(Ticket.created_at.desc())

    # ==================== CREATE ====================

    async def _unique_value(self, db: AsyncSession, column, generate) -> str:
        for _ in range(MAX_NUMBER_ATTEMPTS):
            candidate = generate()
            if (await db.execute(select(Ticket.id).where(column == candidate))).first() is None:
                return candidate
        raise ConflictError(f"Could not generate a unique {column.key}", code="NUMBER_GENERATION_FAILED")

    async def _get_user(self, db: AsyncSession, user_id: str) -> User:
        user = await db.get(User, user_id)
        if not user or not user.is_active:
            raise ResourceNotFoundError("User", user_id)
        return user

    async def create_ticket(self, db: AsyncSession, data: TicketCreate, creator: User) -> Ticket:
        customer = await db.get(Customer, data.customer_id)
        if not customer:
            raise CustomerNotFoundError(data.customer_id)

        assigned_to_id = data.assigned_to_id
        if assigned_to_id:
            await self._get_user(db, assigned_to_id)
        elif await settings_service.get_boolean_setting(db, "auto_assign_creator", True):
            assigned_to_id = creator.id

        priority = data.priority
        if priority is None:
            default_priority = await settings_service.get_setting(db, "default_priority", "MEDIUM")
            try:
                priority = TicketPriority(default_priority)
            except ValueError:
                priority = TicketPriority.MEDIUM

        prefix = await settings_service.get_setting(db, "ticket_prefix", "T")
        ticket_number = await self._unique_value(
            db, Ticket.ticket_number, lambda: generate_ticket_number(prefix)
        )
        tracking_code = await self._unique_value(db, Ticket.tracking_code, generate_tracking_code)

        ticket = Ticket(
            ticket_number=ticket_number,
            tracking_code=tracking_code,
            customer_id=customer.id,
            device_brand=data.device_brand,
            device_model=data.device_model,
            device_issue=data.device_issue,
            device_condition_front=data.device_condition_front,
            device_condition_back=data.device_condition_back,
            status=TicketStatus.RECEIVED,
            priority=priority,
            estimated_price=data.estimated_price,
            assigned_to_id=assigned_to_id,
            created_by_id=creator.id,
            warranty_days=data.warranty_days,
            warranty_text=data.warranty_text,
            notes=data.notes,
        )
        db.add(ticket)
        await db.flush()

        db.add(TicketStatusHistory(
            ticket_id=ticket.id, status=TicketStatus.RECEIVED, notes="Ticket created", user_id=creator.id
        ))
        await db.flush()

        await notification_service.create_notification(
            db,
            NotificationType.TICKET_CREATED,
            title="New ticket",
            message=f"Ticket {ticket.ticket_number} created for {customer.name} ({ticket.device_brand})",
            ticket_id=ticket.id,
            actor_id=creator.id,
        )
        if assigned_to_id and assigned_to_id != creator.id:
            await self._notify_assignment(db, ticket, assigned_to_id, creator.id)

        logger.log_business_event("ticket", "created", ticket.id, ticket_number=ticket.ticket_number)
        return await self.get_ticket(db, ticket.id, refresh=True)

    # ==================== UPDATE ====================

    async def _notify_assignment(self, db: AsyncSession, ticket: Ticket, user_id: str, actor_id: str) -> None:
        await notification_service.create_notification(
            db,
            NotificationType.ASSIGNMENT,
            title="Ticket assigned",
            message=f"Ticket {ticket.ticket_number} has been assigned to you",
            user_id=user_id,
            ticket_id=ticket.id,
            actor_id=actor_id,
        )

    async def _request_return(self, db: AsyncSession, ticket: Ticket, reason: Optional[str], user: User) -> None:
        """Status change to RETURNED opens a PENDING return; the ticket itself stays REPAIRED"""
        if user.role != UserRole.ADMIN:
            raise AuthorizationError("Only administrators can create returns")
        if ticket.status != TicketStatus.REPAIRED:
            raise ValidationError("Only repaired tickets can be returned", field="status")
        if not reason or not reason.strip():
            raise ValidationError("Return reason is required when changing status to RETURNED", field="return_reason")
        existing = await db.scalar(select(func.count(Return.id)).where(Return.ticket_id == ticket.id))
        if existing:
            raise ValidationError("Ticket already has a return", field="status")

        refund_amount = ticket.total_price
        return_ = Return(
            ticket_id=ticket.id,
            reason=reason.strip(),
            refund_amount=refund_amount,
            status=ReturnStatus.PENDING,
            created_by_id=user.id,
        )
        db.add(return_)
        db.add(TicketStatusHistory(
            ticket_id=ticket.id,
            status=ticket.status,
            notes=f"Return request created via status change. Refund amount: {refund_amount:.2f}. "
                  f"Ticket remains REPAIRED until return is approved.",
            user_id=user.id,
        ))
        await db.flush()

        await notification_service.create_notification(
            db,
            NotificationType.RETURN_CREATED,
            title="Return requested",
            message=f"Return request created for ticket {ticket.ticket_number}. Awaiting approval.",
            user_id=ticket.assigned_to_id,
            ticket_id=ticket.id,
            actor_id=user.id,
        )
        logger.log_business_event("return", "requested", return_.id, ticket_id=ticket.id)

    async def _change_status(
        self, db: AsyncSession, ticket: Ticket, target: TicketStatus, notes: Optional[str], user: User
    ) -> None:
        _, outstanding = await payment_service.get_outstanding(db, ticket)
        result = ticket_lifecycle.can_transition(ticket.status, target, user.role, outstanding=outstanding)
        result.raise_if_denied(ticket.status, target)

        old_status = ticket.status
        ticket.status = target
        now = datetime.utcnow()
        if target == TicketStatus.REPAIRED and ticket.completed_at is None:
            ticket.completed_at = now
        if target == TicketStatus.COMPLETED:
            if ticket.completed_at is None:
                ticket.completed_at = now
            if await settings_service.get_boolean_setting(db, "auto_mark_tickets_as_paid"):
                ticket.paid = True

        db.add(TicketStatusHistory(
            ticket_id=ticket.id,
            status=target,
            notes=notes or f"Status changed from {old_status.value} to {target.value}",
            user_id=user.id,
        ))
        await db.flush()

        await notification_service.create_notification(
            db,
            NotificationType.STATUS_CHANGE,
            title="Status changed",
            message=get_status_change_message(ticket.ticket_number, old_status, target),
            user_id=ticket.assigned_to_id,
            ticket_id=ticket.id,
            actor_id=user.id,
        )
        logger.log_business_event(
            "ticket", "status_changed", ticket.id, from_status=old_status.value, to_status=target.value
        )

    async def _set_final_price(
        self,
        db: AsyncSession,
        ticket: Ticket,
        new_price: float,
        reason: Optional[str],
        target_status: Optional[TicketStatus],
        user: User,
    ) -> None:
        if user.role not in PRICE_EDITOR_ROLES:
            raise AuthorizationError("Only admin or staff can set the final price")
        if ticket.status != TicketStatus.REPAIRED and target_status != TicketStatus.REPAIRED:
            raise ValidationError("Price can only be adjusted after repair is finished", field="final_price")

        current = ticket.final_price
        if current is not None and abs(current - new_price) <= MONEY_TOLERANCE:
            return

        reason = (reason or "").strip()
        if current is not None and not reason:
            raise ValidationError("Reason is required for price adjustment", field="price_adjustment_reason")

        if reason:
            old_price = current if current is not None else float(ticket.estimated_price or 0)
            db.add(PriceAdjustment(
                ticket_id=ticket.id, user_id=user.id, old_price=old_price, new_price=new_price, reason=reason
            ))
            await notification_service.create_notification(
                db,
                NotificationType.PRICE_ADJUSTMENT,
                title="Price adjusted",
                message=f"Ticket {ticket.ticket_number} price adjusted from {old_price:.2f} to {new_price:.2f}",
                user_id=ticket.assigned_to_id,
                ticket_id=ticket.id,
                actor_id=user.id,
            )
        ticket.final_price = new_price

    async def update_ticket(self, db: AsyncSession, ticket_id: str, data: TicketUpdate, user: User) -> Ticket:
        ticket = await self.get_ticket(db, ticket_id)
        fields = data.model_dump(exclude_unset=True)
        target = data.status

        if target is not None and target != ticket.status:
            if ticket.status == TicketStatus.RETURNED:
                raise ValidationError("Status of a returned ticket cannot be changed", field="status")
            if target == TicketStatus.RETURNED:
                await self._request_return(db, ticket, data.return_reason, user)
            else:
                await self._change_status(db, ticket, target, data.status_notes, user)

        if "final_price" in fields and data.final_price is not None:
            await self._set_final_price(
                db, ticket, data.final_price, data.price_adjustment_reason, target, user
            )

        if "assigned_to_id" in fields and fields["assigned_to_id"] != ticket.assigned_to_id:
            new_assignee = fields["assigned_to_id"]
            if new_assignee:
                await self._get_user(db, new_assignee)
            ticket.assigned_to_id = new_assignee
            if new_assignee:
                await self._notify_assignment(db, ticket, new_assignee, user.id)

        for field in PLAIN_FIELDS:
            if field in fields and fields[field] is not None:
                setattr(ticket, field, fields[field])

        ticket.updated_at = datetime.utcnow()
        await db.flush()
        return await self.get_ticket(db, ticket.id, refresh=True)

    async def delete_ticket(self, db: AsyncSession, ticket_id: str, user: User) -> None:
        ticket = await self.get_ticket(db, ticket_id)
        returns = await db.scalar(select(func.count(Return.id)).where(Return.ticket_id == ticket.id))
        if returns:
            raise ResourceInUseError(
                "Ticket", "it has existing returns. Please delete returns first."
            )
        ticket.deleted_at = datetime.utcnow()
        await db.flush()
        logger.log_business_event("ticket", "deleted", ticket.id, deleted_by=user.id)

    # ==================== PARTS ====================

    async def add_part(self, db: AsyncSession, ticket_id: str, data: TicketPartCreate, user: User) -> TicketPart:
        """Add a part (merging with an existing line) and take it out of stock"""
        ticket = await self.get_ticket(db, ticket_id)
        part = await inventory_service.get_part(db, data.part_id)

        await inventory_service.deduct_stock(
            db, part, data.quantity, f"Used on ticket {ticket.ticket_number}",
            ticket_id=ticket.id, user_id=user.id,
        )

        result = await db.execute(
            select(TicketPart).where(TicketPart.ticket_id == ticket.id, TicketPart.part_id == part.id)
        )
        line = result.scalar_one_or_none()
        if line:
            line.quantity += data.quantity
        else:
            line = TicketPart(ticket_id=ticket.id, part_id=part.id, quantity=data.quantity)
            db.add(line)
        await db.flush()

        logger.log_business_event(
            "ticket", "part_added", ticket.id, part_id=part.id, quantity=data.quantity
        )
        return line

    async def remove_part(self, db: AsyncSession, ticket_id: str, ticket_part_id: str, user: User) -> None:
        ticket = await self.get_ticket(db, ticket_id)
        line = await db.get(TicketPart, ticket_part_id)
        if not line:
            raise ResourceNotFoundError("Ticket part", ticket_part_id)
        if line.ticket_id != ticket.id:
            raise ValidationError("Ticket part does not belong to this ticket")

        part = await inventory_service.get_part(db, line.part_id)
        await inventory_service.restock(
            db, part, line.quantity, f"Removed from ticket {ticket.ticket_number}",
            ticket_id=ticket.id, user_id=user.id,
        )
        if line in ticket.parts:
            ticket.parts.remove(line)
        await db.delete(line)
        await db.flush()
        logger.log_business_event("ticket", "part_removed", ticket.id, part_id=part.id)


ticket_service = TicketService()
