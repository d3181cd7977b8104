"""
Contact Service - messages from the public contact form

Anyone can send a message (when the shop shows the form); staff read,
assign and archive them, admins delete them.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from typing import Optional

from repairflow.core.exceptions import AuthorizationError, ResourceNotFoundError
from repairflow.core.logging_config import logger
from repairflow.models.contact import ContactMessage, ContactMessageStatus
from repairflow.models.ticket import Ticket
from repairflow.models.user import User
from repairflow.schemas.contact import ContactMessageCreate, ContactMessageUpdate
from repairflow.services import settings_service

UNASSIGNED = "UNASSIGNED"


class ContactService:

    async def create_message(self, db: AsyncSession, data: ContactMessageCreate) -> ContactMessage:
        if not await settings_service.get_boolean_setting(db, "show_contact_form", True):
            raise AuthorizationError("The contact form is disabled")

        # An unknown ticket id is dropped rather than rejected
        ticket_id = None
        if data.ticket_id:
            ticket = await db.get(Ticket, data.ticket_id)
            ticket_id = ticket.id if ticket else None

        message = ContactMessage(
            name=data.name,
            email=data.email,
            phone=data.phone,
            message=data.message,
            ticket_id=ticket_id,
            status=ContactMessageStatus.NEW,
        )
        db.add(message)
        await db.flush()

        logger.log_business_event("contact_message", "received", message.id, ticket_id=ticket_id)
        return message

    def list_query(
        self,
        status: Optional[ContactMessageStatus] = None,
        assigned_to: Optional[str] = None,
        ticket_id: Optional[str] = None,
    ):
        """Newest first; assigned_to may be a user id or UNASSIGNED"""
        query = select(ContactMessage)
        if status:
            query = query.where(ContactMessage.status == status)
        if assigned_to == UNASSIGNED:
            query = query.where(ContactMessage.assigned_to_id.is_(None))
        elif assigned_to:
            query = query.where(ContactMessage.assigned_to_id == assigned_to)
        if ticket_id:
            query = query.where(ContactMessage.ticket_id == ticket_id)
        return query.order_by(ContactMessage.created_at.desc())

    async def get_message(self, db: AsyncSession, message_id: str) -> ContactMessage:
        message = await db.get(ContactMessage, message_id)
        if not message:
            raise ResourceNotFoundError("Contact message", message_id)
        return message

    async def update_message(
        self, db: AsyncSession, message_id: str, data: ContactMessageUpdate
    ) -> ContactMessage:
        message = await self.get_message(db, message_id)
        fields = data.model_fields_set

        if "status" in fields and data.status is not None:
            message.status = data.status
        if "assigned_to_id" in fields:
            if data.assigned_to_id:
                if not await db.get(User, data.assigned_to_id):
                    raise ResourceNotFoundError("User", data.assigned_to_id)
            message.assigned_to_id = data.assigned_to_id or None

        await db.flush()
        return message

    async def delete_message(self, db: AsyncSession, message_id: str) -> None:
        message = await self.get_message(db, message_id)
        await db.delete(message)
        await db.flush()

    async def delete_all(self, db: AsyncSession) -> int:
        result = await db.execute(delete(ContactMessage))
        logger.log_business_event("contact_message", "deleted_all", count=result.rowcount)
        return result.rowcount or 0


contact_service = ContactService()
