"""
Contact messages API

POST /contact is public (1 message per minute per IP); the inbox is for
admins and front-desk staff, deletes are admin only.
"""
from fastapi import APIRouter, Depends, status, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from repairflow.core.database import get_db
from repairflow.core.rate_limiter import limiter, get_client_ip, CONTACT_LIMIT
from repairflow.models.contact import ContactMessageStatus
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import require_admin, require_staff
from repairflow.schemas.contact import (
    ContactMessageCreate,
    ContactMessageCreated,
    ContactMessageUpdate,
    ContactMessageResponse,
    ContactMessageDeleteAllResponse,
)
from repairflow.services.contact_service import contact_service
from repairflow.utils.pagination import PaginatedResponse, paginate

router = APIRouter()


@router.post("", response_model=ContactMessageCreated, status_code=status.HTTP_201_CREATED)
@limiter.limit(CONTACT_LIMIT, key_func=get_client_ip)
async def send_contact_message(
    request: Request,
    data: ContactMessageCreate,
    db: AsyncSession = Depends(get_db)
):
    message = await contact_service.create_message(db, data)
    await db.commit()
    return ContactMessageCreated(id=message.id)


# Declared before /{message_id} so "messages" is not taken for an id

@router.get("/messages", response_model=PaginatedResponse)
async def list_contact_messages(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[ContactMessageStatus] = Query(None, alias="status"),
    assigned_to: Optional[str] = Query(None, description="A user id, or UNASSIGNED"),
    ticket_id: Optional[str] = None,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    query = contact_service.list_query(status_filter, assigned_to, ticket_id)
    result = await paginate(db, query, page, page_size)
    result["items"] = [ContactMessageResponse.model_validate(m) for m in result["items"]]
    return result


@router.delete("/messages", response_model=ContactMessageDeleteAllResponse)
async def delete_all_contact_messages(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    deleted = await contact_service.delete_all(db)
    await db.commit()
    return ContactMessageDeleteAllResponse(deleted_count=deleted)


@router.patch("/{message_id}", response_model=ContactMessageResponse)
async def update_contact_message(
    message_id: str,
    data: ContactMessageUpdate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Change status and/or assignee"""
    message = await contact_service.update_message(db, message_id, data)
    await db.commit()
    await db.refresh(message, ["ticket", "assigned_to"])
    return message


@router.delete("/{message_id}")
async def delete_contact_message(
    message_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await contact_service.delete_message(db, message_id)
    await db.commit()
    return {"success": True}
