"""
Returns API

Return requests on repaired tickets; approval refunds and restocks,
rejection records the decision.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from repairflow.core.database import get_db
from repairflow.models.returns import ReturnStatus
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import get_current_user, require_admin, require_staff
from repairflow.schemas.returns import (
    ReturnCreate,
    ReturnApprove,
    ReturnReject,
    ReturnResponse,
    ReturnValidation,
)
from repairflow.services.returns_service import returns_service

router = APIRouter()


@router.get("", response_model=List[ReturnResponse])
async def list_returns(
    ticket_id: Optional[str] = None,
    status_filter: Optional[ReturnStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(returns_service.list_query(ticket_id, status_filter))
    return result.scalars().all()


@router.get("/validate/{ticket_id}", response_model=ReturnValidation)
async def validate_return(
    ticket_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await returns_service.validate_return(db, ticket_id)


@router.post("", response_model=ReturnResponse, status_code=status.HTTP_201_CREATED)
async def create_return(
    data: ReturnCreate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    return_ = await returns_service.create_return(db, data, current_user)
    await db.commit()
    return await returns_service.get_return(db, return_.id, refresh=True)


@router.get("/{return_id}", response_model=ReturnResponse)
async def get_return(
    return_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await returns_service.get_return(db, return_id)


@router.post("/{return_id}/approve", response_model=ReturnResponse)
async def approve_return(
    return_id: str,
    data: ReturnApprove,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await returns_service.approve_return(db, return_id, data, current_user)
    await db.commit()
    return await returns_service.get_return(db, return_id, refresh=True)


@router.post("/{return_id}/reject", response_model=ReturnResponse)
async def reject_return(
    return_id: str,
    data: ReturnReject,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await returns_service.reject_return(db, return_id, data, current_user)
    await db.commit()
    return await returns_service.get_return(db, return_id, refresh=True)
