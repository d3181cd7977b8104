"""
Parts (inventory) API

Stock changes made here are recorded as IN/OUT transactions.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from repairflow.core.database import get_db
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import get_current_user, require_admin, require_staff
from repairflow.schemas.inventory import (
    PartCreate,
    PartUpdate,
    PartResponse,
    InventoryTransactionResponse,
)
from repairflow.services.inventory_service import inventory_service
from repairflow.utils.pagination import PaginatedResponse, paginate

router = APIRouter()


@router.get("", response_model=PaginatedResponse)
async def list_parts(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search by name, SKU or description"),
    low_stock: bool = Query(False, description="Only parts at or below their reorder level"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await paginate(db, inventory_service.list_parts_query(search, low_stock), page, page_size)
    result["items"] = [PartResponse.model_validate(part) for part in result["items"]]
    return result


@router.post("", response_model=PartResponse, status_code=status.HTTP_201_CREATED)
async def create_part(
    data: PartCreate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    part = await inventory_service.create_part(db, data, current_user.id)
    await db.commit()
    return part


@router.get("/{part_id}", response_model=PartResponse)
async def get_part(
    part_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await inventory_service.get_part(db, part_id)


@router.put("/{part_id}", response_model=PartResponse)
async def update_part(
    part_id: str,
    data: PartUpdate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    part = await inventory_service.update_part(db, part_id, data, current_user.id)
    await db.commit()
    return part


@router.delete("/{part_id}")
async def delete_part(
    part_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await inventory_service.delete_part(db, part_id)
    await db.commit()
    return {"success": True, "message": "Part deleted"}


@router.get("/{part_id}/transactions", response_model=List[InventoryTransactionResponse])
async def list_part_transactions(
    part_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    part = await inventory_service.get_part(db, part_id)
    result = await db.execute(inventory_service.transactions_query(part.id))
    return result.scalars().all()
