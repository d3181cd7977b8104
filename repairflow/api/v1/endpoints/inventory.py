"""
Inventory adjustments API (admin only)

Each adjustment changes the part quantity and writes an
INVENTORY_ADJUSTMENT journal entry in the same transaction.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime

from repairflow.core.database import get_db
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import require_admin
from repairflow.schemas.inventory import InventoryAdjustmentCreate, InventoryAdjustmentResponse
from repairflow.services.finance_service import finance_service
from repairflow.services.inventory_service import inventory_service
from repairflow.utils.pagination import PaginatedResponse, paginate

router = APIRouter()


@router.get("/adjustments", response_model=PaginatedResponse)
async def list_adjustments(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    part_id: Optional[str] = None,
    has_related_return: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    date_range = finance_service.resolve_range(start_date=start_date, end_date=end_date) \
        if start_date and end_date else None
    query = inventory_service.adjustments_query(part_id, has_related_return, date_range)
    result = await paginate(db, query, page, page_size)
    result["items"] = [InventoryAdjustmentResponse.model_validate(item) for item in result["items"]]
    return result


@router.post("/adjustments", response_model=InventoryAdjustmentResponse, status_code=status.HTTP_201_CREATED)
async def create_adjustment(
    data: InventoryAdjustmentCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    adjustment = await inventory_service.create_adjustment(db, data, current_user.id)
    await db.commit()
    await db.refresh(adjustment, ["part"])
    return adjustment
