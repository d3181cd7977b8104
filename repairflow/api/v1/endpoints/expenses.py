from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime

from repairflow.core.database import get_db
from repairflow.models.finance import ExpenseType, JournalEntryType
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import require_admin
from repairflow.schemas.finance import ExpenseCreate, ExpenseUpdate, ExpenseResponse, JournalEntryResponse
from repairflow.services.finance_service import finance_service
from repairflow.utils.pagination import PaginatedResponse, paginate

router = APIRouter()


def _optional_range(start_date: Optional[datetime], end_date: Optional[datetime]):
    if start_date and end_date:
        return finance_service.resolve_range(start_date=start_date, end_date=end_date)
    return None


@router.get("", response_model=PaginatedResponse)
async def list_expenses(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    type: Optional[ExpenseType] = None,
    category: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    query = finance_service.expenses_query(type, category, _optional_range(start_date, end_date))
    result = await paginate(db, query, page, page_size)
    result["items"] = [ExpenseResponse.model_validate(e) for e in result["items"]]
    return result


@router.get("/journal", response_model=PaginatedResponse)
async def list_journal_entries(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    type: Optional[JournalEntryType] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Ledger of payments, refunds, expenses and inventory adjustments"""
    query = finance_service.journal_query(type, _optional_range(start_date, end_date))
    result = await paginate(db, query, page, page_size)
    result["items"] = [JournalEntryResponse.model_validate(e) for e in result["items"]]
    return result


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    data: ExpenseCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    expense = await finance_service.create_expense(db, data, current_user.id)
    await db.commit()
    return expense


@router.get("/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await finance_service.get_expense(db, expense_id)


@router.put("/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: str,
    data: ExpenseUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    expense = await finance_service.update_expense(db, expense_id, data)
    await db.commit()
    return expense


@router.delete("/{expense_id}")
async def delete_expense(
    expense_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await finance_service.delete_expense(db, expense_id)
    await db.commit()
    return {"success": True, "message": "Expense deleted"}
