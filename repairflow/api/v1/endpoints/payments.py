"""
Payments API

Payment list (search, method, date range) and manual cash movements.
Every payment also writes a journal entry.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime

from repairflow.core.database import get_db
from repairflow.models.finance import PaymentMethod
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import require_staff
from repairflow.schemas.finance import CashPaymentCreate, CashRefundCreate, PaymentResponse
from repairflow.services.finance_service import finance_service
from repairflow.services.payment_service import payment_service
from repairflow.utils.pagination import PaginatedResponse, paginate

router = APIRouter()


@router.get("", response_model=PaginatedResponse)
async def list_payments(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Payment number, reference or ticket number"),
    method: Optional[PaymentMethod] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    date_range = finance_service.resolve_range(start_date=start_date, end_date=end_date) \
        if start_date and end_date else None
    query = payment_service.list_query(search=search, method=method, date_range=date_range)
    result = await paginate(db, query, page, page_size)
    result["items"] = [
        PaymentResponse.model_validate(p).model_dump(by_alias=True) for p in result["items"]
    ]
    return result


@router.post("/cash", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_cash_payment(
    data: CashPaymentCreate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    payment = await payment_service.create_cash_payment(db, data, current_user.id)
    await db.commit()
    return payment


@router.post("/cash-refund", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_cash_refund(
    data: CashRefundCreate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    payment = await payment_service.create_cash_refund(db, data, current_user.id)
    await db.commit()
    return payment
