"""
Finance API (admin only)

Revenue, costs and profit over a period preset or custom date range.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime

from repairflow.core.database import get_db
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import require_admin
from repairflow.schemas.finance import (
    FinancialMetrics,
    MetricsComparison,
    DailySummary,
    RevenueTrendPoint,
    HighLossDevice,
)
from repairflow.services.finance_service import finance_service
from repairflow.utils.dates import Period

router = APIRouter()


@router.get("/summary", response_model=FinancialMetrics)
async def get_summary(
    period: Period = Period.WEEKLY,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await finance_service.get_summary(db, period, start_date, end_date)


@router.get("/comparison", response_model=MetricsComparison)
async def get_comparison(
    period: Period = Period.WEEKLY,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await finance_service.get_comparison(db, period)


@router.get("/daily-summary", response_model=DailySummary)
async def get_daily_summary(
    date: Optional[datetime] = Query(None, description="Day to summarise, defaults to today"),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await finance_service.get_daily_summary(db, date)


@router.get("/revenue-trend", response_model=List[RevenueTrendPoint])
async def get_revenue_trend(
    days: int = Query(30, ge=1, le=365),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await finance_service.get_revenue_trend(db, days)


@router.get("/high-loss-devices", response_model=List[HighLossDevice])
async def get_high_loss_devices(
    limit: int = Query(5, ge=1, le=50),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    date_range = finance_service.resolve_range(start_date=start_date, end_date=end_date) \
        if start_date and end_date else None
    return await finance_service.get_high_loss_devices(db, limit, date_range)
