"""
Dashboard endpoints - sales chart and period KPIs.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timedelta
from typing import Optional

from repairflow.core.database import get_db
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import require_staff
from repairflow.schemas.finance import SalesRollup, PeriodStats
from repairflow.services.dashboard_service import dashboard_service
from repairflow.utils.dates import Period, to_naive_utc

router = APIRouter()


@router.get("/sales", response_model=SalesRollup)
async def get_sales(
    start_date: Optional[datetime] = Query(None, description="Defaults to 6 days ago"),
    end_date: Optional[datetime] = Query(None, description="Defaults to today"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """Sales and cost of goods for completed tickets, bucketed by day or week"""
    end_date = to_naive_utc(end_date) or datetime.utcnow()
    start_date = to_naive_utc(start_date) or end_date - timedelta(days=6)
    if start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date must be before end_date"
        )
    return await dashboard_service.get_sales(db, start_date, end_date)


@router.get("/period-stats", response_model=PeriodStats)
async def get_period_stats(
    period: Period = Period.WEEKLY,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    return await dashboard_service.get_period_stats(db, period)
