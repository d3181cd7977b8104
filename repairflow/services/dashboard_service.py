"""
Dashboard Service - sales chart rollup and period KPI cards
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime, timedelta
from typing import List, Optional

from repairflow.models.finance import Expense
from repairflow.models.returns import Return, ReturnStatus
from repairflow.models.ticket import Ticket, TicketStatus
from repairflow.utils.dates import (
    DateRange,
    Period,
    calculate_change,
    create_date_range,
    end_of_day,
    get_previous_period_range,
    start_of_day,
)
from repairflow.utils.money import round_money

DAILY_WEEKDAY_MAX_DAYS = 7
DAILY_DATE_MAX_DAYS = 31
WEEK_BUCKET_DAYS = 7


def bucket_layout(start: datetime, end: datetime) -> List[tuple]:
    """
    Chart buckets as (label, bucket_start, bucket_end).

    Up to a week: one bucket per day labelled by weekday ("Mon").
    Up to a month: one bucket per day labelled "05 Mar".
    Longer: seven-day buckets labelled by their first day.
    """
    days = (end.date() - start.date()).days
    buckets = []
    current = start_of_day(start)

    if days <= DAILY_DATE_MAX_DAYS:
        label_format = "%a" if days <= DAILY_WEEKDAY_MAX_DAYS else "%d %b"
        while current.date() <= end.date():
            buckets.append((current.strftime(label_format), current, end_of_day(current)))
            current += timedelta(days=1)
        return buckets

    while current.date() <= end.date():
        bucket_end = end_of_day(current + timedelta(days=WEEK_BUCKET_DAYS - 1))
        buckets.append((current.strftime("%d %b"), current, bucket_end))
        current += timedelta(days=WEEK_BUCKET_DAYS)
    return buckets


def date_range_label(start: datetime, end: datetime) -> str:
    return f"{start.strftime('%d %b %Y')} to {end.strftime('%d %b %Y')}"


class DashboardService:
    """Aggregates for the dashboard widgets"""

    async def get_sales(self, db: AsyncSession, start_date: datetime, end_date: datetime) -> dict:
        date_range = DateRange(start_of_day(start_date), end_of_day(end_date))
        result = await db.execute(
            select(Ticket).where(
                Ticket.status == TicketStatus.COMPLETED,
                Ticket.deleted_at.is_(None),
                Ticket.completed_at.between(date_range.start, date_range.end),
            )
        )
        tickets = result.scalars().all()

        data = []
        for label, bucket_start, bucket_end in bucket_layout(start_date, end_date):
            in_bucket = [t for t in tickets if bucket_start <= t.completed_at <= bucket_end]
            data.append({
                "label": label,
                "sales": round_money(sum(float(t.final_price or 0) for t in in_bucket)),
                "cogs": round_money(sum(t.parts_cost for t in in_bucket)),
            })

        return {
            "data": data,
            "invoices": len(tickets),
            "total_sales": round_money(sum(b["sales"] for b in data)),
            "total_cogs": round_money(sum(b["cogs"] for b in data)),
            "date_range_label": date_range_label(start_date, end_date),
        }

    async def _completed_revenue(self, db: AsyncSession, start: datetime, end: Optional[datetime] = None):
        query = select(func.coalesce(func.sum(Ticket.final_price), 0), func.count(Ticket.id)).where(
            Ticket.status == TicketStatus.COMPLETED,
            Ticket.deleted_at.is_(None),
            Ticket.completed_at >= start,
        )
        if end is not None:
            query = query.where(Ticket.completed_at <= end)
        total, count = (await db.execute(query)).one()
        return float(total or 0), int(count or 0)

    async def get_period_stats(self, db: AsyncSession, period: Period = Period.WEEKLY) -> dict:
        current = create_date_range(period)
        previous = get_previous_period_range(current, period)

        revenue, completed = await self._completed_revenue(db, current.start)
        previous_revenue, _ = await self._completed_revenue(db, previous.start, previous.end)

        expenses = await db.scalar(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(
                Expense.deleted_at.is_(None), Expense.date >= current.start
            )
        )
        refunds = await db.scalar(
            select(func.coalesce(func.sum(Return.refund_amount), 0)).where(
                Return.status == ReturnStatus.APPROVED, Return.created_at >= current.start
            )
        )
        expenses = float(expenses or 0)
        refunds = float(refunds or 0)

        return {
            "period": Period(period).value,
            "revenue": round_money(revenue),
            "revenue_change": calculate_change(revenue, previous_revenue),
            "expenses": round_money(expenses),
            "refunds": round_money(refunds),
            "profit": round_money(revenue - expenses - refunds),
            "tickets_completed": completed,
            "start_date": current.start,
            "end_date": current.end,
        }


dashboard_service = DashboardService()
