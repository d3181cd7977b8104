"""
Finance Service - revenue, cost and profit aggregation over a date range

Revenue is recognised on tickets that are either COMPLETED inside the range
or REPAIRED and paid with their last update inside the range. Refunds,
expenses and inventory losses are subtracted to get the net profit.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from repairflow.core.logging_config import logger
from repairflow.models.finance import Expense, ExpenseType, JournalEntry, JournalEntryType, Payment
from repairflow.models.inventory import InventoryAdjustment, InventoryTransaction, InventoryTransactionType, Part
from repairflow.models.returns import Return, ReturnStatus
from repairflow.models.ticket import Ticket, TicketPart, TicketStatus
from repairflow.schemas.finance import ExpenseCreate, ExpenseUpdate
from repairflow.core.exceptions import ResourceNotFoundError
from repairflow.utils.dates import (
    DateRange,
    Period,
    calculate_change,
    create_date_range,
    day_range,
    end_of_day,
    get_previous_period_range,
    start_of_day,
    to_naive_utc,
)
from repairflow.utils.money import round_money

# Metrics compared between periods
COMPARED_METRICS = (
    "revenue",
    "parts_cost",
    "gross_profit",
    "refunds",
    "expenses",
    "inventory_loss",
    "net_profit",
    "ticket_count",
)


def revenue_ticket_filter(date_range: DateRange):
    """WHERE clause selecting the tickets whose price counts as revenue in the range"""
    return and_(
        Ticket.deleted_at.is_(None),
        or_(
            and_(
                Ticket.status == TicketStatus.COMPLETED,
                Ticket.completed_at.between(date_range.start, date_range.end),
            ),
            and_(
                Ticket.status == TicketStatus.REPAIRED,
                Ticket.paid.is_(True),
                Ticket.updated_at.between(date_range.start, date_range.end),
            ),
        ),
    )


def build_metrics(
    revenue: float,
    parts_cost: float,
    refunds: float,
    expenses: float,
    inventory_loss: float,
    ticket_count: int,
    date_range: DateRange,
) -> dict:
    """Derive profit and margin from the raw sums; all money rounded to cents"""
    gross_profit = revenue - parts_cost
    net_profit = revenue - parts_cost - refunds - expenses - inventory_loss
    gross_margin = (gross_profit / revenue * 100) if revenue else 0.0
    return {
        "revenue": round_money(revenue),
        "parts_cost": round_money(parts_cost),
        "gross_profit": round_money(gross_profit),
        "refunds": round_money(refunds),
        "expenses": round_money(expenses),
        "inventory_loss": round_money(inventory_loss),
        "net_profit": round_money(net_profit),
        "gross_margin": round_money(gross_margin),
        "ticket_count": ticket_count,
        "start_date": date_range.start,
        "end_date": date_range.end,
    }


def compare_metrics(current: dict, previous: dict) -> Dict[str, int]:
    return {key: calculate_change(current[key], previous[key]) for key in COMPARED_METRICS}


class FinanceService:
    """Financial summary, comparison and trend reports"""

    async def _revenue(self, db: AsyncSession, date_range: DateRange):
        price = func.coalesce(Ticket.final_price, Ticket.estimated_price)
        row = (await db.execute(
            select(func.coalesce(func.sum(price), 0), func.count(Ticket.id))
            .where(revenue_ticket_filter(date_range))
        )).one()
        return float(row[0] or 0), int(row[1] or 0)

    async def _parts_cost(self, db: AsyncSession, date_range: DateRange) -> float:
        revenue_ids = select(Ticket.id).where(revenue_ticket_filter(date_range))
        total = await db.scalar(
            select(func.coalesce(func.sum(Part.unit_price * TicketPart.quantity), 0))
            .select_from(TicketPart)
            .join(Part, TicketPart.part_id == Part.id)
            .where(TicketPart.ticket_id.in_(revenue_ids))
        )
        return float(total or 0)

    async def _refunds(self, db: AsyncSession, date_range: DateRange) -> float:
        total = await db.scalar(
            select(func.coalesce(func.sum(Return.refund_amount), 0)).where(
                Return.status == ReturnStatus.APPROVED,
                Return.created_at.between(date_range.start, date_range.end),
            )
        )
        return float(total or 0)

    async def _expenses(self, db: AsyncSession, date_range: DateRange) -> float:
        total = await db.scalar(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(
                Expense.deleted_at.is_(None),
                Expense.date.between(date_range.start, date_range.end),
            )
        )
        return float(total or 0)

    async def _inventory_loss(self, db: AsyncSession, date_range: DateRange) -> float:
        total = await db.scalar(
            select(func.coalesce(func.sum(func.abs(InventoryAdjustment.cost)), 0)).where(
                InventoryAdjustment.qty_change < 0,
                InventoryAdjustment.created_at.between(date_range.start, date_range.end),
            )
        )
        return float(total or 0)

    async def get_metrics(self, db: AsyncSession, date_range: DateRange) -> dict:
        revenue, ticket_count = await self._revenue(db, date_range)
        return build_metrics(
            revenue=revenue,
            parts_cost=await self._parts_cost(db, date_range),
            refunds=await self._refunds(db, date_range),
            expenses=await self._expenses(db, date_range),
            inventory_loss=await self._inventory_loss(db, date_range),
            ticket_count=ticket_count,
            date_range=date_range,
        )

    async def get_summary(
        self,
        db: AsyncSession,
        period: Period = Period.WEEKLY,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> dict:
        return await self.get_metrics(db, self.resolve_range(period, start_date, end_date))

    @staticmethod
    def resolve_range(
        period: Period = Period.WEEKLY,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> DateRange:
        """Custom dates (day-bounded) win over the period preset"""
        if start_date and end_date:
            return DateRange(start_of_day(to_naive_utc(start_date)), end_of_day(to_naive_utc(end_date)))
        return create_date_range(period)

    async def get_comparison(self, db: AsyncSession, period: Period = Period.WEEKLY) -> dict:
        current_range = create_date_range(period)
        previous_range = get_previous_period_range(current_range, period)
        current = await self.get_metrics(db, current_range)
        previous = await self.get_metrics(db, previous_range)
        return {"current": current, "previous": previous, "changes": compare_metrics(current, previous)}

    async def get_daily_summary(self, db: AsyncSession, day: Optional[datetime] = None) -> dict:
        date_range = day_range(to_naive_utc(day) or datetime.utcnow())
        summary = await self.get_metrics(db, date_range)

        used = await db.scalar(
            select(func.coalesce(func.sum(InventoryTransaction.quantity), 0)).where(
                InventoryTransaction.type == InventoryTransactionType.OUT,
                InventoryTransaction.created_at.between(date_range.start, date_range.end),
            )
        )
        pending = await db.scalar(select(func.count(Return.id)).where(Return.status == ReturnStatus.PENDING))
        summary["parts_used"] = abs(int(used or 0))
        summary["returns_pending"] = int(pending or 0)
        return summary

    async def get_revenue_trend(self, db: AsyncSession, days: int = 30, now: Optional[datetime] = None) -> List[dict]:
        """Positive payments per day for the last `days` days, zero-filled"""
        now = now or datetime.utcnow()
        first_day = start_of_day(now - timedelta(days=days - 1))
        result = await db.execute(
            select(Payment.amount, Payment.created_at).where(
                Payment.amount > 0,
                Payment.created_at.between(first_day, end_of_day(now)),
            )
        )

        totals = {}
        for amount, created_at in result.all():
            key = created_at.date().isoformat()
            totals[key] = totals.get(key, 0.0) + float(amount or 0)

        trend = []
        for offset in range(days):
            key = (first_day + timedelta(days=offset)).date().isoformat()
            trend.append({"date": key, "revenue": round_money(totals.get(key, 0.0))})
        return trend

    async def get_high_loss_devices(
        self, db: AsyncSession, limit: int = 5, date_range: Optional[DateRange] = None
    ) -> List[dict]:
        total = func.sum(Expense.amount).label("total_loss")
        query = (
            select(Expense.device_id, total, func.count(Expense.id))
            .where(Expense.device_id.is_not(None), Expense.deleted_at.is_(None))
            .group_by(Expense.device_id)
            .order_by(total.desc())
            .limit(limit)
        )
        if date_range:
            query = query.where(Expense.date.between(date_range.start, date_range.end))
        result = await db.execute(query)
        return [
            {"device_id": device_id, "total_loss": round_money(loss), "expense_count": count}
            for device_id, loss, count in result.all()
        ]

    # ==================== EXPENSES ====================

    async def get_expense(self, db: AsyncSession, expense_id: str) -> Expense:
        expense = await db.get(Expense, expense_id)
        if not expense or expense.deleted_at is not None:
            raise ResourceNotFoundError("Expense", expense_id)
        return expense

    def expenses_query(
        self,
        type: Optional[ExpenseType] = None,
        category: Optional[str] = None,
        date_range: Optional[DateRange] = None,
    ):
        query = select(Expense).where(Expense.deleted_at.is_(None))
        if type:
            query = query.where(Expense.type == type)
        if category:
            query = query.where(Expense.category == category)
        if date_range:
            query = query.where(Expense.date.between(date_range.start, date_range.end))
        return query.order_by(Expense.date.desc())

    async def create_expense(self, db: AsyncSession, data: ExpenseCreate, user_id: str) -> Expense:
        if data.part_id and not await db.get(Part, data.part_id):
            raise ResourceNotFoundError("Part", data.part_id)

        expense = Expense(
            name=data.name.strip(),
            amount=round_money(data.amount),
            type=data.type,
            category=data.category,
            part_id=data.part_id,
            device_id=data.device_id,
            notes=data.notes,
            receipt_url=data.receipt_url,
            date=data.date or datetime.utcnow(),
            created_by_id=user_id,
        )
        db.add(expense)
        await db.flush()

        db.add(JournalEntry(
            type=JournalEntryType.EXPENSE,
            amount=-expense.amount,
            description=f"Expense: {expense.name}",
            reference_type="expense",
            reference_id=expense.id,
            user_id=user_id,
        ))
        await db.flush()
        logger.log_business_event("expense", "created", expense.id, amount=expense.amount)
        return expense

    async def update_expense(self, db: AsyncSession, expense_id: str, data: ExpenseUpdate) -> Expense:
        expense = await self.get_expense(db, expense_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(expense, field, value)
        await db.flush()
        return expense

    async def delete_expense(self, db: AsyncSession, expense_id: str) -> None:
        expense = await self.get_expense(db, expense_id)
        expense.deleted_at = datetime.utcnow()
        await db.flush()
        logger.log_business_event("expense", "deleted", expense.id)

    def journal_query(self, type: Optional[JournalEntryType] = None, date_range: Optional[DateRange] = None):
        query = select(JournalEntry)
        if type:
            query = query.where(JournalEntry.type == type)
        if date_range:
            query = query.where(JournalEntry.created_at.between(date_range.start, date_range.end))
        return query.order_by(JournalEntry.created_at.desc())


finance_service = FinanceService()
