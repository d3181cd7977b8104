"""
Payment Service - ticket payments, cash payments and refunds

Refunds are stored as payments with a negative amount; every money
movement also lands in the journal.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from datetime import datetime
from typing import Optional, Tuple

from repairflow.core.exceptions import PaymentError, TicketNotFoundError, ValidationError
from repairflow.core.logging_config import logger
from repairflow.models.finance import JournalEntry, JournalEntryType, Payment, PaymentMethod
from repairflow.models.notification import NotificationType
from repairflow.models.ticket import Ticket, TicketStatus, TicketStatusHistory
from repairflow.schemas.finance import CashPaymentCreate, CashRefundCreate, TicketPaymentCreate
from repairflow.services.notification_service import notification_service
from repairflow.utils.dates import DateRange, day_range
from repairflow.utils.money import MONEY_TOLERANCE, round_money
from repairflow.utils.numbering import format_payment_number, next_sequence, payment_number_prefix

MIN_REASON_LENGTH = 5


class PaymentService:
    """Records payments against tickets"""

    async def generate_payment_number(self, db: AsyncSession, now: Optional[datetime] = None) -> str:
        """PAY-YYYYMMDD-NNNN, continuing from the highest number issued today"""
        now = now or datetime.utcnow()
        prefix = payment_number_prefix(now)
        today = day_range(now)
        result = await db.execute(
            select(Payment.payment_number)
            .where(
                Payment.payment_number.like(f"{prefix}%"),
                Payment.created_at.between(today.start, today.end),
            )
            .order_by(Payment.payment_number.desc())
            .limit(1)
        )
        return format_payment_number(next_sequence(result.scalar_one_or_none()), now)

    async def total_paid(self, db: AsyncSession, ticket_id: str) -> float:
        total = await db.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.ticket_id == ticket_id)
        )
        return round_money(total)

    async def get_outstanding(self, db: AsyncSession, ticket: Ticket) -> Tuple[float, float]:
        """(total paid, outstanding) where outstanding = price due - payments"""
        paid = await self.total_paid(db, ticket.id)
        return paid, round_money(ticket.total_price - paid)

    async def _add_payment(
        self,
        db: AsyncSession,
        ticket_id: Optional[str],
        amount: float,
        method: PaymentMethod,
        user_id: Optional[str],
        currency: str = "USD",
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> Payment:
        payment = Payment(
            payment_number=await self.generate_payment_number(db),
            ticket_id=ticket_id,
            amount=round_money(amount),
            method=method,
            currency=currency,
            reference=reference,
            notes=notes,
            received_by_id=user_id,
            details=details,
        )
        db.add(payment)
        await db.flush()

        entry_type = JournalEntryType.REFUND if amount < 0 else JournalEntryType.PAYMENT
        db.add(JournalEntry(
            type=entry_type,
            amount=payment.amount,
            description=notes or f"{entry_type.value.title()} {payment.payment_number}",
            reference_type="payment",
            reference_id=payment.id,
            ticket_id=ticket_id,
            user_id=user_id,
        ))
        await db.flush()
        return payment

    async def pay_ticket(
        self, db: AsyncSession, ticket: Ticket, data: TicketPaymentCreate, user_id: str
    ) -> Tuple[Payment, float, float]:
        """
        Record a payment on a repaired ticket.

        Returns (payment, total paid, outstanding after the payment).
        """
        if ticket.status != TicketStatus.REPAIRED:
            raise PaymentError("Only repaired tickets can be paid")

        paid_before, outstanding = await self.get_outstanding(db, ticket)
        if data.amount > outstanding + MONEY_TOLERANCE:
            raise PaymentError("Amount cannot exceed outstanding amount")

        reason = (data.reason or "").strip()
        if abs(data.amount - outstanding) > MONEY_TOLERANCE and len(reason) < MIN_REASON_LENGTH:
            raise ValidationError(
                "Reason is required when amount differs from outstanding "
                f"(minimum {MIN_REASON_LENGTH} characters)",
                field="reason",
            )

        reference = (data.reference or "").strip() or None
        payment = await self._add_payment(
            db,
            ticket_id=ticket.id,
            amount=data.amount,
            method=PaymentMethod(data.method.upper()),
            user_id=user_id,
            reference=reference,
            notes=reason or None,
        )

        total_paid = round_money(paid_before + data.amount)
        remaining = round_money(ticket.total_price - total_paid)
        if remaining <= MONEY_TOLERANCE and not ticket.paid:
            ticket.paid = True

        note = f"Payment recorded: {data.amount:.2f} via {data.method}"
        if reference:
            note += f" (Ref: {reference})"
        if reason:
            note += f". Reason: {reason}"
        note += f". Total paid: {total_paid:.2f}/{ticket.total_price:.2f}"
        db.add(TicketStatusHistory(ticket_id=ticket.id, status=ticket.status, notes=note, user_id=user_id))
        await db.flush()

        await notification_service.create_notification(
            db,
            NotificationType.PAYMENT_STATUS_CHANGE,
            title="Payment recorded",
            message=f"Payment of {data.amount:.2f} recorded for ticket {ticket.ticket_number} via {data.method}",
            user_id=ticket.assigned_to_id,
            ticket_id=ticket.id,
            actor_id=user_id,
        )
        logger.log_business_event(
            "payment", "recorded", payment.id, ticket_id=ticket.id, amount=payment.amount
        )
        return payment, total_paid, max(remaining, 0.0)

    async def _get_ticket(self, db: AsyncSession, ticket_id: str) -> Ticket:
        ticket = await db.get(Ticket, ticket_id)
        if not ticket or ticket.deleted_at is not None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    async def create_cash_payment(self, db: AsyncSession, data: CashPaymentCreate, user_id: str) -> Payment:
        ticket = await self._get_ticket(db, data.ticket_id)
        payment = await self._add_payment(
            db,
            ticket_id=ticket.id,
            amount=data.amount,
            method=PaymentMethod.CASH,
            user_id=user_id,
            currency=data.currency.upper(),
            reference=data.reference,
            notes=data.notes or f"Cash payment for ticket {ticket.ticket_number}",
            details=data.metadata,
        )
        logger.log_business_event("payment", "cash_received", payment.id, ticket_id=ticket.id)
        return payment

    async def create_cash_refund(self, db: AsyncSession, data: CashRefundCreate, user_id: str) -> Payment:
        ticket = await self._get_ticket(db, data.ticket_id)
        payment = await self._add_payment(
            db,
            ticket_id=ticket.id,
            amount=-abs(data.amount),
            method=PaymentMethod.CASH,
            user_id=user_id,
            currency=data.currency.upper(),
            reference=data.reference,
            notes=f"Cash refund for ticket {ticket.ticket_number}: {data.reason}",
            details=data.metadata,
        )
        logger.log_business_event("payment", "cash_refunded", payment.id, ticket_id=ticket.id)
        return payment

    async def create_refund_payment(
        self,
        db: AsyncSession,
        ticket_id: str,
        amount: float,
        currency: str,
        reference: str,
        notes: str,
        user_id: str,
        details: Optional[dict] = None,
    ) -> Payment:
        """Negative CASH payment plus REFUND journal entry (used by return approval)"""
        return await self._add_payment(
            db,
            ticket_id=ticket_id,
            amount=-abs(amount),
            method=PaymentMethod.CASH,
            user_id=user_id,
            currency=currency,
            reference=reference,
            notes=notes,
            details=details,
        )

    def list_query(
        self,
        search: Optional[str] = None,
        method: Optional[PaymentMethod] = None,
        date_range: Optional[DateRange] = None,
        ticket_id: Optional[str] = None,
    ):
        query = select(Payment).outerjoin(Ticket, Payment.ticket_id == Ticket.id)
        if search:
            term = f"%{search.strip()}%"
            query = query.where(or_(
                Payment.payment_number.ilike(term),
                Payment.reference.ilike(term),
                Ticket.ticket_number.ilike(term),
            ))
        if method:
            query = query.where(Payment.method == method)
        if ticket_id:
            query = query.where(Payment.ticket_id == ticket_id)
        if date_range:
            query = query.where(Payment.created_at.between(date_range.start, date_range.end))
        return query.order_by(Payment.created_at.desc())


payment_service = PaymentService()
