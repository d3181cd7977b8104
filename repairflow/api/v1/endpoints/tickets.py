"""
Tickets API

Lifecycle changes, payments, parts, invoices and satisfaction ratings for
repair tickets. Business rules live in the services; these routes load the
caller, commit and shape the response.
"""
from fastapi import APIRouter, Depends, status, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from repairflow.core.database import get_db
from repairflow.models.ticket import Ticket
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import (
    get_current_user,
    get_optional_user,
    require_admin,
    require_staff,
)
from repairflow.schemas.finance import PaymentResponse, TicketPaymentCreate, TicketPaymentResult
from repairflow.schemas.ticket import (
    TicketCreate,
    TicketUpdate,
    TicketResponse,
    TicketDetailResponse,
    TicketListResponse,
    TicketPartCreate,
    TicketPartResponse,
    SatisfactionCreate,
    SatisfactionResponse,
)
from repairflow.services.invoice_pdf import invoice_generator, invoice_number, load_invoice_company
from repairflow.services.payment_service import payment_service
from repairflow.services.ticket_lifecycle import get_allowed_transitions_for_role, get_status_display_info
from repairflow.services.ticket_service import ticket_service
from repairflow.services.tracking_service import tracking_service
from repairflow.utils.money import round_money
from repairflow.utils.pagination import paginate

router = APIRouter()


def build_ticket_detail(ticket: Ticket, user: User) -> TicketDetailResponse:
    """Ticket with totals, outstanding balance and the caller's allowed transitions"""
    detail = TicketDetailResponse.model_validate(ticket)
    total_paid = round_money(sum(float(p.amount or 0) for p in ticket.payments))
    detail.parts_cost = ticket.parts_cost
    detail.total_paid = total_paid
    detail.outstanding = max(round_money(ticket.total_price - total_paid), 0.0)
    detail.allowed_transitions = get_allowed_transitions_for_role(ticket.status, user.role)
    detail.status_info = get_status_display_info(ticket.status)
    detail.has_return = bool(ticket.returns)
    return detail


@router.get("", response_model=TicketListResponse)
async def list_tickets(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status", description="A status, or 'active'"),
    customer_id: Optional[str] = None,
    search: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    query = ticket_service.list_query(status=status_filter, customer_id=customer_id, search=search)
    return await paginate(db, query, page, page_size)


@router.post("", response_model=TicketDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    data: TicketCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    ticket = await ticket_service.create_ticket(db, data, current_user)
    await db.commit()
    ticket = await ticket_service.get_ticket(db, ticket.id, refresh=True)
    return build_ticket_detail(ticket, current_user)


@router.get("/{ticket_id}", response_model=TicketDetailResponse)
async def get_ticket(
    ticket_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    ticket = await ticket_service.get_ticket(db, ticket_id)
    return build_ticket_detail(ticket, current_user)


@router.patch("/{ticket_id}", response_model=TicketDetailResponse)
async def update_ticket(
    ticket_id: str,
    data: TicketUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await ticket_service.update_ticket(db, ticket_id, data, current_user)
    await db.commit()
    ticket = await ticket_service.get_ticket(db, ticket_id, refresh=True)
    return build_ticket_detail(ticket, current_user)


@router.delete("/{ticket_id}")
async def delete_ticket(
    ticket_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await ticket_service.delete_ticket(db, ticket_id, current_user)
    await db.commit()
    return {"success": True, "message": "Ticket deleted"}


# ==================== Payments ====================

@router.post("/{ticket_id}/pay", response_model=TicketPaymentResult, status_code=status.HTTP_201_CREATED)
async def pay_ticket(
    ticket_id: str,
    data: TicketPaymentCreate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    ticket = await ticket_service.get_ticket(db, ticket_id)
    payment, total_paid, outstanding = await payment_service.pay_ticket(db, ticket, data, current_user.id)
    await db.commit()
    return TicketPaymentResult(
        payment=PaymentResponse.model_validate(payment),
        total_paid=total_paid,
        outstanding=outstanding,
        paid=ticket.paid,
    )


@router.get("/{ticket_id}/payments", response_model=List[PaymentResponse])
async def list_ticket_payments(
    ticket_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    ticket = await ticket_service.get_ticket(db, ticket_id)
    result = await db.execute(payment_service.list_query(ticket_id=ticket.id))
    return result.scalars().all()


# ==================== Parts ====================

@router.post("/{ticket_id}/parts", response_model=TicketPartResponse, status_code=status.HTTP_201_CREATED)
async def add_ticket_part(
    ticket_id: str,
    data: TicketPartCreate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    line = await ticket_service.add_part(db, ticket_id, data, current_user)
    await db.commit()
    await db.refresh(line, ["part"])
    return line


@router.delete("/{ticket_id}/parts/{ticket_part_id}")
async def remove_ticket_part(
    ticket_id: str,
    ticket_part_id: str,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    await ticket_service.remove_part(db, ticket_id, ticket_part_id, current_user)
    await db.commit()
    return {"success": True, "message": "Part removed from ticket"}


# ==================== Invoice ====================

@router.get("/{ticket_id}/invoice")
async def download_invoice(
    ticket_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Render the ticket invoice as a PDF download"""
    ticket = await ticket_service.get_ticket(db, ticket_id)
    company = await load_invoice_company(db)
    pdf_bytes = invoice_generator.generate_invoice(ticket, company)
    filename = f"invoice-{invoice_number(ticket, company)}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ==================== Satisfaction ====================

@router.get("/{ticket_id}/satisfaction", response_model=SatisfactionResponse)
async def get_satisfaction(
    ticket_id: str,
    db: AsyncSession = Depends(get_db)
):
    return await tracking_service.get_rating(db, ticket_id)


@router.post("/{ticket_id}/satisfaction", response_model=SatisfactionResponse, status_code=status.HTTP_201_CREATED)
async def submit_satisfaction(
    ticket_id: str,
    data: SatisfactionCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Customers verify with ticket number + tracking code or email; staff with their token"""
    rating = await tracking_service.submit_rating(db, ticket_id, data, current_user)
    await db.commit()
    return rating
