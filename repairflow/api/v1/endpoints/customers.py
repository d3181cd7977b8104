"""
Customers API

Paginated search over name, phone and email. Customers with tickets
cannot be deleted.
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from typing import Optional
from datetime import datetime

from repairflow.core.database import get_db
from repairflow.core.exceptions import CustomerNotFoundError
from repairflow.core.logging_config import logger
from repairflow.models.customer import Customer
from repairflow.models.ticket import Ticket
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import get_current_user, require_admin
from repairflow.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    CustomerDetailResponse,
    CustomerListResponse,
)
from repairflow.utils.pagination import paginate

router = APIRouter()


async def _get_customer(db: AsyncSession, customer_id: str) -> Customer:
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise CustomerNotFoundError(customer_id)
    return customer


async def _ticket_count(db: AsyncSession, customer_id: str) -> int:
    return await db.scalar(
        select(func.count(Ticket.id)).where(Ticket.customer_id == customer_id, Ticket.deleted_at.is_(None))
    ) or 0


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search by name, phone or email"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    query = select(Customer)
    if search:
        term = f"%{search.strip()}%"
        query = query.where(or_(
            Customer.name.ilike(term),
            Customer.phone.ilike(term),
            Customer.email.ilike(term),
        ))
    return await paginate(db, query.order_by(Customer.created_at.desc()), page, page_size)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    data: CustomerCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    customer = Customer(**data.model_dump())
    db.add(customer)
    await db.commit()
    await db.refresh(customer)

    logger.log_business_event("customer", "created", customer.id, created_by=current_user.id)
    return customer


@router.get("/{customer_id}", response_model=CustomerDetailResponse)
async def get_customer(
    customer_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    customer = await _get_customer(db, customer_id)
    response = CustomerDetailResponse.model_validate(customer)
    response.ticket_count = await _ticket_count(db, customer.id)
    return response


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: str,
    data: CustomerUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    customer = await _get_customer(db, customer_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if field in ("name", "phone") and value is None:
            continue
        setattr(customer, field, value)
    customer.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(customer)
    return customer


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    customer = await _get_customer(db, customer_id)
    count = await db.scalar(select(func.count(Ticket.id)).where(Ticket.customer_id == customer.id)) or 0
    if count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete customer with {count} ticket(s)"
        )

    await db.delete(customer)
    await db.commit()

    logger.log_business_event("customer", "deleted", customer_id, deleted_by=current_user.id)
    return {"success": True, "message": "Customer deleted"}
