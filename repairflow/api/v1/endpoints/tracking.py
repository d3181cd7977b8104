"""
Public repair tracking

Unauthenticated lookup by ticket number + tracking code, limited to
5 requests per 5 minutes per IP.
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from repairflow.core.database import get_db
from repairflow.core.logging_config import logger
from repairflow.core.rate_limiter import limiter, get_client_ip, TRACKING_LIMIT
from repairflow.schemas.tracking import TrackingResponse
from repairflow.services.tracking_service import tracking_service

router = APIRouter()


@router.get("", response_model=TrackingResponse)
@limiter.limit(TRACKING_LIMIT, key_func=get_client_ip)
async def track_ticket(
    request: Request,
    ticket: str = Query(..., min_length=1, max_length=50, description="Ticket number"),
    code: str = Query(..., min_length=1, max_length=20, description="Tracking code"),
    db: AsyncSession = Depends(get_db)
):
    client_ip = request.client.host if request.client else "unknown"
    logger.info(f"[Tracking] Lookup for {ticket.strip().upper()} from {client_ip}")
    return await tracking_service.lookup(db, ticket, code)
