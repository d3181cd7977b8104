from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import datetime

from repairflow.models.ticket import TicketStatus


class TrackingTimelineEntry(BaseModel):
    status: TicketStatus
    label: str
    notes: Optional[str] = None
    created_at: datetime


class TrackingRating(BaseModel):
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class TrackingResponse(BaseModel):
    ticket_id: str
    ticket_number: str
    tracking_code: str
    status: TicketStatus
    status_info: Dict[str, str]
    progress: int
    device_brand: str
    device_model: Optional[str] = None
    device_issue: str
    customer_first_name: str
    created_at: datetime
    completed_at: Optional[datetime] = None
    estimated_completion: Optional[datetime] = None
    final_price: Optional[float] = None
    timeline: List[TrackingTimelineEntry]
    rating: Optional[TrackingRating] = None
    can_submit_rating: bool
