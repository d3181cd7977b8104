from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime

from repairflow.models.finance import PaymentMethod, ExpenseType, JournalEntryType


# ==================== Payments ====================

class TicketPaymentCreate(BaseModel):
    """Body of POST /tickets/{id}/pay"""
    amount: float = Field(..., gt=0)
    method: Literal["cash", "card", "mobile", "other"] = "cash"
    reference: Optional[str] = Field(None, max_length=255)
    reason: Optional[str] = None


class CashPaymentCreate(BaseModel):
    ticket_id: str
    amount: float = Field(..., gt=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class CashRefundCreate(CashPaymentCreate):
    reason: str = Field(..., min_length=3)


class PaymentResponse(BaseModel):
    id: str
    payment_number: str
    ticket_id: Optional[str] = None
    amount: float
    method: PaymentMethod
    currency: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    received_by_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = Field(None, serialization_alias="metadata")
    created_at: datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class TicketPaymentResult(BaseModel):
    payment: PaymentResponse
    total_paid: float
    outstanding: float
    paid: bool


# ==================== Expenses ====================

class ExpenseCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    amount: float = Field(..., gt=0)
    type: ExpenseType = ExpenseType.MISC
    category: Optional[str] = Field(None, max_length=100)
    part_id: Optional[str] = None
    device_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    receipt_url: Optional[str] = Field(None, max_length=500)
    date: Optional[datetime] = None


class ExpenseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    amount: Optional[float] = Field(None, gt=0)
    type: Optional[ExpenseType] = None
    category: Optional[str] = Field(None, max_length=100)
    device_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    receipt_url: Optional[str] = Field(None, max_length=500)
    date: Optional[datetime] = None


class ExpenseResponse(BaseModel):
    id: str
    name: str
    amount: float
    type: ExpenseType
    category: Optional[str] = None
    part_id: Optional[str] = None
    device_id: Optional[str] = None
    notes: Optional[str] = None
    receipt_url: Optional[str] = None
    date: datetime
    created_by_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class JournalEntryResponse(BaseModel):
    id: str
    type: JournalEntryType
    amount: float
    description: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    ticket_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ==================== Aggregation ====================

class FinancialMetrics(BaseModel):
    revenue: float
    parts_cost: float
    gross_profit: float
    refunds: float
    expenses: float
    inventory_loss: float
    net_profit: float
    gross_margin: float
    ticket_count: int
    start_date: datetime
    end_date: datetime


class MetricsComparison(BaseModel):
    current: FinancialMetrics
    previous: FinancialMetrics
    changes: Dict[str, int]


class DailySummary(FinancialMetrics):
    parts_used: int
    returns_pending: int


class RevenueTrendPoint(BaseModel):
    date: str
    revenue: float


class HighLossDevice(BaseModel):
    device_id: str
    total_loss: float
    expense_count: int


class SalesBucket(BaseModel):
    label: str
    sales: float
    cogs: float


class SalesRollup(BaseModel):
    data: List[SalesBucket]
    invoices: int
    total_sales: float
    total_cogs: float
    date_range_label: str


class PeriodStats(BaseModel):
    period: str
    revenue: float
    revenue_change: int
    expenses: float
    refunds: float
    profit: float
    tickets_completed: int
    start_date: datetime
    end_date: datetime

    @field_validator("period")
    @classmethod
    def lower_period(cls, value: str) -> str:
        return value.lower()
