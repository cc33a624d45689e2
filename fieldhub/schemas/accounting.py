import datetime as dt
from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator

from ..services.time_rules import parse_iso_date
from .base import CamelModel
from .service_requests import LeadResponse


class TransactionCreate(CamelModel):
    type: Literal["income", "expense"]
    service_request_id: Optional[int] = None
    description: str = Field(min_length=1)
    amount: float = Field(gt=0)
    date: dt.date
    category: str = Field(min_length=1)
    notes: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return parse_iso_date(v)


class TransactionResponse(CamelModel):
    id: int
    type: str
    service_request_id: Optional[int] = None
    description: str
    amount: float
    date: dt.date
    category: str
    notes: Optional[str] = None
    created_at: Optional[dt.datetime] = None


class DashboardStats(CamelModel):
    new_leads: int
    pending_leads: int
    pending_jobs: int
    completed_jobs: int
    revenue: float
    expenses: float
    profit: float
    conversion_rate: int
    next_job: str


class RevenueBreakdown(CamelModel):
    electrical: float = 0
    plumbing: float = 0
    combined: float = 0


class FinancialSummary(CamelModel):
    total_revenue: float
    total_expenses: float
    net_profit: float
    revenue_breakdown: RevenueBreakdown
    expenses_by_category: Dict[str, float]
    recent_transactions: List[TransactionResponse]


class DashboardResponse(CamelModel):
    stats: DashboardStats
    leads: List[LeadResponse]
    financials: FinancialSummary


class WorkloadEntry(CamelModel):
    technician_id: int
    technician_name: str
    scheduled: int = 0
    rescheduled: int = 0
    completed: int = 0
    cancelled: int = 0
    total: int = 0
