"""
Owner dashboard, period stats, financials and the transaction ledger.
"""
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.accounting import (
    DashboardResponse,
    DashboardStats,
    FinancialSummary,
    TransactionCreate,
    TransactionResponse,
)
from ..services import reporting
from ..services.errors import InvalidRequest
from ..services.time_rules import parse_iso_date


router = APIRouter(prefix="/api", tags=["accounting"])

Period = Literal["week", "month", "quarter", "year"]


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    period: Period = "month",
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin")),
):
    return reporting.compute_dashboard(db, period)


@router.get("/stats", response_model=DashboardStats)
def stats(
    period: Period = "month",
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin")),
):
    return reporting.compute_stats(db, period)


@router.get("/financials", response_model=FinancialSummary)
def financials(
    period: Period = "month",
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin")),
):
    return reporting.compute_financials(db, period)


@router.get("/transactions", response_model=List[TransactionResponse])
def list_transactions(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin")),
):
    try:
        start = parse_iso_date(start_date) if start_date else None
        end = parse_iso_date(end_date) if end_date else None
    except ValueError:
        raise InvalidRequest("Invalid date format")
    return reporting.list_transactions(db, start, end)


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin")),
):
    return reporting.create_transaction(db, payload)
