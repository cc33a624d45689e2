"""
Read-side aggregation for the owner dashboard: period stats, financials and
the transaction ledger.
"""
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.models import Appointment, Lead, ServiceRequest, Transaction
from ..schemas.accounting import TransactionCreate
from .errors import InvalidRequest
from .pricing import sort_leads
from .time_rules import local_today, period_window, slot_label, utcnow


UPCOMING_STATUSES = ("scheduled", "rescheduled")
PENDING_JOB_STATUSES = ("assigned", "in_progress")
REVENUE_BUCKETS = {
    "electrical": ("electrical-service", "electrical"),
    "plumbing": ("plumbing-service", "plumbing"),
    "combined": ("both-service", "both"),
}


def _money(value) -> float:
    return float(Decimal(str(value or 0)).quantize(Decimal("0.01")))


def transactions_between(db: Session, start: date, end: date) -> List[Transaction]:
    return (
        db.query(Transaction)
        .filter(Transaction.date >= start, Transaction.date <= end)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .all()
    )


def describe_day(day: date, today: date) -> str:
    if day == today:
        return "Today"
    if day == today + timedelta(days=1):
        return "Tomorrow"
    return f"{day:%a} {day:%b} {day.day}"


def next_job(db: Session, today: Optional[date] = None) -> str:
    """e.g. "Tomorrow, 8:00 AM - 12:00 PM - plumbing Leaky faucet"."""
    today = today or local_today()
    upcoming = (
        db.query(Appointment)
        .filter(Appointment.status.in_(UPCOMING_STATUSES), Appointment.scheduled_date >= today)
        .order_by(Appointment.scheduled_date, Appointment.id)
        .first()
    )
    if not upcoming:
        return "No upcoming jobs"
    return (
        f"{describe_day(upcoming.scheduled_date, today)}, {slot_label(upcoming.time_slot)} - "
        f"{upcoming.service_type} {upcoming.issue_type}"
    )


def compute_stats(db: Session, period: str = "month", now: Optional[datetime] = None) -> Dict:
    start, end = period_window(period, now)

    leads = db.query(Lead).filter(Lead.created_at >= start, Lead.created_at <= end).all()
    service_requests = db.query(ServiceRequest).filter(
        ServiceRequest.created_at >= start, ServiceRequest.created_at <= end
    ).all()
    transactions = transactions_between(db, start.date(), end.date())

    revenue = sum((Decimal(str(t.amount)) for t in transactions if t.type == "income"), Decimal("0"))
    expenses = sum((Decimal(str(t.amount)) for t in transactions if t.type == "expense"), Decimal("0"))
    completed_jobs = len([sr for sr in service_requests if sr.status == "completed"])

    return {
        "new_leads": len(leads),
        "pending_leads": len([l for l in leads if l.status in ("new", "pending")]),
        "pending_jobs": len([sr for sr in service_requests if sr.status in PENDING_JOB_STATUSES]),
        "completed_jobs": completed_jobs,
        "revenue": _money(revenue),
        "expenses": _money(expenses),
        "profit": _money(revenue - expenses),
        "conversion_rate": round(completed_jobs / len(leads) * 100) if leads else 0,
        "next_job": next_job(db),
    }


def compute_financials(db: Session, period: str = "month", now: Optional[datetime] = None) -> Dict:
    start, end = period_window(period, now)
    transactions = transactions_between(db, start.date(), end.date())

    total_revenue = Decimal("0")
    total_expenses = Decimal("0")
    breakdown = {bucket: Decimal("0") for bucket in REVENUE_BUCKETS}
    expenses_by_category: Dict[str, Decimal] = defaultdict(Decimal)

    for t in transactions:
        amount = Decimal(str(t.amount))
        if t.type == "income":
            total_revenue += amount
            for bucket, categories in REVENUE_BUCKETS.items():
                if t.category in categories:
                    breakdown[bucket] += amount
        elif t.type == "expense":
            total_expenses += amount
            expenses_by_category[t.category or "Uncategorized"] += amount

    return {
        "total_revenue": _money(total_revenue),
        "total_expenses": _money(total_expenses),
        "net_profit": _money(total_revenue - total_expenses),
        "revenue_breakdown": {bucket: _money(v) for bucket, v in breakdown.items()},
        "expenses_by_category": {k: _money(v) for k, v in expenses_by_category.items()},
        "recent_transactions": transactions[:10],
    }


def compute_dashboard(db: Session, period: str = "month", now: Optional[datetime] = None) -> Dict:
    return {
        "stats": compute_stats(db, period, now),
        "leads": sort_leads(db.query(Lead).all()),
        "financials": compute_financials(db, period, now),
    }


def list_transactions(db: Session, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[Transaction]:
    if start_date and end_date and start_date > end_date:
        raise InvalidRequest("startDate must be on or before endDate")
    query = db.query(Transaction)
    if start_date:
        query = query.filter(Transaction.date >= start_date)
    if end_date:
        query = query.filter(Transaction.date <= end_date)
    return query.order_by(Transaction.date.desc(), Transaction.id.desc()).all()


def create_transaction(db: Session, data: TransactionCreate) -> Transaction:
    if data.service_request_id is not None:
        exists = db.query(ServiceRequest.id).filter(ServiceRequest.id == data.service_request_id).first()
        if not exists:
            raise InvalidRequest("Service request not found")
    transaction = Transaction(
        type=data.type,
        service_request_id=data.service_request_id,
        description=data.description,
        amount=data.amount,
        date=data.date,
        category=data.category,
        notes=data.notes,
        created_at=utcnow(),
    )
    db.add(transaction)
    db.commit()
    db.refresh(transaction)
    return transaction
