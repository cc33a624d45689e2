"""
Quotes sent to customers by SMS link, and closing out a service request.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import ServiceRequest, Transaction, User
from . import sms_templates
from .errors import InvalidRequest, NotFoundError, PermissionDenied
from .permissions import is_staff, is_technician
from .sms_templates import SmsMessage
from .time_rules import utcnow


logger = structlog.get_logger(__name__)

COMPLETABLE_STATUSES = ("assigned", "in_progress")


def generate_quote_token() -> str:
    return secrets.token_hex(32)


def get_service_request(db: Session, service_request_id: int) -> ServiceRequest:
    service_request = db.query(ServiceRequest).filter(ServiceRequest.id == service_request_id).first()
    if not service_request:
        raise NotFoundError("Service request not found")
    return service_request


def submit_quote(
    db: Session,
    service_request_id: int,
    amount: float,
    notes: Optional[str] = None,
    expiry_days: Optional[int] = None,
) -> Tuple[ServiceRequest, List[SmsMessage]]:
    service_request = get_service_request(db, service_request_id)
    if service_request.status in ("completed", "cancelled"):
        raise InvalidRequest(f"Cannot quote a {service_request.status} service request")

    now = utcnow()
    service_request.status = "quoted"
    service_request.quoted_amount = amount
    service_request.quote_date = now
    service_request.quote_expiry_date = now + timedelta(days=expiry_days or settings.quote_expiry_days_default)
    service_request.quote_notes = notes
    service_request.quote_token = generate_quote_token()
    service_request.quote_accepted = False
    service_request.quote_accepted_date = None

    db.commit()
    db.refresh(service_request)
    logger.info("quote_submitted", service_request_id=service_request.id, amount=amount)
    return service_request, [sms_templates.quote_sent(service_request)]


def quote_expired(service_request: ServiceRequest, now: datetime) -> bool:
    """`now` is naive UTC; an aware expiry from the database is converted before comparing."""
    expiry = service_request.quote_expiry_date
    if expiry is None:
        return False
    if expiry.tzinfo is not None:
        expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)
    return expiry < now


def confirm_quote(db: Session, token: str) -> Tuple[ServiceRequest, List[SmsMessage]]:
    """Customer clicked the quote link. Accepting twice is a no-op."""
    service_request = db.query(ServiceRequest).filter(ServiceRequest.quote_token == token).first()
    if not service_request:
        raise NotFoundError("Quote not found")
    if service_request.quote_accepted:
        return service_request, []

    now = utcnow()
    if quote_expired(service_request, now):
        raise InvalidRequest("Quote has expired")

    service_request.quote_accepted = True
    service_request.quote_accepted_date = now
    db.commit()
    db.refresh(service_request)
    logger.info("quote_accepted", service_request_id=service_request.id)
    return service_request, [sms_templates.quote_accepted(service_request)]


def complete_service_request(
    db: Session, user: User, service_request_id: int
) -> Tuple[ServiceRequest, Optional[Transaction], List[SmsMessage]]:
    """
    Mark the job done and book the quoted amount as income.
    Needs an accepted quote or an assigned/in-progress job.
    """
    if not (is_staff(user) or is_technician(user)):
        raise PermissionDenied()
    service_request = get_service_request(db, service_request_id)
    if service_request.status == "completed":
        raise InvalidRequest("Service request is already completed")
    if not (service_request.quote_accepted or service_request.status in COMPLETABLE_STATUSES):
        raise InvalidRequest("Service request is not in an accepted or in-progress state")

    now = utcnow()
    service_request.status = "completed"
    service_request.completed_date = now

    transaction = None
    if service_request.quoted_amount is not None:
        transaction = Transaction(
            type="income",
            service_request_id=service_request.id,
            description=f"Payment for {service_request.service_type} service: {service_request.issue_type}",
            amount=service_request.quoted_amount,
            date=now.date(),
            category=f"{service_request.service_type}-service",
            notes=f"Completed by {user.name}",
        )
        db.add(transaction)

    db.commit()
    db.refresh(service_request)
    if transaction is not None:
        db.refresh(transaction)
    logger.info(
        "service_request_completed",
        service_request_id=service_request.id,
        transaction_id=transaction.id if transaction else None,
    )
    return service_request, transaction, [sms_templates.service_completed(service_request)]
