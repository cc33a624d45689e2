"""
Request intake, the lead queue and technician assignment.
"""
from datetime import date, timedelta
from typing import List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from ..models.models import Appointment, Lead, ServiceRequest, User
from ..schemas.service_requests import ServiceRequestCreate
from . import sms_templates
from .appointments import flush_booking
from .errors import InvalidRequest, NotFoundError, PermissionDenied
from .permissions import can_claim_service_request, is_staff
from .pricing import calculate_estimated_price, calculate_priority, sort_leads
from .scheduling_conflict import ensure_slot_available
from .sms_templates import SmsMessage
from .time_rules import local_today, parse_iso_date, reminder_time_for


logger = structlog.get_logger(__name__)

ASSIGNABLE_SLOTS = ("morning", "afternoon", "evening", "anytime")


def submit_service_request(
    db: Session, data: ServiceRequestCreate, user: Optional[User] = None
) -> Tuple[ServiceRequest, Lead, List[SmsMessage]]:
    """Persist a request and its lead; the lead carries price and queue priority."""
    estimated_price = calculate_estimated_price(data.service_type, data.urgency, data.property_type)
    priority = calculate_priority(data.urgency, estimated_price)

    service_request = ServiceRequest(
        user_id=user.id if user else None,
        service_type=data.service_type,
        issue_type=data.issue_type,
        urgency=data.urgency,
        property_type=data.property_type,
        description=data.description,
        previous_issue=data.previous_issue,
        name=data.name,
        phone=data.phone,
        email=data.email,
        address=data.address,
        preferred_date=data.preferred_date,
        preferred_time=data.preferred_time,
        status="new",
        priority=priority,
    )
    db.add(service_request)
    db.flush()

    lead = Lead(
        service_request_id=service_request.id,
        customer_name=data.name,
        customer_phone=data.phone,
        customer_email=data.email,
        service_type=data.service_type,
        issue_type=data.issue_type,
        urgency=data.urgency,
        property_type=data.property_type,
        description=data.description,
        address=data.address,
        preferred_date=data.preferred_date,
        preferred_time=data.preferred_time,
        estimated_price=estimated_price,
        status="new",
        priority=priority,
    )
    db.add(lead)
    db.commit()
    db.refresh(service_request)
    db.refresh(lead)
    logger.info(
        "service_request_submitted",
        service_request_id=service_request.id,
        lead_id=lead.id,
        estimated_price=estimated_price,
        priority=priority,
    )
    return service_request, lead, [sms_templates.request_received(service_request)]


def list_leads(db: Session) -> List[Lead]:
    return sort_leads(db.query(Lead).all())


def list_service_requests(db: Session, user: User) -> List[ServiceRequest]:
    query = db.query(ServiceRequest)
    if not is_staff(user):
        query = query.filter(ServiceRequest.user_id == user.id)
    return query.order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc()).all()


def first_technician(db: Session) -> Optional[User]:
    # No skill or availability matching: the lowest-id active technician gets the job
    return (
        db.query(User)
        .filter(User.role == "technician", User.is_active.isnot(False))
        .order_by(User.id)
        .first()
    )


def default_schedule(preferred_date: Optional[str], preferred_time: Optional[str]) -> Tuple[date, str]:
    """The customer's preferred day and slot, else tomorrow morning."""
    scheduled_date = None
    if preferred_date:
        try:
            scheduled_date = parse_iso_date(preferred_date)
        except ValueError:
            logger.warning("preferred_date_unparseable", preferred_date=preferred_date)
    if scheduled_date is None:
        scheduled_date = local_today() + timedelta(days=1)
    time_slot = preferred_time if preferred_time in ASSIGNABLE_SLOTS else "morning"
    return scheduled_date, time_slot


def _book_technician(
    db: Session, service_request: ServiceRequest, technician: User, scheduled_date: date, time_slot: str
) -> Appointment:
    ensure_slot_available(db, technician.id, scheduled_date, time_slot)

    appointment = Appointment(
        service_request_id=service_request.id,
        user_id=service_request.user_id,
        technician_id=technician.id,
        technician_name=technician.name,
        technician_phone=technician.phone,
        scheduled_date=scheduled_date,
        time_slot=time_slot,
        status="scheduled",
        service_type=service_request.service_type,
        issue_type=service_request.issue_type,
        notes=f"Assigned to {technician.name}",
        reminder_sent=False,
        reminder_scheduled=reminder_time_for(scheduled_date),
    )
    db.add(appointment)
    flush_booking(db, appointment)

    service_request.status = "assigned"
    service_request.technician_id = technician.id
    service_request.technician_name = technician.name
    service_request.scheduled_date = scheduled_date
    return appointment


def assign_lead(db: Session, lead_id: int) -> Tuple[Lead, Appointment, List[SmsMessage]]:
    """
    Give a lead to the first technician and book the customer's preferred slot.
    Refused with a conflict if that technician already holds the slot.
    """
    lead = db.query(Lead).filter(Lead.id == lead_id).first()
    if not lead:
        raise NotFoundError("Lead not found")

    technician = first_technician(db)
    if not technician:
        raise InvalidRequest("No technicians available")

    service_request = db.query(ServiceRequest).filter(ServiceRequest.id == lead.service_request_id).first()
    if not service_request:
        raise NotFoundError("Service request not found")

    scheduled_date, time_slot = default_schedule(lead.preferred_date, lead.preferred_time)
    appointment = _book_technician(db, service_request, technician, scheduled_date, time_slot)
    lead.status = "assigned"

    db.commit()
    db.refresh(lead)
    db.refresh(appointment)
    logger.info(
        "lead_assigned",
        lead_id=lead.id,
        service_request_id=service_request.id,
        technician_id=technician.id,
        appointment_id=appointment.id,
    )
    return lead, appointment, [sms_templates.technician_assigned(service_request, appointment)]


def claim_service_request(
    db: Session, user: User, service_request_id: int
) -> Tuple[ServiceRequest, Appointment, List[SmsMessage]]:
    """A technician picks up an accepted job for themselves."""
    service_request = db.query(ServiceRequest).filter(ServiceRequest.id == service_request_id).first()
    if not service_request:
        raise NotFoundError("Service request not found")
    if user.role != "technician":
        raise PermissionDenied()
    if not can_claim_service_request(user, service_request):
        raise InvalidRequest("Only service requests with an accepted quote can be claimed")
    if service_request.technician_id is not None:
        raise InvalidRequest("Service request already has a technician")

    scheduled_date, time_slot = default_schedule(service_request.preferred_date, service_request.preferred_time)
    appointment = _book_technician(db, service_request, user, scheduled_date, time_slot)
    lead = db.query(Lead).filter(Lead.service_request_id == service_request.id).first()
    if lead:
        lead.status = "assigned"

    db.commit()
    db.refresh(service_request)
    db.refresh(appointment)
    logger.info(
        "service_request_claimed",
        service_request_id=service_request.id,
        technician_id=user.id,
        appointment_id=appointment.id,
    )
    return service_request, appointment, [sms_templates.technician_assigned(service_request, appointment)]
