"""
Appointment lifecycle: create, reschedule, cancel, complete, contact technician,
and the reminder sweep.

Every mutating operation returns (result, messages). The messages are SMS the
caller should hand to the notifier once the change is committed.
"""
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.models import Appointment, ServiceRequest, Transaction, User
from ..schemas.appointments import AppointmentCreate, AppointmentReschedule
from . import sms_templates
from .errors import InvalidRequest, NotFoundError, PermissionDenied, ValidationFailed
from .permissions import (
    can_book_for,
    can_complete_appointment,
    can_contact_technician,
    can_manage_appointment,
    is_staff,
    is_technician,
)
from .scheduling_conflict import conflict_error, ensure_slot_available, get_conflicting_appointments
from .sms_templates import SmsMessage
from .time_rules import format_date, format_timestamp, is_future_date, reminder_time_for, utcnow


logger = structlog.get_logger(__name__)

TERMINAL_STATUSES = ("completed", "cancelled")


def append_note(existing: Optional[str], line: str) -> str:
    """Notes are an append-only log, one event per line."""
    return f"{existing}\n{line}" if existing else line


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def get_technician(db: Session, technician_id: int) -> User:
    technician = db.query(User).filter(
        User.id == technician_id, User.role == "technician", User.is_active.isnot(False)
    ).first()
    if not technician:
        raise NotFoundError("Technician not found")
    return technician


def _get_service_request(db: Session, service_request_id: int) -> ServiceRequest:
    service_request = db.query(ServiceRequest).filter(ServiceRequest.id == service_request_id).first()
    if not service_request:
        raise NotFoundError("Service request not found")
    return service_request


def _require_open(appointment: Appointment, action: str) -> None:
    if appointment.status in TERMINAL_STATUSES:
        raise InvalidRequest(f"Cannot {action} a {appointment.status} appointment")


def _require_future(scheduled_date: date) -> None:
    if not is_future_date(scheduled_date):
        raise ValidationFailed("scheduledDate", "Appointment date must be in the future")


def flush_booking(db: Session, appointment: Appointment) -> None:
    """
    Flush a new or moved booking.
    The partial unique index rejects a double booking that slipped past the
    read-then-write check; report it as the same conflict.
    """
    # Rollback expires the instance, so read the target slot first
    appointment_id = appointment.id
    technician_id = appointment.technician_id
    scheduled_date = appointment.scheduled_date
    time_slot = appointment.time_slot
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        conflicts = get_conflicting_appointments(
            db, technician_id, scheduled_date, time_slot, exclude_appointment_id=appointment_id,
        )
        logger.warning(
            "booking_integrity_conflict",
            technician_id=technician_id,
            scheduled_date=scheduled_date.isoformat(),
            time_slot=time_slot,
        )
        raise conflict_error(conflicts)


def create_appointment(db: Session, user: User, data: AppointmentCreate) -> Tuple[Appointment, List[SmsMessage]]:
    service_request = _get_service_request(db, data.service_request_id)
    if not can_book_for(user, service_request):
        raise PermissionDenied()
    _require_future(data.scheduled_date)

    technician = None
    if data.technician_id is not None:
        technician = get_technician(db, data.technician_id)
        ensure_slot_available(db, technician.id, data.scheduled_date, data.time_slot)

    appointment = Appointment(
        service_request_id=service_request.id,
        user_id=service_request.user_id,
        technician_id=technician.id if technician else None,
        technician_name=technician.name if technician else None,
        technician_phone=technician.phone if technician else None,
        scheduled_date=data.scheduled_date,
        time_slot=data.time_slot,
        start_time=data.start_time,
        end_time=data.end_time,
        duration=data.duration,
        status="scheduled",
        service_type=data.service_type or service_request.service_type,
        issue_type=data.issue_type or service_request.issue_type,
        notes=data.notes,
        reminder_sent=False,
        reminder_scheduled=reminder_time_for(data.scheduled_date),
    )
    db.add(appointment)
    flush_booking(db, appointment)

    if technician:
        service_request.status = "in_progress"
        service_request.technician_id = technician.id
        service_request.technician_name = technician.name
        service_request.scheduled_date = data.scheduled_date

    db.commit()
    db.refresh(appointment)
    logger.info(
        "appointment_created",
        appointment_id=appointment.id,
        service_request_id=service_request.id,
        technician_id=appointment.technician_id,
        scheduled_date=appointment.scheduled_date.isoformat(),
        time_slot=appointment.time_slot,
    )

    messages = [sms_templates.appointment_booked_customer(service_request, appointment)]
    if technician:
        messages.append(sms_templates.appointment_booked_technician(service_request, appointment))
    return appointment, messages


def reschedule_appointment(
    db: Session, user: User, appointment_id: int, data: AppointmentReschedule
) -> Tuple[Appointment, List[SmsMessage]]:
    """
    Move an appointment in place: same row, new date/slot/technician,
    status "rescheduled" and a fresh reminder.
    """
    appointment = get_appointment(db, appointment_id)
    if not can_manage_appointment(user, appointment):
        raise PermissionDenied()
    _require_open(appointment, "reschedule")
    _require_future(data.scheduled_date)

    new_technician = None
    if data.technician_id is not None and data.technician_id != appointment.technician_id:
        new_technician = get_technician(db, data.technician_id)
    effective_technician_id = data.technician_id if data.technician_id is not None else appointment.technician_id

    ensure_slot_available(
        db, effective_technician_id, data.scheduled_date, data.time_slot,
        exclude_appointment_id=appointment.id,
    )

    old_date = appointment.scheduled_date
    old_slot = appointment.time_slot
    previous_technician_id = appointment.technician_id
    previous_technician_name = appointment.technician_name
    previous_technician_phone = appointment.technician_phone

    line = (
        f"Rescheduled on {format_timestamp(utcnow())} from {format_date(old_date)} ({old_slot}) "
        f"to {format_date(data.scheduled_date)} ({data.time_slot})"
    )
    if new_technician:
        line += f"; technician changed from {previous_technician_name or 'unassigned'} to {new_technician.name}"
    if data.reason:
        line += f". Reason: {data.reason}"

    appointment.scheduled_date = data.scheduled_date
    appointment.time_slot = data.time_slot
    appointment.start_time = data.start_time
    appointment.end_time = data.end_time
    if data.duration is not None:
        appointment.duration = data.duration
    if new_technician:
        appointment.technician_id = new_technician.id
        appointment.technician_name = new_technician.name
        appointment.technician_phone = new_technician.phone
    appointment.status = "rescheduled"
    appointment.reminder_sent = False
    appointment.reminder_scheduled = reminder_time_for(data.scheduled_date)
    appointment.notes = append_note(appointment.notes, line)
    flush_booking(db, appointment)

    service_request = db.query(ServiceRequest).filter(ServiceRequest.id == appointment.service_request_id).first()
    if service_request:
        service_request.scheduled_date = appointment.scheduled_date
        if appointment.technician_id is not None:
            service_request.technician_id = appointment.technician_id
            service_request.technician_name = appointment.technician_name

    db.commit()
    db.refresh(appointment)
    logger.info(
        "appointment_rescheduled",
        appointment_id=appointment.id,
        old_date=old_date.isoformat(),
        new_date=appointment.scheduled_date.isoformat(),
        time_slot=appointment.time_slot,
        technician_id=appointment.technician_id,
        previous_technician_id=previous_technician_id,
    )

    messages: List[SmsMessage] = []
    if service_request:
        messages.append(sms_templates.appointment_rescheduled_customer(service_request, appointment))
        if appointment.technician_phone:
            messages.append(sms_templates.appointment_rescheduled_technician(service_request, appointment))
    if new_technician and previous_technician_phone:
        messages.append(
            sms_templates.technician_reassigned(appointment, previous_technician_phone, previous_technician_id)
        )
    return appointment, messages


def cancel_appointment(
    db: Session, user: User, appointment_id: int, reason: Optional[str] = None
) -> Tuple[Appointment, List[SmsMessage]]:
    appointment = get_appointment(db, appointment_id)
    if not can_manage_appointment(user, appointment):
        raise PermissionDenied()
    _require_open(appointment, "cancel")

    line = f"Cancelled on {format_timestamp(utcnow())}"
    if reason:
        line += f". Reason: {reason}"
    appointment.notes = append_note(appointment.notes, line)
    appointment.status = "cancelled"
    # Keeps the reminder sweep away from it
    appointment.reminder_sent = True

    db.commit()
    db.refresh(appointment)
    logger.info("appointment_cancelled", appointment_id=appointment.id, cancelled_by=user.id)

    messages: List[SmsMessage] = []
    service_request = db.query(ServiceRequest).filter(ServiceRequest.id == appointment.service_request_id).first()
    if service_request:
        messages.append(sms_templates.appointment_cancelled_customer(service_request, appointment, reason))
        if appointment.technician_id is not None:
            messages.append(sms_templates.appointment_cancelled_technician(service_request, appointment, reason))
    return appointment, messages


def complete_appointment(
    db: Session, user: User, appointment_id: int, notes: Optional[str] = None, cost: Optional[float] = None
) -> Tuple[Appointment, List[SmsMessage]]:
    """
    Close out a visit. The linked service request is completed too, and a
    cost becomes an income transaction for the service category.
    """
    appointment = get_appointment(db, appointment_id)
    if not can_complete_appointment(user, appointment):
        raise PermissionDenied()
    _require_open(appointment, "complete")

    appointment.status = "completed"
    if notes:
        appointment.notes = append_note(appointment.notes, notes)

    service_request = _get_service_request(db, appointment.service_request_id)
    service_request.status = "completed"
    service_request.completed_date = utcnow()
    if notes:
        service_request.completion_notes = notes
        service_request.notes = append_note(service_request.notes, notes)
    if cost is not None:
        service_request.cost = cost
        db.add(Transaction(
            type="income",
            service_request_id=service_request.id,
            description=f"Service payment for {appointment.service_type} - {appointment.issue_type}",
            amount=cost,
            date=utcnow().date(),
            category=f"{appointment.service_type}-service",
            notes=f"Completed by {appointment.technician_name or user.name}",
        ))

    db.commit()
    db.refresh(appointment)
    logger.info(
        "appointment_completed",
        appointment_id=appointment.id,
        service_request_id=service_request.id,
        cost=cost,
        completed_by=user.id,
    )
    return appointment, [sms_templates.appointment_completed(service_request, appointment)]


def contact_technician(db: Session, user: User, appointment_id: int) -> Tuple[Appointment, List[SmsMessage]]:
    appointment = get_appointment(db, appointment_id)
    if not can_contact_technician(user, appointment):
        raise PermissionDenied()
    if not appointment.technician_phone:
        raise InvalidRequest("Technician contact information not available")

    appointment.notes = append_note(
        appointment.notes, f"Customer requested contact on {format_timestamp(utcnow())}"
    )
    db.commit()
    db.refresh(appointment)
    logger.info("technician_contact_requested", appointment_id=appointment.id, technician_id=appointment.technician_id)
    return appointment, [sms_templates.technician_contact_requested(appointment, user.name, user.phone)]


def due_reminders(db: Session, now: datetime) -> List[Appointment]:
    return db.query(Appointment).filter(
        Appointment.status == "scheduled",
        or_(Appointment.reminder_sent.is_(False), Appointment.reminder_sent.is_(None)),
        Appointment.reminder_scheduled <= now,
    ).order_by(Appointment.reminder_scheduled, Appointment.id).all()


def process_reminders(db: Session, now: Optional[datetime] = None) -> Tuple[Dict, List[SmsMessage]]:
    """
    Send one reminder per due appointment.

    Due means status "scheduled", not yet reminded, and reminder time at or
    before now. Each appointment is committed on its own so one failure does
    not stop the sweep.

    Returns:
        ({"processed": n, "results": [...]}, messages)
    """
    now = now or utcnow()
    due = due_reminders(db, now)

    results = []
    messages: List[SmsMessage] = []
    for appointment in due:
        appointment_id = appointment.id
        try:
            service_request = db.query(ServiceRequest).filter(
                ServiceRequest.id == appointment.service_request_id
            ).first()
            if not service_request:
                results.append({"appointment_id": appointment_id, "success": False, "error": "Service request not found"})
                continue
            message = sms_templates.appointment_reminder(service_request, appointment)
            appointment.reminder_sent = True
            appointment.notes = append_note(appointment.notes, f"Reminder sent on {format_timestamp(now)}")
            db.commit()
            messages.append(message)
            results.append({"appointment_id": appointment_id, "success": True})
        except Exception as e:
            db.rollback()
            logger.error("reminder_failed", appointment_id=appointment_id, error=str(e))
            results.append({"appointment_id": appointment_id, "success": False, "error": str(e)})

    logger.info("reminders_processed", processed=len(results), sent=len(messages))
    return {"processed": len(results), "results": results}, messages


def _visible_to(query, user: User):
    if is_staff(user):
        return query
    if is_technician(user):
        return query.filter(Appointment.technician_id == user.id)
    return query.filter(Appointment.user_id == user.id)


def list_appointments(db: Session, user: User) -> List[Appointment]:
    query = _visible_to(db.query(Appointment), user)
    return query.order_by(Appointment.scheduled_date.desc(), Appointment.id.desc()).all()


def list_appointments_in_range(db: Session, user: User, start_date: date, end_date: date) -> List[Appointment]:
    if start_date > end_date:
        raise InvalidRequest("startDate must be on or before endDate")
    query = _visible_to(db.query(Appointment), user).filter(
        Appointment.scheduled_date >= start_date,
        Appointment.scheduled_date <= end_date,
    )
    return query.order_by(Appointment.scheduled_date, Appointment.id).all()


def get_visible_appointment(db: Session, user: User, appointment_id: int) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    if not can_manage_appointment(user, appointment):
        raise PermissionDenied()
    return appointment
