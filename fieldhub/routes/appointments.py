"""
Appointment API routes.
Create, reschedule, cancel, complete, contact the technician, and the reminder sweep.
"""
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.appointments import (
    AppointmentCancel,
    AppointmentComplete,
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
    ContactResponse,
    ReminderSweepResponse,
)
from ..services import appointments as appointment_service
from ..services.errors import InvalidRequest
from ..services.notifications import Notifier, get_notifier
from ..services.time_rules import parse_iso_date


router = APIRouter(prefix="/api/appointments", tags=["appointments"])


@router.post("", response_model=AppointmentResponse, status_code=201)
def create_appointment(
    payload: AppointmentCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Book a visit for a service request.
    409 with the conflicting appointments when the technician already holds the slot.
    """
    appointment, messages = appointment_service.create_appointment(db, user, payload)
    background_tasks.add_task(notifier.deliver, messages)
    return appointment


@router.get("", response_model=List[AppointmentResponse])
def list_appointments(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return appointment_service.list_appointments(db, user)


@router.get("/range", response_model=List[AppointmentResponse])
def appointments_in_range(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not start_date or not end_date:
        raise InvalidRequest("startDate and endDate are required")
    try:
        start = parse_iso_date(start_date)
        end = parse_iso_date(end_date)
    except ValueError:
        raise InvalidRequest("Invalid date format")
    return appointment_service.list_appointments_in_range(db, user, start, end)


@router.post("/process-reminders", response_model=ReminderSweepResponse)
def process_reminders(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin")),
    notifier: Notifier = Depends(get_notifier),
):
    summary, messages = appointment_service.process_reminders(db)
    background_tasks.add_task(notifier.deliver, messages)
    return summary


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return appointment_service.get_visible_appointment(db, user, appointment_id)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    payload: AppointmentReschedule,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
):
    appointment, messages = appointment_service.reschedule_appointment(db, user, appointment_id, payload)
    background_tasks.add_task(notifier.deliver, messages)
    return appointment


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    payload: Optional[AppointmentCancel] = Body(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
):
    reason = payload.reason if payload else None
    appointment, messages = appointment_service.cancel_appointment(db, user, appointment_id, reason)
    background_tasks.add_task(notifier.deliver, messages)
    return appointment


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    payload: Optional[AppointmentComplete] = Body(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
):
    payload = payload or AppointmentComplete()
    appointment, messages = appointment_service.complete_appointment(
        db, user, appointment_id, payload.notes, payload.cost
    )
    background_tasks.add_task(notifier.deliver, messages)
    return appointment


@router.post("/{appointment_id}/contact-technician", response_model=ContactResponse)
def contact_technician(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
):
    _appointment, messages = appointment_service.contact_technician(db, user, appointment_id)
    background_tasks.add_task(notifier.deliver, messages)
    return ContactResponse(success=True, message="The technician has been notified and will contact you shortly")
