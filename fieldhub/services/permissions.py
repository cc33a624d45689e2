"""
Authorization capabilities for appointments, leads and reports.
Each route asks one of these instead of comparing role strings inline.
"""
from typing import Optional

from ..models.models import User, Appointment, ServiceRequest


STAFF_ROLES = ("admin", "owner")


def is_staff(user: Optional[User]) -> bool:
    return user is not None and user.role in STAFF_ROLES


def is_technician(user: Optional[User]) -> bool:
    return user is not None and user.role == "technician"


def is_assigned_technician(user: User, appointment: Appointment) -> bool:
    return is_technician(user) and appointment.technician_id == user.id


def owns_appointment(user: User, appointment: Appointment) -> bool:
    return appointment.user_id is not None and appointment.user_id == user.id


def can_book_for(user: User, service_request: ServiceRequest) -> bool:
    """Customers book for their own requests; staff book for anyone."""
    if is_staff(user):
        return True
    return service_request.user_id is not None and service_request.user_id == user.id


def can_manage_appointment(user: User, appointment: Appointment) -> bool:
    """
    Reschedule/cancel/view rights:
    - Admin and owner on any appointment
    - The technician assigned to it
    - The customer who owns it
    """
    if is_staff(user):
        return True
    if is_assigned_technician(user, appointment):
        return True
    return owns_appointment(user, appointment)


def can_complete_appointment(user: User, appointment: Appointment) -> bool:
    """Staff, or the technician the appointment is assigned to."""
    if is_staff(user):
        return True
    return is_assigned_technician(user, appointment)


def can_contact_technician(user: User, appointment: Appointment) -> bool:
    return owns_appointment(user, appointment)


def can_view_technician(user: User, technician_id: int) -> bool:
    return is_staff(user) or user.id == technician_id


def can_claim_service_request(user: User, service_request: ServiceRequest) -> bool:
    """Technicians may only pick up jobs whose quote the customer accepted."""
    return is_technician(user) and bool(service_request.quote_accepted)
