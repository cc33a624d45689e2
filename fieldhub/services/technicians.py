"""
Technician directory, workload counts and per-day schedules.
"""
from collections import OrderedDict
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import Appointment, User
from .appointments import get_technician
from .errors import PermissionDenied
from .permissions import can_view_technician

APPOINTMENT_STATUSES = ("scheduled", "rescheduled", "completed", "cancelled")


def list_technicians(db: Session) -> List[User]:
    return db.query(User).filter(User.role == "technician", User.is_active.isnot(False)).order_by(User.id).all()


def get_visible_technician(db: Session, viewer: User, technician_id: int) -> User:
    if not can_view_technician(viewer, technician_id):
        raise PermissionDenied()
    return get_technician(db, technician_id)


def workload(db: Session) -> List[Dict]:
    """Appointment counts per technician and status, zero-filled."""
    counts = (
        db.query(Appointment.technician_id, Appointment.status, func.count(Appointment.id))
        .filter(Appointment.technician_id.isnot(None))
        .group_by(Appointment.technician_id, Appointment.status)
        .all()
    )
    by_technician: Dict[int, Dict[str, int]] = {}
    for technician_id, status, count in counts:
        by_technician.setdefault(technician_id, {})[status] = count

    entries = []
    for technician in list_technicians(db):
        row = {status: by_technician.get(technician.id, {}).get(status, 0) for status in APPOINTMENT_STATUSES}
        entries.append({
            "technician_id": technician.id,
            "technician_name": technician.name,
            **row,
            "total": sum(row.values()),
        })
    return entries


def schedule(db: Session, viewer: User, technician_id: int) -> Dict[str, List[Appointment]]:
    """Appointments keyed by ISO date, earliest day first."""
    get_visible_technician(db, viewer, technician_id)
    appointments = (
        db.query(Appointment)
        .filter(Appointment.technician_id == technician_id)
        .order_by(Appointment.scheduled_date, Appointment.id)
        .all()
    )
    grouped: Dict[str, List[Appointment]] = OrderedDict()
    for appointment in appointments:
        grouped.setdefault(appointment.scheduled_date.isoformat(), []).append(appointment)
    return grouped
