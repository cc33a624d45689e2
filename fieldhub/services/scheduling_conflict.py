"""
Appointment conflict detection.
A technician can hold one active booking per calendar day and named time slot.
"""
from datetime import date
from typing import List, Optional
import structlog
from sqlalchemy.orm import Session

from ..models.models import Appointment
from ..schemas.appointments import AppointmentResponse
from .errors import SchedulingConflict


logger = structlog.get_logger(__name__)


def get_conflicting_appointments(
    db: Session,
    technician_id: Optional[int],
    scheduled_date: date,
    time_slot: str,
    exclude_appointment_id: Optional[int] = None
) -> List[Appointment]:
    """
    Find active appointments occupying the same technician/day/slot.

    Explicit start/end times are not compared: two bookings in the same named
    slot conflict even when their times do not overlap, and overlapping times
    in different slots do not.

    Args:
        db: Database session
        technician_id: Technician being booked (no technician, no conflict)
        scheduled_date: Calendar day of the booking
        time_slot: morning|afternoon|evening|anytime
        exclude_appointment_id: Appointment being rescheduled

    Returns:
        List of conflicting Appointment rows
    """
    if technician_id is None:
        return []

    query = db.query(Appointment).filter(
        Appointment.technician_id == technician_id,
        Appointment.scheduled_date == scheduled_date,
        Appointment.time_slot == time_slot,
        Appointment.status != "cancelled",
    )

    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)

    return query.order_by(Appointment.id).all()


def conflict_error(conflicts: List[Appointment]) -> SchedulingConflict:
    """Build the 409 error, snapshotting the rows while the session is still usable."""
    return SchedulingConflict([
        AppointmentResponse.model_validate(a).model_dump(by_alias=True, mode="json")
        for a in conflicts
    ])


def ensure_slot_available(
    db: Session,
    technician_id: Optional[int],
    scheduled_date: date,
    time_slot: str,
    exclude_appointment_id: Optional[int] = None
) -> None:
    conflicts = get_conflicting_appointments(db, technician_id, scheduled_date, time_slot, exclude_appointment_id)
    if conflicts:
        logger.info(
            "scheduling_conflict",
            technician_id=technician_id,
            scheduled_date=scheduled_date.isoformat(),
            time_slot=time_slot,
            conflict_ids=[c.id for c in conflicts],
        )
        raise conflict_error(conflicts)
