from typing import Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.accounting import WorkloadEntry
from ..schemas.appointments import AppointmentResponse
from ..schemas.auth import UserResponse
from ..services import technicians as technician_service


router = APIRouter(prefix="/api/technicians", tags=["technicians"])


@router.get("/workload", response_model=List[WorkloadEntry])
def technician_workload(
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin")),
):
    return technician_service.workload(db)


@router.get("/{technician_id}", response_model=UserResponse)
def get_technician(
    technician_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return technician_service.get_visible_technician(db, user, technician_id)


@router.get("/{technician_id}/schedule", response_model=Dict[str, List[AppointmentResponse]])
def technician_schedule(
    technician_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Appointments grouped by ISO date."""
    return technician_service.schedule(db, user, technician_id)
