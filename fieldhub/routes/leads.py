from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..models.models import User
from ..schemas.appointments import AppointmentResponse, AssignmentResponse
from ..schemas.service_requests import LeadResponse
from ..services import leads as lead_service
from ..services.notifications import Notifier, get_notifier


router = APIRouter(prefix="/api/leads", tags=["leads"])


@router.get("", response_model=List[LeadResponse])
def list_leads(
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin")),
):
    """Queue order: highest priority first, oldest first within a priority."""
    return lead_service.list_leads(db)


@router.post("/{lead_id}/assign", response_model=AssignmentResponse)
def assign_lead(
    lead_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin")),
    notifier: Notifier = Depends(get_notifier),
):
    lead, appointment, messages = lead_service.assign_lead(db, lead_id)
    background_tasks.add_task(notifier.deliver, messages)
    return AssignmentResponse(
        lead=LeadResponse.model_validate(lead),
        appointment=AppointmentResponse.model_validate(appointment),
    )
