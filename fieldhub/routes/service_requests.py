"""
Service request intake, quotes and completion.
"""
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, get_optional_user, require_roles
from ..config import settings
from ..db import get_db
from ..models.models import User
from ..schemas.appointments import AppointmentResponse, ClaimResponse
from ..schemas.service_requests import (
    QuoteCreate,
    ServiceRequestCreate,
    ServiceRequestPublic,
    ServiceRequestResponse,
)
from ..services import leads as lead_service
from ..services import quotes as quote_service
from ..services.notifications import Notifier, get_notifier


router = APIRouter(prefix="/api", tags=["service-requests"])


@router.post("/service-requests", response_model=ServiceRequestResponse, status_code=201)
def create_service_request(
    payload: ServiceRequestCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
    notifier: Notifier = Depends(get_notifier),
):
    """Public intake form. A logged-in caller becomes the request's owner."""
    service_request, _lead, messages = lead_service.submit_service_request(db, payload, user)
    background_tasks.add_task(notifier.deliver, messages)
    return service_request


@router.get("/service-requests", response_model=List[ServiceRequestResponse])
def list_all_service_requests(
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin")),
):
    return lead_service.list_service_requests(db, user)


@router.get("/service-requests/history", response_model=List[ServiceRequestResponse])
def service_request_history(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """The caller's own requests, newest first."""
    return [sr for sr in lead_service.list_service_requests(db, user) if sr.user_id == user.id]


@router.get("/service-requests/public/{service_request_id}", response_model=ServiceRequestPublic)
def public_service_request(service_request_id: int, db: Session = Depends(get_db)):
    return quote_service.get_service_request(db, service_request_id)


@router.post("/service-requests/{service_request_id}/quote", response_model=ServiceRequestResponse)
def submit_quote(
    service_request_id: int,
    payload: QuoteCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin")),
    notifier: Notifier = Depends(get_notifier),
):
    service_request, messages = quote_service.submit_quote(
        db, service_request_id, payload.amount, payload.notes, payload.expiry_days
    )
    background_tasks.add_task(notifier.deliver, messages)
    return service_request


@router.get("/quote/confirm/{token}")
def confirm_quote(
    token: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Target of the SMS quote link; lands the customer on the web client."""
    service_request, messages = quote_service.confirm_quote(db, token)
    background_tasks.add_task(notifier.deliver, messages)
    return RedirectResponse(
        url=f"{settings.client_url}/quote-accepted?id={service_request.id}",
        status_code=302,
        background=background_tasks,
    )


@router.post("/service-requests/{service_request_id}/complete", response_model=ServiceRequestResponse)
def complete_service_request(
    service_request_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("owner", "admin", "technician")),
    notifier: Notifier = Depends(get_notifier),
):
    service_request, _transaction, messages = quote_service.complete_service_request(db, user, service_request_id)
    background_tasks.add_task(notifier.deliver, messages)
    return service_request


@router.post("/service-requests/{service_request_id}/claim", response_model=ClaimResponse)
def claim_service_request(
    service_request_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("technician")),
    notifier: Notifier = Depends(get_notifier),
):
    service_request, appointment, messages = lead_service.claim_service_request(db, user, service_request_id)
    background_tasks.add_task(notifier.deliver, messages)
    return ClaimResponse(
        service_request=ServiceRequestResponse.model_validate(service_request),
        appointment=AppointmentResponse.model_validate(appointment),
    )
