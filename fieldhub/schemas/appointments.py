from datetime import date, datetime
from typing import List, Optional

from pydantic import Field, field_validator

from ..services.time_rules import parse_iso_date
from .base import CamelModel, empty_to_none
from .service_requests import LeadResponse, ServiceRequestResponse, ServiceType, TimeSlot


HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class AppointmentCreate(CamelModel):
    service_request_id: int
    scheduled_date: date
    time_slot: TimeSlot
    start_time: Optional[str] = Field(default=None, pattern=HHMM)
    end_time: Optional[str] = Field(default=None, pattern=HHMM)
    duration: Optional[int] = Field(default=None, gt=0)
    technician_id: Optional[int] = None
    notes: Optional[str] = None
    service_type: Optional[ServiceType] = None
    issue_type: Optional[str] = None

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return parse_iso_date(v)

    @field_validator("start_time", "end_time", "notes", "issue_type", mode="before")
    @classmethod
    def _blank_optional(cls, v):
        return empty_to_none(v)


class AppointmentReschedule(CamelModel):
    scheduled_date: date
    time_slot: TimeSlot
    start_time: Optional[str] = Field(default=None, pattern=HHMM)
    end_time: Optional[str] = Field(default=None, pattern=HHMM)
    duration: Optional[int] = Field(default=None, gt=0)
    technician_id: Optional[int] = None
    reason: Optional[str] = None

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return parse_iso_date(v)

    @field_validator("start_time", "end_time", "reason", mode="before")
    @classmethod
    def _blank_optional(cls, v):
        return empty_to_none(v)


class AppointmentCancel(CamelModel):
    reason: Optional[str] = None


class AppointmentComplete(CamelModel):
    notes: Optional[str] = None
    cost: Optional[float] = Field(default=None, gt=0)


class AppointmentResponse(CamelModel):
    id: int
    service_request_id: int
    user_id: Optional[int] = None
    technician_id: Optional[int] = None
    technician_name: Optional[str] = None
    technician_phone: Optional[str] = None
    scheduled_date: date
    time_slot: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[int] = None
    status: str
    service_type: str
    issue_type: str
    notes: Optional[str] = None
    reminder_sent: bool = False
    reminder_scheduled: Optional[datetime] = None
    previous_appointment_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AssignmentResponse(CamelModel):
    lead: LeadResponse
    appointment: AppointmentResponse


class ClaimResponse(CamelModel):
    service_request: ServiceRequestResponse
    appointment: AppointmentResponse


class ContactResponse(CamelModel):
    success: bool
    message: str


class ReminderResult(CamelModel):
    appointment_id: int
    success: bool
    error: Optional[str] = None


class ReminderSweepResponse(CamelModel):
    processed: int
    results: List[ReminderResult]
