from datetime import date, datetime
from typing import Literal, Optional

from pydantic import Field, field_validator

from .base import CamelModel, empty_to_none


ServiceType = Literal["electrical", "plumbing", "both"]
Urgency = Literal["emergency", "urgent", "standard", "flexible"]
TimeSlot = Literal["morning", "afternoon", "evening", "anytime"]


class ServiceRequestCreate(CamelModel):
    service_type: ServiceType
    issue_type: str = Field(min_length=1)
    urgency: Urgency
    property_type: str = Field(min_length=1)
    description: Optional[str] = None
    previous_issue: bool = False
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: str = Field(min_length=1)
    address: str = Field(min_length=1)
    preferred_date: Optional[str] = None
    preferred_time: Optional[TimeSlot] = None

    @field_validator("description", "preferred_date", "preferred_time", mode="before")
    @classmethod
    def _blank_optional(cls, v):
        return empty_to_none(v)


class ServiceRequestResponse(CamelModel):
    id: int
    user_id: Optional[int] = None
    service_type: str
    issue_type: str
    urgency: str
    property_type: str
    description: Optional[str] = None
    previous_issue: bool = False
    name: str
    phone: str
    email: str
    address: str
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    status: str
    technician_id: Optional[int] = None
    technician_name: Optional[str] = None
    cost: Optional[float] = None
    notes: Optional[str] = None
    completed_date: Optional[datetime] = None
    quoted_amount: Optional[float] = None
    quote_date: Optional[datetime] = None
    quote_expiry_date: Optional[datetime] = None
    quote_notes: Optional[str] = None
    quote_accepted: bool = False
    quote_accepted_date: Optional[datetime] = None
    completion_notes: Optional[str] = None
    material_used: Optional[str] = None
    priority: int = 0
    scheduled_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ServiceRequestPublic(CamelModel):
    """What an unauthenticated customer may see from a quote link."""
    id: int
    name: str
    service_type: str
    issue_type: str
    status: str
    quoted_amount: Optional[float] = None
    quote_date: Optional[datetime] = None
    quote_accepted_date: Optional[datetime] = None


class LeadResponse(CamelModel):
    id: int
    service_request_id: int
    customer_name: str
    customer_phone: str
    customer_email: str
    service_type: str
    issue_type: str
    urgency: str
    property_type: str
    description: Optional[str] = None
    address: str
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    estimated_price: float
    status: str
    priority: int
    created_at: Optional[datetime] = None


class QuoteCreate(CamelModel):
    amount: float = Field(gt=0)
    notes: Optional[str] = None
    expiry_days: Optional[int] = Field(default=None, gt=0)
