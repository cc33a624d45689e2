"""
SMS wording for every customer/technician touch point.
Each function returns an SmsMessage; nothing here sends anything.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from ..config import settings
from ..models.models import Appointment, ServiceRequest
from .time_rules import format_date


@dataclass
class SmsMessage:
    to: Optional[str]
    body: str
    template_key: str
    user_id: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)


def format_currency(amount) -> str:
    value = Decimal(str(amount)).quantize(Decimal("0.01"))
    return f"${value:,.2f}"


def _when(appointment: Appointment) -> str:
    when = f"{format_date(appointment.scheduled_date)} ({appointment.time_slot})"
    if appointment.start_time and appointment.end_time:
        when += f" {appointment.start_time}-{appointment.end_time}"
    return when


def _appointment_payload(appointment: Appointment) -> Dict[str, Any]:
    return {"appointment_id": appointment.id, "service_request_id": appointment.service_request_id}


def request_received(service_request: ServiceRequest) -> SmsMessage:
    return SmsMessage(
        to=service_request.phone,
        body=(
            "Thank you for your service request! Click the link to view your request status: "
            f"{settings.client_url}/client-dashboard"
        ),
        template_key="request_received",
        user_id=service_request.user_id,
        payload={"service_request_id": service_request.id},
    )


def technician_assigned(service_request: ServiceRequest, appointment: Appointment) -> SmsMessage:
    return SmsMessage(
        to=service_request.phone,
        body=(
            "Good news! A technician has been assigned to your service request. "
            f"Please confirm your appointment for {format_date(appointment.scheduled_date)} "
            f"({appointment.time_slot}) by visiting: {settings.client_url}/client-dashboard"
        ),
        template_key="technician_assigned",
        user_id=service_request.user_id,
        payload=_appointment_payload(appointment),
    )


def appointment_booked_customer(service_request: ServiceRequest, appointment: Appointment) -> SmsMessage:
    body = f"Your {appointment.service_type} service appointment is confirmed for {_when(appointment)}."
    if appointment.technician_name:
        body += f" Your technician will be {appointment.technician_name}."
    else:
        body += " We will let you know once a technician is assigned."
    return SmsMessage(
        to=service_request.phone,
        body=body,
        template_key="appointment_booked",
        user_id=service_request.user_id,
        payload=_appointment_payload(appointment),
    )


def appointment_booked_technician(service_request: ServiceRequest, appointment: Appointment) -> SmsMessage:
    return SmsMessage(
        to=appointment.technician_phone,
        body=(
            f"New appointment #{appointment.id}: {appointment.service_type} - {appointment.issue_type} "
            f"on {_when(appointment)} at {service_request.address}. "
            f"Customer: {service_request.name}, {service_request.phone}."
        ),
        template_key="appointment_booked_technician",
        user_id=appointment.technician_id,
        payload=_appointment_payload(appointment),
    )


def appointment_rescheduled_customer(service_request: ServiceRequest, appointment: Appointment) -> SmsMessage:
    body = f"Your {appointment.service_type} appointment has been rescheduled to {_when(appointment)}."
    if appointment.technician_name:
        body += f" Technician: {appointment.technician_name}."
    return SmsMessage(
        to=service_request.phone,
        body=body,
        template_key="appointment_rescheduled",
        user_id=service_request.user_id,
        payload=_appointment_payload(appointment),
    )


def appointment_rescheduled_technician(service_request: ServiceRequest, appointment: Appointment) -> SmsMessage:
    return SmsMessage(
        to=appointment.technician_phone,
        body=(
            f"Appointment #{appointment.id} with {service_request.name} has been rescheduled to "
            f"{_when(appointment)}."
        ),
        template_key="appointment_rescheduled_technician",
        user_id=appointment.technician_id,
        payload=_appointment_payload(appointment),
    )


def technician_reassigned(appointment: Appointment, previous_phone: str, previous_id: Optional[int]) -> SmsMessage:
    return SmsMessage(
        to=previous_phone,
        body=(
            f"Appointment #{appointment.id} originally scheduled with you has been reassigned "
            "to another technician. No action is needed."
        ),
        template_key="appointment_reassigned",
        user_id=previous_id,
        payload={"appointment_id": appointment.id},
    )


def appointment_cancelled_customer(service_request: ServiceRequest, appointment: Appointment, reason: Optional[str]) -> SmsMessage:
    body = (
        f"Your {appointment.service_type} appointment on {format_date(appointment.scheduled_date)} "
        f"({appointment.time_slot}) has been cancelled."
    )
    if reason:
        body += f" Reason: {reason}."
    body += f" Call us at {settings.business_phone} to book a new time."
    return SmsMessage(
        to=service_request.phone,
        body=body,
        template_key="appointment_cancelled",
        user_id=service_request.user_id,
        payload=_appointment_payload(appointment),
    )


def appointment_cancelled_technician(service_request: ServiceRequest, appointment: Appointment, reason: Optional[str]) -> SmsMessage:
    body = (
        f"Appointment #{appointment.id} with {service_request.name} on "
        f"{format_date(appointment.scheduled_date)} ({appointment.time_slot}) has been cancelled."
    )
    if reason:
        body += f" Reason: {reason}."
    return SmsMessage(
        to=appointment.technician_phone,
        body=body,
        template_key="appointment_cancelled_technician",
        user_id=appointment.technician_id,
        payload=_appointment_payload(appointment),
    )


def appointment_completed(service_request: ServiceRequest, appointment: Appointment) -> SmsMessage:
    return SmsMessage(
        to=service_request.phone,
        body=(
            f"Your service request for {service_request.service_type} has been completed. "
            "Thank you for choosing our services!"
        ),
        template_key="appointment_completed",
        user_id=service_request.user_id,
        payload=_appointment_payload(appointment),
    )


def appointment_reminder(service_request: ServiceRequest, appointment: Appointment) -> SmsMessage:
    body = (
        f"Reminder: your {appointment.service_type} service appointment is scheduled for "
        f"{_when(appointment)}."
    )
    if appointment.technician_name:
        body += f" Your technician will be {appointment.technician_name}."
    body += f" Need to reschedule? Call {settings.business_phone}."
    return SmsMessage(
        to=service_request.phone,
        body=body,
        template_key="appointment_reminder",
        user_id=service_request.user_id,
        payload=_appointment_payload(appointment),
    )


def technician_contact_requested(appointment: Appointment, customer_name: str, customer_phone: str) -> SmsMessage:
    return SmsMessage(
        to=appointment.technician_phone,
        body=(
            f"Customer {customer_name} is trying to reach you regarding appointment #{appointment.id} "
            f"scheduled for {format_date(appointment.scheduled_date)}. "
            f"Please contact them at {customer_phone}."
        ),
        template_key="technician_contact_requested",
        user_id=appointment.technician_id,
        payload=_appointment_payload(appointment),
    )


def quote_sent(service_request: ServiceRequest) -> SmsMessage:
    if not service_request.quote_token or service_request.quoted_amount is None:
        raise ValueError("Service request is missing quote information")
    expiry = ""
    if service_request.quote_expiry_date:
        expiry = f" This quote is valid until {format_date(service_request.quote_expiry_date)}."
    link = f"{settings.client_url}/quote/confirm/{service_request.quote_token}"
    return SmsMessage(
        to=service_request.phone,
        body=(
            f"{settings.business_name}: Your quote for {service_request.service_type} service is "
            f"{format_currency(service_request.quoted_amount)}.{expiry}\n\n"
            f"To accept this quote, please click: {link}\n\n"
            f"If you have questions, please call us at {settings.business_phone}."
        ),
        template_key="quote_sent",
        user_id=service_request.user_id,
        payload={"service_request_id": service_request.id},
    )


def quote_accepted(service_request: ServiceRequest) -> SmsMessage:
    return SmsMessage(
        to=service_request.phone,
        body=(
            f"Thank you for accepting our quote for {service_request.service_type} service. "
            "We'll be in touch shortly to schedule your appointment."
        ),
        template_key="quote_accepted",
        user_id=service_request.user_id,
        payload={"service_request_id": service_request.id},
    )


def service_completed(service_request: ServiceRequest) -> SmsMessage:
    return SmsMessage(
        to=service_request.phone,
        body=(
            f"Thank you for choosing {settings.business_name}! Your {service_request.service_type} "
            "service has been completed. We appreciate your business."
        ),
        template_key="service_completed",
        user_id=service_request.user_id,
        payload={"service_request_id": service_request.id},
    )


