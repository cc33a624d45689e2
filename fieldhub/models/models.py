import datetime as dt
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    JSON,
    Text,
    Index,
    text,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="client", index=True)  # client|owner|admin|technician
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)


class ServiceRequest(Base):
    """Customer-submitted unit of work; root of leads, appointments and transactions"""
    __tablename__ = "service_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    service_type: Mapped[str] = mapped_column(String(20), nullable=False)  # electrical|plumbing|both
    issue_type: Mapped[str] = mapped_column(String(255), nullable=False)
    urgency: Mapped[str] = mapped_column(String(20), nullable=False)  # emergency|urgent|standard|flexible
    property_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    previous_issue: Mapped[bool] = mapped_column(Boolean, default=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    preferred_date: Mapped[Optional[str]] = mapped_column(String(50))
    preferred_time: Mapped[Optional[str]] = mapped_column(String(20))  # morning|afternoon|evening|anytime
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="new", index=True)
    technician_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    technician_name: Mapped[Optional[str]] = mapped_column(String(255))
    cost: Mapped[Optional[float]] = mapped_column(Numeric(10, 2))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    quoted_amount: Mapped[Optional[float]] = mapped_column(Numeric(10, 2))
    quote_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    quote_expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    quote_notes: Mapped[Optional[str]] = mapped_column(Text)
    quote_token: Mapped[Optional[str]] = mapped_column(String(128), unique=True, index=True)
    quote_accepted: Mapped[bool] = mapped_column(Boolean, default=False)
    quote_accepted_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completion_notes: Mapped[Optional[str]] = mapped_column(Text)
    material_used: Mapped[Optional[str]] = mapped_column(Text)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    lead = relationship("Lead", back_populates="service_request", uselist=False)


class Lead(Base):
    """Staff-facing queue entry derived 1:1 from a service request at intake"""
    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_request_id: Mapped[int] = mapped_column(Integer, ForeignKey("service_requests.id"), nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    service_type: Mapped[str] = mapped_column(String(20), nullable=False)
    issue_type: Mapped[str] = mapped_column(String(255), nullable=False)
    urgency: Mapped[str] = mapped_column(String(20), nullable=False)
    property_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    preferred_date: Mapped[Optional[str]] = mapped_column(String(50))
    preferred_time: Mapped[Optional[str]] = mapped_column(String(20))
    estimated_price: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="new")  # new|pending|assigned
    priority: Mapped[int] = mapped_column(Integer, default=0)  # higher = served first
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    service_request = relationship("ServiceRequest", back_populates="lead")

    __table_args__ = (
        Index("idx_leads_priority_created", "priority", "created_at"),
    )


class Appointment(Base):
    """Scheduled visit tied to exactly one service request"""
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_request_id: Mapped[int] = mapped_column(Integer, ForeignKey("service_requests.id"), nullable=False, index=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)  # customer
    technician_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    technician_name: Mapped[Optional[str]] = mapped_column(String(255))
    technician_phone: Mapped[Optional[str]] = mapped_column(String(50))
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    time_slot: Mapped[str] = mapped_column(String(20), nullable=False)  # morning|afternoon|evening|anytime
    start_time: Mapped[Optional[str]] = mapped_column(String(5))  # "HH:MM"
    end_time: Mapped[Optional[str]] = mapped_column(String(5))
    duration: Mapped[Optional[int]] = mapped_column(Integer)  # minutes
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")  # scheduled|rescheduled|completed|cancelled
    service_type: Mapped[str] = mapped_column(String(20), nullable=False)
    issue_type: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)  # append-only event log, one line per event
    reminder_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    reminder_scheduled: Mapped[Optional[datetime]] = mapped_column(DateTime)  # naive UTC
    previous_appointment_id: Mapped[Optional[int]] = mapped_column(Integer)  # reschedule mutates in place; never populated
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    service_request = relationship("ServiceRequest")

    # One active booking per technician/day/slot
    __table_args__ = (
        Index(
            "uq_appointments_technician_slot",
            "technician_id",
            "scheduled_date",
            "time_slot",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
        Index("idx_appointments_reminders", "status", "reminder_sent", "reminder_scheduled"),
    )


class Transaction(Base):
    """Accounting ledger entry"""
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(10), nullable=False)  # income|expense
    service_request_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("service_requests.id"))
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)  # electrical-service|plumbing-service|both-service|materials|...
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class Notification(Base):
    """Delivery log for outbound SMS"""
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    to_phone: Mapped[Optional[str]] = mapped_column(String(50))
    channel: Mapped[str] = mapped_column(String(20), nullable=False, default="sms")
    template_key: Mapped[Optional[str]] = mapped_column(String(100))
    body: Mapped[str] = mapped_column(Text, nullable=False)
    payload_json: Mapped[Optional[dict]] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # sent|simulated|failed|skipped
    provider_sid: Mapped[Optional[str]] = mapped_column(String(64))
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index("idx_notifications_template_created", "template_key", "created_at"),
    )
