"""
Pytest configuration and fixtures.

Provides:
- An in-memory SQLite database shared by the app and the test (StaticPool)
- A fake SMS sender that records every message instead of calling Twilio
- User/token factories for each role

Usage:
    pytest tests/ -v
"""

import os

# Settings are read at import time; keep tests off the dev database, metrics and rate limits
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["ENABLE_METRICS"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["CLIENT_URL"] = "https://hub.example.test"
for _key in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"):
    os.environ.pop(_key, None)

from datetime import timedelta
from typing import Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fieldhub.auth.security import create_access_token, get_password_hash
from fieldhub.db import Base, get_db
from fieldhub.main import app
from fieldhub.models.models import ServiceRequest, User
from fieldhub.services.notifications import Notifier, SmsSender, get_notifier
from fieldhub.services.time_rules import local_today


# ============================================================================
# Database Fixtures
# ============================================================================

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# ============================================================================
# SMS Fixtures
# ============================================================================

class FakeSender(SmsSender):
    """Records sends; set fail_for to make specific numbers raise."""

    def __init__(self):
        super().__init__()
        self.sent: List[Tuple[str, str]] = []
        self.fail_for = set()

    def send(self, to: str, body: str) -> str:
        if to in self.fail_for:
            raise RuntimeError("provider unavailable")
        self.sent.append((to, body))
        return f"SM{len(self.sent):04d}"

    def to(self, phone: str) -> List[str]:
        return [body for number, body in self.sent if number == phone]


@pytest.fixture
def sms() -> FakeSender:
    return FakeSender()


@pytest.fixture
def notifier(sms) -> Notifier:
    return Notifier(sms, session_factory=TestingSessionLocal)


# ============================================================================
# App Fixtures
# ============================================================================

@pytest.fixture
def client(db_session, notifier):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ============================================================================
# Data Factories
# ============================================================================

_PHONES = iter(f"+1337555{n:04d}" for n in range(1, 10000))


@pytest.fixture
def make_user(db_session):
    def _make(role: str = "client", username: str = None, name: str = None, phone: str = None) -> User:
        phone = phone or next(_PHONES)
        username = username or f"{role}-{phone[-4:]}"
        user = User(
            username=username,
            password_hash=get_password_hash("secret123"),
            name=name or f"{role.title()} {phone[-4:]}",
            email=f"{username}@example.com",
            phone=phone,
            role=role,
            is_active=True,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture
def admin(make_user) -> User:
    return make_user("admin", username="admin", name="Admin User")


@pytest.fixture
def technician(make_user) -> User:
    return make_user("technician", username="tech", name="Tom Technician")


@pytest.fixture
def customer(make_user) -> User:
    return make_user("client", username="carol", name="Carol Customer")


@pytest.fixture
def make_service_request(db_session):
    def _make(user: User = None, **overrides) -> ServiceRequest:
        fields = dict(
            user_id=user.id if user else None,
            service_type="plumbing",
            issue_type="Leaky faucet",
            urgency="standard",
            property_type="residential",
            name=user.name if user else "Walk In",
            phone=user.phone if user else "+13375559999",
            email=user.email if user else "walkin@example.com",
            address="12 Bayou Rd, Lafayette, LA",
            status="new",
        )
        fields.update(overrides)
        service_request = ServiceRequest(**fields)
        db_session.add(service_request)
        db_session.commit()
        db_session.refresh(service_request)
        return service_request

    return _make


def days_ahead(days: int) -> str:
    """ISO date relative to the business-local today."""
    return (local_today() + timedelta(days=days)).isoformat()
