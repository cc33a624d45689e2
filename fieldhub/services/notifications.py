"""
SMS delivery.
Best-effort and fire-and-forget: a failed send is logged and recorded, never raised.
"""
from typing import Callable, Iterable, List, Optional

import structlog
from sqlalchemy.orm import Session
from twilio.rest import Client

from ..config import settings
from ..db import SessionLocal
from ..models.models import Notification
from .sms_templates import SmsMessage
from .time_rules import utcnow


logger = structlog.get_logger(__name__)

SMS_SIMULATED = "SMS_SIMULATED"
SMS_FAILED = "SMS_FAILED"


class SmsSender:
    """Thin wrapper over the Twilio REST client; simulates when unconfigured."""

    def __init__(self, client: Optional[Client] = None, from_number: Optional[str] = None):
        self.client = client
        self.from_number = from_number

    @classmethod
    def from_settings(cls) -> "SmsSender":
        if settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_phone_number:
            client = Client(settings.twilio_account_sid, settings.twilio_auth_token)
            return cls(client, settings.twilio_phone_number)
        return cls()

    @property
    def configured(self) -> bool:
        return self.client is not None and bool(self.from_number)

    def send(self, to: str, body: str) -> str:
        """
        Send one SMS.

        Returns:
            Provider message SID, SMS_SIMULATED, or SMS_FAILED
        """
        if not self.configured:
            logger.info("sms_simulated", to=to, body=body)
            return SMS_SIMULATED
        try:
            message = self.client.messages.create(body=body, from_=self.from_number, to=to)
            return message.sid
        except Exception as e:
            logger.error("sms_failed", to=to, error=str(e))
            return SMS_FAILED


def _status_for(result: str) -> str:
    if result == SMS_SIMULATED:
        return "simulated"
    if result == SMS_FAILED:
        return "failed"
    return "sent"


class Notifier:
    """
    Sends the messages a domain operation asked for and records each attempt.
    Runs after the response, with its own database session.
    """

    def __init__(self, sender: SmsSender, session_factory: Callable[[], Session] = SessionLocal):
        self.sender = sender
        self.session_factory = session_factory

    def deliver(self, messages: Iterable[SmsMessage]) -> List[Notification]:
        records: List[Notification] = []
        db = self.session_factory()
        try:
            for message in messages:
                records.append(self._deliver_one(db, message))
        finally:
            db.close()
        return records

    def _deliver_one(self, db: Session, message: SmsMessage) -> Notification:
        record = Notification(
            user_id=message.user_id,
            to_phone=message.to,
            channel="sms",
            template_key=message.template_key,
            body=message.body,
            payload_json=message.payload or None,
        )
        if not message.to:
            record.status = "skipped"
            record.error_message = "No phone number on file"
            logger.warning("sms_skipped", template_key=message.template_key, user_id=message.user_id)
        else:
            try:
                result = self.sender.send(message.to, message.body)
            except Exception as e:
                result = SMS_FAILED
                record.error_message = str(e)
                logger.error("sms_failed", template_key=message.template_key, error=str(e))
            record.status = _status_for(result)
            if record.status == "sent":
                record.provider_sid = result
            if record.status != "failed":
                record.sent_at = utcnow()
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
        except Exception as e:
            db.rollback()
            logger.error("sms_log_failed", template_key=message.template_key, error=str(e))
        return record


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        _notifier = Notifier(SmsSender.from_settings())
    return _notifier
