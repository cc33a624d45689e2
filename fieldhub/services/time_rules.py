"""
Date/time helpers for scheduling.
Handles business-local "today", reminder times, period windows and display formats.
"""
import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
import pytz

from ..config import settings


TIME_SLOT_HOURS = {
    "morning": "8:00 AM - 12:00 PM",
    "afternoon": "1:00 PM - 5:00 PM",
    "evening": "5:00 PM - 8:00 PM",
}


def utcnow() -> datetime:
    """Naive UTC now, matching how timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_today(timezone_str: Optional[str] = None) -> date:
    tz = pytz.timezone(timezone_str or settings.tz_default)
    return datetime.now(tz).date()


def is_future_date(value: date, timezone_str: Optional[str] = None) -> bool:
    """Strictly after today in the business timezone."""
    return value > local_today(timezone_str)


def parse_iso_date(value) -> date:
    """
    Accept a date, a datetime, "YYYY-MM-DD" or a full ISO timestamp.
    Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Invalid date format")
    return datetime.fromisoformat(value.strip().split("T")[0]).date()


def reminder_time_for(
    scheduled_date: date, lead_days: Optional[int] = None, timezone_str: Optional[str] = None
) -> datetime:
    """Business-local midnight `lead_days` before the visit, as naive UTC for the sweep."""
    if lead_days is None:
        lead_days = settings.reminder_lead_days
    tz = pytz.timezone(timezone_str or settings.tz_default)
    local_midnight = tz.localize(datetime.combine(scheduled_date - timedelta(days=lead_days), time.min))
    return local_midnight.astimezone(pytz.utc).replace(tzinfo=None)


def shift_months(dt: datetime, months: int) -> datetime:
    """Calendar month offset; the day is clamped to the target month's length."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def period_window(period: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Start/end of a reporting period ending now. Unknown periods fall back to a month."""
    end = now or utcnow()
    if period == "week":
        start = end - timedelta(days=7)
    elif period == "quarter":
        start = shift_months(end, -3)
    elif period == "year":
        start = shift_months(end, -12)
    else:
        start = shift_months(end, -1)
    return start, end


def format_date(value) -> str:
    """US short date, e.g. 6/1/2025."""
    if isinstance(value, datetime):
        value = value.date()
    return f"{value.month}/{value.day}/{value.year}"


def format_timestamp(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{format_date(value)}, {hour}:{value.minute:02d}:{value.second:02d} {suffix}"


def slot_label(time_slot: Optional[str]) -> str:
    if not time_slot:
        return "(time TBD)"
    return TIME_SLOT_HOURS.get(time_slot, time_slot)
