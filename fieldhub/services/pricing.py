"""
Lead pricing and queue priority.
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List

from ..models.models import Lead


BASE_PRICES = {
    "electrical": 150,
    "plumbing": 130,
    "both": 250,
}

URGENCY_MULTIPLIERS = {
    "emergency": 1.5,
    "urgent": 1.25,
}

URGENCY_POINTS = {
    "emergency": 100,
    "urgent": 50,
    "standard": 25,
    "flexible": 0,
}

COMMERCIAL_MULTIPLIER = 1.4


def is_commercial_property(property_type: str) -> bool:
    return property_type.startswith("commercial") or property_type == "industrial"


def calculate_estimated_price(service_type: str, urgency: str, property_type: str) -> float:
    """
    Ballpark price shown to staff on the lead.

    electrical 150 / plumbing 130 / both 250, then x1.5 for emergencies or
    x1.25 for urgent jobs, then x1.4 for commercial or industrial property.
    """
    price = float(BASE_PRICES.get(service_type, 0))
    price *= URGENCY_MULTIPLIERS.get(urgency, 1)
    if is_commercial_property(property_type or ""):
        price *= COMMERCIAL_MULTIPLIER
    return float(Decimal(str(price)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def calculate_priority(urgency: str, estimated_price: float) -> int:
    """Urgency points plus one point per $10 of estimated value."""
    return URGENCY_POINTS.get(urgency, 0) + math.floor(float(estimated_price) / 10)


def lead_queue_key(lead: Lead):
    # Highest priority first, FIFO within a tier
    return (-(lead.priority or 0), lead.created_at, lead.id)


def sort_leads(leads: Iterable[Lead]) -> List[Lead]:
    return sorted(leads, key=lead_queue_key)
