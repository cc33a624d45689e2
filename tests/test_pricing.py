from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from fieldhub.services.pricing import (
    calculate_estimated_price,
    calculate_priority,
    is_commercial_property,
    sort_leads,
)


@pytest.mark.parametrize("service_type,urgency,property_type,expected", [
    ("electrical", "emergency", "commercial-office", 315.00),
    ("electrical", "standard", "residential", 150.00),
    ("plumbing", "urgent", "residential", 162.50),
    ("plumbing", "flexible", "industrial", 182.00),
    ("both", "emergency", "industrial", 525.00),
    ("both", "urgent", "commercial", 437.50),
])
def test_estimated_price(service_type, urgency, property_type, expected):
    assert calculate_estimated_price(service_type, urgency, property_type) == pytest.approx(expected)


def test_commercial_is_prefix_match_and_industrial_is_exact():
    assert is_commercial_property("commercial")
    assert is_commercial_property("commercial-retail")
    assert is_commercial_property("industrial")
    assert not is_commercial_property("industrial-park")
    assert not is_commercial_property("residential-commercial")


def test_priority_formula():
    assert calculate_priority("emergency", 315.00) == 131
    assert calculate_priority("flexible", 9.99) == 0
    assert calculate_priority("urgent", 200) == 70
    assert calculate_priority("standard", 1000) == 125


def test_higher_value_standard_job_outranks_cheap_urgent_job():
    now = datetime(2026, 1, 1, 9, 0)
    urgent = SimpleNamespace(id=1, priority=calculate_priority("urgent", 200), created_at=now)
    standard = SimpleNamespace(id=2, priority=calculate_priority("standard", 1000), created_at=now)

    assert [l.id for l in sort_leads([urgent, standard])] == [2, 1]


def test_equal_priority_is_first_in_first_out():
    now = datetime(2026, 1, 1, 9, 0)
    later = SimpleNamespace(id=1, priority=40, created_at=now + timedelta(minutes=5))
    earlier = SimpleNamespace(id=2, priority=40, created_at=now)
    top = SimpleNamespace(id=3, priority=90, created_at=now + timedelta(hours=1))

    assert [l.id for l in sort_leads([later, earlier, top])] == [3, 2, 1]


def test_identical_timestamps_fall_back_to_id():
    now = datetime(2026, 1, 1, 9, 0)
    leads = [SimpleNamespace(id=i, priority=40, created_at=now) for i in (7, 3, 5)]

    assert [l.id for l in sort_leads(leads)] == [3, 5, 7]
