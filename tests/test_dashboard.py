from datetime import timedelta

from fieldhub.models.models import Appointment, Lead, Transaction
from fieldhub.services.reporting import describe_day
from fieldhub.services.time_rules import local_today, utcnow

from conftest import auth_headers, days_ahead


def add_lead(db_session, service_request, status="new", priority=40):
    lead = Lead(
        service_request_id=service_request.id, customer_name=service_request.name,
        customer_phone=service_request.phone, customer_email=service_request.email,
        service_type=service_request.service_type, issue_type=service_request.issue_type,
        urgency="standard", property_type="residential", address=service_request.address,
        estimated_price=150, status=status, priority=priority,
    )
    db_session.add(lead)
    db_session.commit()
    return lead


def add_transaction(db_session, type, amount, category, days_ago=0):
    transaction = Transaction(
        type=type, description=f"{category} entry", amount=amount, category=category,
        date=utcnow().date() - timedelta(days=days_ago),
    )
    db_session.add(transaction)
    db_session.commit()
    return transaction


def test_stats_for_the_month(client, db_session, admin, make_service_request):
    done = make_service_request(status="completed")
    active = make_service_request(status="in_progress")
    make_service_request(status="assigned")
    add_lead(db_session, done, status="assigned")
    add_lead(db_session, active, status="new")
    add_lead(db_session, active, status="pending")
    add_lead(db_session, active, status="assigned")
    add_transaction(db_session, "income", 500, "plumbing-service")
    add_transaction(db_session, "income", 250.25, "electrical-service")
    add_transaction(db_session, "expense", 120.5, "Supplies")
    add_transaction(db_session, "income", 9999, "plumbing-service", days_ago=60)

    res = client.get("/api/stats", headers=auth_headers(admin))

    assert res.status_code == 200
    assert res.json() == {
        "newLeads": 4,
        "pendingLeads": 2,
        "pendingJobs": 2,
        "completedJobs": 1,
        "revenue": 750.25,
        "expenses": 120.5,
        "profit": 629.75,
        "conversionRate": 25,
        "nextJob": "No upcoming jobs",
    }


def test_year_period_includes_older_transactions(client, db_session, admin):
    add_transaction(db_session, "income", 100, "plumbing-service")
    add_transaction(db_session, "income", 400, "plumbing-service", days_ago=60)

    month = client.get("/api/stats", headers=auth_headers(admin)).json()
    year = client.get("/api/stats?period=year", headers=auth_headers(admin)).json()

    assert month["revenue"] == 100
    assert year["revenue"] == 500
    assert client.get("/api/stats?period=decade", headers=auth_headers(admin)).status_code == 400


def test_next_job_describes_the_earliest_upcoming_visit(client, db_session, admin, make_service_request):
    service_request = make_service_request()
    for days, status in ((3, "scheduled"), (1, "scheduled"), (0, "cancelled")):
        db_session.add(Appointment(
            service_request_id=service_request.id, scheduled_date=local_today() + timedelta(days=days),
            time_slot="morning", status=status, service_type="plumbing", issue_type="Leaky faucet",
        ))
    db_session.commit()

    res = client.get("/api/stats", headers=auth_headers(admin))

    assert res.json()["nextJob"] == "Tomorrow, 8:00 AM - 12:00 PM - plumbing Leaky faucet"


def test_describe_day():
    today = local_today()
    assert describe_day(today, today) == "Today"
    assert describe_day(today + timedelta(days=1), today) == "Tomorrow"
    later = today + timedelta(days=5)
    assert describe_day(later, today) == f"{later:%a} {later:%b} {later.day}"


def test_financials_breakdown(client, db_session, admin):
    add_transaction(db_session, "income", 300, "electrical-service")
    add_transaction(db_session, "income", 200, "plumbing")
    add_transaction(db_session, "income", 700, "both-service")
    add_transaction(db_session, "income", 50, "tip")
    add_transaction(db_session, "expense", 80, "Fuel")
    add_transaction(db_session, "expense", 20, "Fuel")
    add_transaction(db_session, "expense", 45, "Supplies")

    res = client.get("/api/financials", headers=auth_headers(admin))

    assert res.status_code == 200
    body = res.json()
    assert body["totalRevenue"] == 1250
    assert body["totalExpenses"] == 145
    assert body["netProfit"] == 1105
    assert body["revenueBreakdown"] == {"electrical": 300, "plumbing": 200, "combined": 700}
    assert body["expensesByCategory"] == {"Fuel": 100, "Supplies": 45}
    assert len(body["recentTransactions"]) == 7


def test_dashboard_bundles_stats_leads_and_financials(client, db_session, admin, make_service_request):
    service_request = make_service_request()
    add_lead(db_session, service_request, priority=10)
    add_lead(db_session, service_request, priority=90)

    res = client.get("/api/dashboard?period=week", headers=auth_headers(admin))

    assert res.status_code == 200
    body = res.json()
    assert set(body) == {"stats", "leads", "financials"}
    assert [lead["priority"] for lead in body["leads"]] == [90, 10]
    assert body["stats"]["newLeads"] == 2


def test_reports_are_staff_only(client, customer, technician):
    for path in ("/api/dashboard", "/api/stats", "/api/financials", "/api/transactions"):
        assert client.get(path, headers=auth_headers(customer)).status_code == 403
        assert client.get(path, headers=auth_headers(technician)).status_code == 403
    assert client.get("/api/stats").status_code == 401


def test_record_and_list_transactions(client, admin, make_service_request):
    service_request = make_service_request()
    headers = auth_headers(admin)

    created = client.post("/api/transactions", headers=headers, json={
        "type": "expense",
        "description": "Copper fittings",
        "amount": 42.1,
        "date": days_ahead(-2),
        "category": "Supplies",
        "serviceRequestId": service_request.id,
    })
    client.post("/api/transactions", headers=headers, json={
        "type": "income", "description": "Deposit", "amount": 100, "date": days_ahead(-10), "category": "deposit",
    })

    assert created.status_code == 201
    assert created.json()["serviceRequestId"] == service_request.id
    assert created.json()["amount"] == 42.1

    everything = client.get("/api/transactions", headers=headers).json()
    assert [t["description"] for t in everything] == ["Copper fittings", "Deposit"]

    recent = client.get(f"/api/transactions?startDate={days_ahead(-5)}", headers=headers).json()
    assert [t["description"] for t in recent] == ["Copper fittings"]

    bad_range = client.get(
        f"/api/transactions?startDate={days_ahead(0)}&endDate={days_ahead(-1)}", headers=headers
    )
    assert bad_range.status_code == 400
    assert client.get("/api/transactions?startDate=soon", headers=headers).status_code == 400


def test_transaction_validation(client, admin):
    headers = auth_headers(admin)

    res = client.post("/api/transactions", headers=headers, json={
        "type": "refund", "description": "", "amount": -5, "date": "2025-06-01", "category": "x",
    })
    assert res.status_code == 400
    paths = {tuple(e["path"]) for e in res.json()["errors"]}
    assert {("type",), ("description",), ("amount",)} <= paths

    missing_sr = client.post("/api/transactions", headers=headers, json={
        "type": "income", "description": "x", "amount": 5, "date": "2025-06-01", "category": "x",
        "serviceRequestId": 999,
    })
    assert missing_sr.status_code == 400


def test_workload_counts_each_status(client, db_session, admin, technician, make_user, make_service_request):
    idle = make_user("technician", name="Idle Tech")
    service_request = make_service_request()
    for days, status in ((1, "scheduled"), (2, "scheduled"), (3, "completed"), (4, "cancelled")):
        db_session.add(Appointment(
            service_request_id=service_request.id, technician_id=technician.id,
            scheduled_date=local_today() + timedelta(days=days), time_slot="morning", status=status,
            service_type="plumbing", issue_type="Leaky faucet",
        ))
    db_session.commit()

    res = client.get("/api/technicians/workload", headers=auth_headers(admin))

    assert res.status_code == 200
    rows = {row["technicianId"]: row for row in res.json()}
    assert rows[technician.id] == {
        "technicianId": technician.id, "technicianName": "Tom Technician",
        "scheduled": 2, "rescheduled": 0, "completed": 1, "cancelled": 1, "total": 4,
    }
    assert rows[idle.id]["total"] == 0


def test_technician_schedule_grouped_by_day(client, db_session, admin, technician, make_user, make_service_request):
    service_request = make_service_request()
    for days, slot in ((2, "afternoon"), (1, "morning"), (2, "morning")):
        db_session.add(Appointment(
            service_request_id=service_request.id, technician_id=technician.id,
            scheduled_date=local_today() + timedelta(days=days), time_slot=slot, status="scheduled",
            service_type="plumbing", issue_type="Leaky faucet",
        ))
    db_session.commit()

    own = client.get(f"/api/technicians/{technician.id}/schedule", headers=auth_headers(technician))

    assert own.status_code == 200
    body = own.json()
    assert list(body) == [days_ahead(1), days_ahead(2)]
    assert [a["timeSlot"] for a in body[days_ahead(2)]] == ["afternoon", "morning"]

    other = make_user("technician")
    assert client.get(f"/api/technicians/{technician.id}/schedule", headers=auth_headers(other)).status_code == 403
    assert client.get(f"/api/technicians/{technician.id}", headers=auth_headers(admin)).json()["name"] == "Tom Technician"
    assert client.get("/api/technicians/999", headers=auth_headers(admin)).status_code == 404
