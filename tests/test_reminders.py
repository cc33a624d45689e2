from datetime import datetime, time, timedelta

from fieldhub.models.models import Appointment
from fieldhub.services.appointments import process_reminders
from fieldhub.services.time_rules import local_today, reminder_time_for

from conftest import auth_headers


def add_appointment(db_session, service_request, days=1, **overrides):
    scheduled_date = local_today() + timedelta(days=days)
    fields = dict(
        service_request_id=service_request.id,
        user_id=service_request.user_id,
        scheduled_date=scheduled_date,
        time_slot="morning",
        status="scheduled",
        service_type=service_request.service_type,
        issue_type=service_request.issue_type,
        reminder_sent=False,
        reminder_scheduled=reminder_time_for(scheduled_date),
    )
    fields.update(overrides)
    appointment = Appointment(**fields)
    db_session.add(appointment)
    db_session.commit()
    db_session.refresh(appointment)
    return appointment


def sweep_time(days=1):
    # Any moment on the reminder day
    return datetime.combine(local_today() + timedelta(days=days - 1), time(9, 0))


def test_sweep_sends_due_reminders_once(db_session, customer, make_service_request):
    service_request = make_service_request(customer)
    due = add_appointment(db_session, service_request, days=1)
    not_yet = add_appointment(db_session, service_request, days=5)

    summary, messages = process_reminders(db_session, now=sweep_time())

    assert summary == {"processed": 1, "results": [{"appointment_id": due.id, "success": True}]}
    assert [m.to for m in messages] == [customer.phone]
    assert "Reminder" in messages[0].body
    db_session.expire_all()
    assert db_session.get(Appointment, due.id).reminder_sent is True
    assert "Reminder sent on" in db_session.get(Appointment, due.id).notes
    assert db_session.get(Appointment, not_yet.id).reminder_sent is False

    summary, messages = process_reminders(db_session, now=sweep_time())
    assert summary == {"processed": 0, "results": []}
    assert messages == []


def test_sweep_skips_cancelled_completed_and_rescheduled(db_session, make_service_request):
    service_request = make_service_request()
    add_appointment(db_session, service_request, status="cancelled", reminder_sent=True)
    add_appointment(db_session, service_request, status="completed")
    add_appointment(db_session, service_request, status="rescheduled")

    summary, messages = process_reminders(db_session, now=sweep_time())

    assert summary["processed"] == 0
    assert messages == []


def test_reminder_names_technician(db_session, technician, make_service_request):
    service_request = make_service_request()
    add_appointment(
        db_session, service_request,
        technician_id=technician.id, technician_name=technician.name, technician_phone=technician.phone,
    )

    _summary, messages = process_reminders(db_session, now=sweep_time())

    assert "Tom Technician" in messages[0].body


def test_missing_service_request_does_not_stop_sweep(db_session, make_service_request):
    service_request = make_service_request()
    orphan = add_appointment(db_session, service_request, service_request_id=9999)
    healthy = add_appointment(db_session, service_request, time_slot="afternoon")

    summary, messages = process_reminders(db_session, now=sweep_time())

    assert summary["processed"] == 2
    results = {r["appointment_id"]: r for r in summary["results"]}
    assert results[orphan.id] == {"appointment_id": orphan.id, "success": False, "error": "Service request not found"}
    assert results[healthy.id]["success"] is True
    assert len(messages) == 1
    db_session.expire_all()
    assert db_session.get(Appointment, orphan.id).reminder_sent is False


def test_process_reminders_endpoint(client, db_session, sms, admin, customer, make_service_request):
    service_request = make_service_request(customer)
    appointment = add_appointment(db_session, service_request, days=1)
    headers = auth_headers(admin)

    first = client.post("/api/appointments/process-reminders", headers=headers)
    assert first.status_code == 200
    assert first.json() == {
        "processed": 1,
        "results": [{"appointmentId": appointment.id, "success": True, "error": None}],
    }
    assert len(sms.sent) == 1

    second = client.post("/api/appointments/process-reminders", headers=headers)
    assert second.json() == {"processed": 0, "results": []}
    assert len(sms.sent) == 1


def test_cancelled_appointment_never_reminded(client, db_session, sms, admin, customer, make_service_request):
    service_request = make_service_request(customer)
    appointment = add_appointment(db_session, service_request, days=1)
    client.post(f"/api/appointments/{appointment.id}/cancel", headers=auth_headers(customer))
    sms.sent.clear()

    res = client.post("/api/appointments/process-reminders", headers=auth_headers(admin))

    assert res.json()["processed"] == 0
    assert sms.sent == []


def test_process_reminders_is_staff_only(client, customer, technician):
    assert client.post("/api/appointments/process-reminders", headers=auth_headers(customer)).status_code == 403
    assert client.post("/api/appointments/process-reminders", headers=auth_headers(technician)).status_code == 403
