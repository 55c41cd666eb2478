from dental_clinic.core.settings import settings

TOMORROW = "2026-03-11"


def book(client, headers, start, duration=30, dentist_id="dr-jones", **extra):
    payload = {
        "patient_id": extra.pop("patient_id", "pat-1"),
        "dentist_id": dentist_id,
        "appointment_date": extra.pop("appointment_date", TOMORROW),
        "start_time": start,
        "duration_minutes": duration,
        "appointment_type": extra.pop("appointment_type", "Checkup"),
    }
    payload.update(extra)
    return client.post("/appointments", json=payload, headers=headers)


def test_clinic_header_is_required(api_client):
    res = api_client.get("/appointments")
    assert res.status_code == 400
    assert res.json()["detail"] == "Missing X-Clinic-Id header"


def test_health(api_client):
    res = api_client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_appointment_types(api_client, clinic_headers):
    res = api_client.get("/appointments/types", headers=clinic_headers)
    assert res.status_code == 200
    assert res.json() == [
        "Checkup",
        "Cleaning",
        "Filling",
        "Root Canal",
        "Extraction",
        "Crown",
        "Other",
    ]


def test_book_and_fetch_appointment(api_client, clinic_headers):
    res = book(api_client, clinic_headers, "10:00", duration=45, appointment_type="Root Canal")
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["status"] == "scheduled"
    assert body["start_time"] == "10:00:00"
    assert body["end_time"] == "10:45:00"
    assert body["appointment_type"] == "Root Canal"

    fetched = api_client.get(f"/appointments/{body['id']}", headers=clinic_headers)
    assert fetched.status_code == 200
    assert fetched.json()["id"] == body["id"]

    audit = api_client.get("/audit", params={"entity_type": "appointment"}, headers=clinic_headers)
    assert audit.status_code == 200
    entries = audit.json()
    assert entries[0]["action"] == "appointment.created"
    assert entries[0]["actor"] == "reception@clinic-a.test"


def test_overlapping_booking_is_rejected(api_client, clinic_headers):
    assert book(api_client, clinic_headers, "10:00", duration=60).status_code == 201
    res = book(api_client, clinic_headers, "10:30", dentist_id="dr-smith")
    assert res.status_code == 409
    body = res.json()
    assert body["code"] == "time_conflict"
    assert body["retryable"] is True


def test_wrapping_booking_is_rejected(api_client, clinic_headers):
    assert book(api_client, clinic_headers, "10:00", duration=30).status_code == 201
    res = book(api_client, clinic_headers, "09:30", duration=90)
    assert res.status_code == 409


def test_adjacent_booking_is_allowed(api_client, clinic_headers):
    assert book(api_client, clinic_headers, "10:00").status_code == 201
    assert book(api_client, clinic_headers, "10:30").status_code == 201


def test_per_dentist_conflicts(api_client, clinic_headers, monkeypatch):
    monkeypatch.setattr(settings, "conflicts_per_dentist", True)
    assert book(api_client, clinic_headers, "10:00").status_code == 201
    assert book(api_client, clinic_headers, "10:00", dentist_id="dr-smith").status_code == 201
    assert book(api_client, clinic_headers, "10:00").status_code == 409


def test_past_booking_is_rejected(api_client, clinic_headers):
    res = book(api_client, clinic_headers, "09:00", appointment_date="2026-03-10")
    assert res.status_code == 409
    assert res.json()["code"] == "past_scheduling"
    res = book(api_client, clinic_headers, "09:30", appointment_date="2026-03-10")
    assert res.status_code == 201, res.text


def test_booking_past_midnight_is_invalid(api_client, clinic_headers):
    res = book(api_client, clinic_headers, "23:30", duration=60)
    assert res.status_code == 422
    assert res.json()["code"] == "validation_error"
    assert book(api_client, clinic_headers, "23:30", duration=30).status_code == 201


def test_start_time_must_be_a_whole_minute(api_client, clinic_headers):
    assert book(api_client, clinic_headers, "10:00:30").status_code == 422
    assert book(api_client, clinic_headers, "10:00:00.5").status_code == 422
    assert book(api_client, clinic_headers, "10:00:00").status_code == 201


def test_cancelled_slot_can_be_rebooked(api_client, clinic_headers):
    first = book(api_client, clinic_headers, "10:00").json()
    res = api_client.post(
        f"/appointments/{first['id']}/status",
        json={"status": "cancelled", "cancel_reason": "Patient unwell"},
        headers=clinic_headers,
    )
    assert res.status_code == 200, res.text
    assert res.json()["cancelled_at"] is not None
    assert book(api_client, clinic_headers, "10:00").status_code == 201


def test_terminal_status_cannot_change(api_client, clinic_headers):
    appt = book(api_client, clinic_headers, "10:00").json()
    url = f"/appointments/{appt['id']}/status"
    assert api_client.post(url, json={"status": "completed"}, headers=clinic_headers).status_code == 200
    res = api_client.post(url, json={"status": "cancelled"}, headers=clinic_headers)
    assert res.status_code == 409
    assert res.json()["code"] == "invalid_transition"


def test_slots_for_tomorrow(api_client, clinic_headers):
    book(api_client, clinic_headers, "00:30", duration=60)
    res = api_client.get(
        "/appointments/slots",
        params={"date": TOMORROW, "duration_minutes": 30},
        headers=clinic_headers,
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["bookable"] is True
    assert body["has_more"] is True
    assert len(body["slots"]) == 16
    assert body["slots"][:2] == ["00:00:00", "01:30:00"]


def test_slots_for_today_start_after_now(api_client, clinic_headers):
    res = api_client.get(
        "/appointments/slots",
        params={"date": "2026-03-10", "limit": 100},
        headers=clinic_headers,
    )
    body = res.json()
    assert body["slots"][0] == "09:30:00"
    assert body["slots"][-1] == "23:30:00"
    assert body["has_more"] is False


def test_slots_for_past_day_are_empty(api_client, clinic_headers):
    res = api_client.get("/appointments/slots", params={"date": "2026-03-09"}, headers=clinic_headers)
    assert res.status_code == 200
    assert res.json()["slots"] == []
    assert res.json()["bookable"] is False


def test_clinics_are_isolated(api_client, clinic_headers):
    appt = book(api_client, clinic_headers, "10:00").json()
    other = {"X-Clinic-Id": "clinic-b"}
    assert api_client.get(f"/appointments/{appt['id']}", headers=other).status_code == 404
    assert book(api_client, other, "10:00").status_code == 201
    listed = api_client.get("/appointments", params={"date": TOMORROW}, headers=other).json()
    assert len(listed) == 1


def test_list_filters_by_status(api_client, clinic_headers):
    first = book(api_client, clinic_headers, "10:00").json()
    book(api_client, clinic_headers, "11:00")
    api_client.post(
        f"/appointments/{first['id']}/status", json={"status": "confirmed"}, headers=clinic_headers
    )
    res = api_client.get("/appointments", params={"status": "confirmed"}, headers=clinic_headers)
    assert [item["id"] for item in res.json()] == [first["id"]]
