from datetime import date, datetime, timezone

from vetclinic import crud
from vetclinic.config import get_settings


def _book(client, headers, tutor, patient, start, end, **extra):
    return client.post("/api/v1/appointments", json={
        "tutor_id": tutor["id"],
        "patient_id": patient["id"],
        "start_time": start,
        "end_time": end,
        **extra,
    }, headers=headers)


def _day(client, headers, day):
    response = client.get("/api/v1/appointments", params={"date": day}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def test_book_and_list_by_date(client, auth_headers, tutor, patient):
    later = _book(client, auth_headers, tutor, patient, "2026-11-02T10:00:00-03:00", "2026-11-02T10:30:00-03:00", reason="Vaccine")
    assert later.status_code == 201, later.text
    assert later.json()["patient_name"] == "Rex"
    assert later.json()["tutor_name"] == "Maria Santos"
    _book(client, auth_headers, tutor, patient, "2026-11-02T09:00:00-03:00", "2026-11-02T09:30:00-03:00")
    _book(client, auth_headers, tutor, patient, "2026-11-03T09:00:00-03:00", "2026-11-03T09:30:00-03:00")

    # times come back in UTC
    starts = [item["start_time"][:19] for item in _day(client, auth_headers, "2026-11-02")]
    assert starts == ["2026-11-02T12:00:00", "2026-11-02T13:00:00"]

    assert _day(client, auth_headers, "2026-11-04") == []


def test_day_listing_follows_the_clinic_timezone(client, auth_headers, tutor, patient):
    # 23:30 in São Paulo is already the next day in UTC
    _book(client, auth_headers, tutor, patient, "2026-11-02T23:30:00-03:00", "2026-11-03T00:00:00-03:00")
    _book(client, auth_headers, tutor, patient, "2026-11-03T01:00:00+00:00", "2026-11-03T01:30:00+00:00")

    assert len(_day(client, auth_headers, "2026-11-02")) == 2
    assert _day(client, auth_headers, "2026-11-03") == []


def test_clinic_day_bounds():
    start, end = crud.clinic_day_bounds(date(2026, 11, 2))
    assert start == datetime(2026, 11, 2, 3, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 11, 3, 3, 0, tzinfo=timezone.utc)


def test_listing_requires_a_date(client, auth_headers):
    assert client.get("/api/v1/appointments", headers=auth_headers).status_code == 422


def test_end_must_follow_start(client, auth_headers, tutor, patient):
    response = _book(client, auth_headers, tutor, patient, "2026-11-02T10:00:00-03:00", "2026-11-02T10:00:00-03:00")
    assert response.status_code == 422
    assert "end_time" in response.json()["errors"]

    response = _book(client, auth_headers, tutor, patient, "2026-11-02T10:00:00-03:00", "2026-11-02T09:00:00-03:00")
    assert response.status_code == 422

    # 12:30 UTC is 09:30 in São Paulo, before the 10:00 start
    response = _book(client, auth_headers, tutor, patient, "2026-11-02T10:00:00-03:00", "2026-11-02T12:30:00+00:00")
    assert response.status_code == 422


def test_times_without_offset_are_rejected(client, auth_headers, tutor, patient):
    response = _book(client, auth_headers, tutor, patient, "2026-11-02T10:00:00-03:00", "2026-11-02T11:00:00")
    assert response.status_code == 422
    assert list(response.json()["errors"]) == ["end_time"]

    response = _book(client, auth_headers, tutor, patient, "2026-11-02T10:00:00", "2026-11-02T11:00:00")
    assert set(response.json()["errors"]) == {"start_time", "end_time"}


def test_patient_must_belong_to_tutor(client, auth_headers, tutor, patient):
    other_tutor = client.post("/api/v1/tutors", json={"name": "Carlos", "phone": "11977776666"}, headers=auth_headers).json()
    response = _book(client, auth_headers, other_tutor, patient, "2026-11-02T10:00:00-03:00", "2026-11-02T10:30:00-03:00")
    assert response.status_code == 422
    assert "patient_id" in response.json()["errors"]


def test_overlaps_are_allowed_by_default(client, auth_headers, tutor, patient):
    assert _book(client, auth_headers, tutor, patient, "2026-11-02T09:00:00-03:00", "2026-11-02T09:30:00-03:00").status_code == 201
    assert _book(client, auth_headers, tutor, patient, "2026-11-02T09:15:00-03:00", "2026-11-02T09:45:00-03:00").status_code == 201


def test_overlaps_rejected_when_enabled(client, auth_headers, tutor, patient, monkeypatch):
    monkeypatch.setattr(get_settings(), "appointments_reject_overlap", True)
    assert _book(client, auth_headers, tutor, patient, "2026-11-02T09:00:00-03:00", "2026-11-02T10:00:00-03:00").status_code == 201

    response = _book(client, auth_headers, tutor, patient, "2026-11-02T09:15:00-03:00", "2026-11-02T09:45:00-03:00")
    assert response.status_code == 409

    # same instant written with another offset: 12:30 UTC is 09:30 in São Paulo
    response = _book(client, auth_headers, tutor, patient, "2026-11-02T12:30:00+00:00", "2026-11-02T13:00:00+00:00")
    assert response.status_code == 409

    # back-to-back slots do not overlap
    assert _book(client, auth_headers, tutor, patient, "2026-11-02T13:00:00+00:00", "2026-11-02T13:30:00+00:00").status_code == 201


def test_cancel_appointment(client, auth_headers, other_headers, tutor, patient):
    booked = _book(client, auth_headers, tutor, patient, "2026-11-02T09:00:00-03:00", "2026-11-02T09:30:00-03:00").json()

    assert client.delete(f"/api/v1/appointments/{booked['id']}", headers=other_headers).status_code == 404
    assert client.delete(f"/api/v1/appointments/{booked['id']}", headers=auth_headers).status_code == 204
    assert _day(client, auth_headers, "2026-11-02") == []
    assert client.delete(f"/api/v1/appointments/{booked['id']}", headers=auth_headers).status_code == 404


def test_cannot_book_for_someone_elses_patient(client, other_headers, tutor, patient):
    response = _book(client, other_headers, tutor, patient, "2026-11-02T09:00:00-03:00", "2026-11-02T09:30:00-03:00")
    assert response.status_code == 404
