import csv
import io
from datetime import date, datetime, timezone

from app.core.config import settings
from app.models.attendance_record import AttendanceRecord
from app.repositories.attendance_record_repository import AttendanceRecordRepository

from tests.conftest import EMPLOYEE, HQ, HR_ADMIN, OTHER_EMPLOYEE

BASE = "/api/v1/attendance"

INSIDE = {"latitude": HQ["latitude"], "longitude": HQ["longitude"], "accuracy": 12}
# roughly 500 m north of HQ
OUTSIDE = {"latitude": HQ["latitude"] + 0.0045, "longitude": HQ["longitude"]}


def _check_in(client, position=INSIDE, **extra):
    payload = {"position": position}
    payload.update(extra)
    return client.post(f"{BASE}/check-in", json=payload)


def _check_out(client, attendance_id, position=INSIDE):
    return client.post(f"{BASE}/{attendance_id}/check-out", json={"position": position})


def _row_count(db_session):
    return db_session.query(AttendanceRecord).count()


def test_location_check_inside_and_outside(client, hq):
    inside = client.post(f"{BASE}/location-check", json={"position": INSIDE}).json()["data"]
    assert inside["is_valid"] is True
    assert inside["office_name"] == "Pune HQ"
    assert inside["distance_meters"] < 1

    outside = client.post(f"{BASE}/location-check", json={"position": OUTSIDE}).json()["data"]
    assert outside["is_valid"] is False
    assert outside["office_name"] is None
    assert outside["nearest_office_name"] == "Pune HQ"
    assert 480 < outside["distance_meters"] < 520


def test_location_check_without_position(client, hq):
    data = client.post(f"{BASE}/location-check", json={}).json()["data"]

    assert data["is_valid"] is False
    assert data["distance_meters"] is None


def test_location_check_rejects_malformed_coordinates(client, hq):
    response = client.post(f"{BASE}/location-check", json={"position": {"latitude": 95, "longitude": 10}})

    assert response.status_code == 422


def test_check_in_inside_geofence(client, hq, clock, db_session):
    response = _check_in(client, notes="Client visit at noon")

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["at_user_id"] == EMPLOYEE["user_id"]
    assert data["at_date"] == "2026-10-19"
    assert data["at_status"] == "present"
    assert data["at_location_verified"] is True
    assert data["at_location_name"] == "Pune HQ"
    assert data["at_biometric_verified"] is False
    assert data["at_notes"] == "Client visit at noon"
    assert _row_count(db_session) == 1


def test_check_in_after_grace_period_is_late(client, hq, clock):
    clock.set(datetime(2026, 10, 19, 4, 1, tzinfo=timezone.utc))

    response = _check_in(client)

    assert response.status_code == 201
    assert response.json()["data"]["at_status"] == "late"


def test_second_check_in_same_day_conflicts(client, hq, clock, db_session):
    assert _check_in(client).status_code == 201
    clock.set(datetime(2026, 10, 19, 6, 0, tzinfo=timezone.utc))

    response = _check_in(client)

    assert response.status_code == 409
    assert response.json()["success"] is False
    assert _row_count(db_session) == 1


def test_concurrent_check_in_loses_on_unique_constraint(client, hq, clock, db_session, monkeypatch):
    assert _check_in(client).status_code == 201
    # Simulate a request that passed the duplicate check before the first insert committed
    monkeypatch.setattr(AttendanceRecordRepository, "get_by_user_and_date", lambda self, db, user_id, day: None)

    response = _check_in(client)

    assert response.status_code == 409
    assert _row_count(db_session) == 1


def test_check_in_outside_geofence_is_rejected(client, hq, clock, db_session):
    response = _check_in(client, position=OUTSIDE)

    assert response.status_code == 403
    details = response.json()["details"]
    assert details["code"] == "outside_geofence"
    assert details["nearest_location"] == "Pune HQ"
    assert details["allowed_radius_meters"] == 100
    assert 480 < details["distance_meters"] < 520
    assert _row_count(db_session) == 0


def test_check_in_without_office_locations_is_rejected(client, clock, db_session):
    response = _check_in(client)

    assert response.status_code == 403
    assert response.json()["details"]["code"] == "no_active_locations"
    assert _row_count(db_session) == 0


def test_check_in_without_position_is_rejected(client, hq, clock, db_session):
    response = client.post(f"{BASE}/check-in", json={})

    assert response.status_code == 403
    assert response.json()["details"]["code"] == "location_unavailable"
    assert _row_count(db_session) == 0


def test_check_in_ignores_inactive_location(client, hq, clock, db_session):
    hq.ol_is_active = False
    db_session.commit()

    response = _check_in(client)

    assert response.status_code == 403
    assert response.json()["details"]["code"] == "no_active_locations"


def test_check_in_outside_allowed_when_geofence_not_enforced(client, hq, clock, monkeypatch):
    monkeypatch.setattr(settings, "GEOFENCE_ENFORCED", False)

    response = _check_in(client, position=OUTSIDE)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["at_location_verified"] is False
    assert data["at_location_name"] is None


def test_check_out_computes_working_hours(client, hq, clock):
    attendance_id = _check_in(client).json()["data"]["at_id"]
    clock.set(datetime(2026, 10, 19, 12, 55, tzinfo=timezone.utc))

    response = _check_out(client, attendance_id)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["at_working_hours"] == 9.33
    assert data["at_check_out_time"] is not None
    assert data["at_checkout_location_verified"] is True
    assert data["at_checkout_location_name"] == "Pune HQ"


def test_second_check_out_conflicts(client, hq, clock):
    attendance_id = _check_in(client).json()["data"]["at_id"]
    clock.set(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))
    assert _check_out(client, attendance_id).status_code == 200

    clock.set(datetime(2026, 10, 19, 13, 0, tzinfo=timezone.utc))
    response = _check_out(client, attendance_id)

    assert response.status_code == 409
    assert response.json()["success"] is False


def test_check_out_of_another_users_record_not_found(client, hq, clock, login_as):
    attendance_id = _check_in(client).json()["data"]["at_id"]
    login_as(OTHER_EMPLOYEE)

    response = _check_out(client, attendance_id)

    assert response.status_code == 404


def test_check_out_before_check_in_time_is_rejected(client, hq, clock):
    attendance_id = _check_in(client).json()["data"]["at_id"]
    clock.set(datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc))

    response = _check_out(client, attendance_id)

    assert response.status_code == 400


def test_check_out_outside_geofence_keeps_record_open(client, hq, clock):
    attendance_id = _check_in(client).json()["data"]["at_id"]
    clock.set(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))

    assert _check_out(client, attendance_id, position=OUTSIDE).status_code == 403

    today = client.get(f"{BASE}/me/today").json()["data"]
    assert today["can_check_out"] is True
    assert today["at_check_out_time"] is None


def test_today_before_and_after_check_in(client, hq, clock):
    before = client.get(f"{BASE}/me/today").json()["data"]
    assert before["at_date"] == "2026-10-19"
    assert before["at_id"] is None
    assert before["can_check_in"] is True
    assert before["can_check_out"] is False

    _check_in(client)

    after = client.get(f"{BASE}/me/today").json()["data"]
    assert after["at_status"] == "present"
    assert after["can_check_in"] is False
    assert after["can_check_out"] is True


def test_my_history_is_newest_first_and_scoped_to_user(client, hq, clock, login_as):
    _check_in(client)
    clock.set(datetime(2026, 10, 20, 3, 30, tzinfo=timezone.utc))
    _check_in(client)
    login_as(OTHER_EMPLOYEE)
    _check_in(client)
    login_as(EMPLOYEE)

    body = client.get(f"{BASE}/me").json()

    assert body["total"] == 2
    assert [r["at_date"] for r in body["data"]] == ["2026-10-20", "2026-10-19"]

    ranged = client.get(f"{BASE}/me", params={"date_from": "2026-10-20"}).json()
    assert ranged["total"] == 1


def test_my_history_rejects_bad_date(client):
    response = client.get(f"{BASE}/me", params={"date_from": "19-10-2026"})

    assert response.status_code == 400


def test_monthly_summary_counts_half_days_as_half(client, hq, clock, login_as):
    _check_in(client)
    clock.set(datetime(2026, 10, 20, 4, 10, tzinfo=timezone.utc))
    late_id = _check_in(client).json()["data"]["at_id"]

    summary = client.get(f"{BASE}/me/summary", params={"month": "2026-10"}).json()["data"]
    assert summary["total_records"] == 2
    assert summary["present_days"] == 1
    assert summary["late_days"] == 1
    assert summary["attendance_rate"] == 100

    login_as(HR_ADMIN)
    patched = client.patch(f"{BASE}/{late_id}/status", json={"at_status": "half_day", "at_notes": "Left at lunch"})
    assert patched.status_code == 200
    assert patched.json()["data"]["at_status"] == "half_day"

    login_as(EMPLOYEE)
    summary = client.get(f"{BASE}/me/summary", params={"month": "2026-10"}).json()["data"]
    assert summary["half_days"] == 1
    assert summary["attendance_rate"] == 75


def test_monthly_summary_rejects_bad_month(client):
    assert client.get(f"{BASE}/me/summary", params={"month": "October"}).status_code == 400


def test_hr_lists_records_with_filters(client, hq, clock, login_as):
    _check_in(client)
    login_as(OTHER_EMPLOYEE)
    clock.set(datetime(2026, 10, 19, 4, 45, tzinfo=timezone.utc))
    _check_in(client)
    login_as(HR_ADMIN)

    everything = client.get(f"{BASE}/").json()
    assert everything["total"] == 2

    late = client.get(f"{BASE}/", params={"status": "late"}).json()
    assert late["total"] == 1
    assert late["data"][0]["at_user_id"] == OTHER_EMPLOYEE["user_id"]

    mine = client.get(f"{BASE}/", params={"user_id": EMPLOYEE["user_id"]}).json()
    assert [r["at_user_id"] for r in mine["data"]] == [EMPLOYEE["user_id"]]


def test_hr_exports_csv_in_local_time(client, hq, clock, login_as):
    attendance_id = _check_in(client).json()["data"]["at_id"]
    clock.set(datetime(2026, 10, 19, 12, 55, tzinfo=timezone.utc))
    _check_out(client, attendance_id)
    login_as(HR_ADMIN)

    response = client.get(f"{BASE}/export", params={"date_from": "2026-10-01", "date_to": "2026-10-31"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attendance_2026-10-01_2026-10-31.csv" in response.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == ["Employee", "Date", "Status", "Check In", "Check Out", "Working Hours", "Location"]
    assert rows[1] == ["101", "2026-10-19", "present", "09:05", "18:25", "9.33", "Pune HQ"]


def test_update_status_of_missing_record(client, login_as):
    login_as(HR_ADMIN)

    response = client.patch(f"{BASE}/9999/status", json={"at_status": "absent"})

    assert response.status_code == 404


def test_update_status_rejects_unknown_status(client, login_as):
    login_as(HR_ADMIN)

    assert client.patch(f"{BASE}/1/status", json={"at_status": "vacation"}).status_code == 422


def test_employee_cannot_use_hr_endpoints(client):
    assert client.get(f"{BASE}/").status_code == 403
    assert client.get(f"{BASE}/export").status_code == 403
    assert client.patch(f"{BASE}/1/status", json={"at_status": "absent"}).status_code == 403


def test_monthly_summary_for_last_representable_month(client):
    response = client.get(f"{BASE}/me/summary", params={"month": "9999-12"})

    assert response.status_code == 200
    summary = response.json()["data"]
    assert summary["month"] == "9999-12"
    assert summary["total_records"] == 0
    assert summary["attendance_rate"] == 0


def test_monthly_summary_includes_last_day_of_february(client, hq, clock):
    clock.set(datetime(2028, 2, 29, 3, 35, tzinfo=timezone.utc))
    _check_in(client)

    summary = client.get(f"{BASE}/me/summary", params={"month": "2028-02"}).json()["data"]

    assert summary["total_records"] == 1
    assert summary["present_days"] == 1


def test_check_out_without_check_in_conflicts(client, hq, clock, db_session):
    absent = AttendanceRecord(at_user_id=EMPLOYEE["user_id"], at_date=date(2026, 10, 19), at_status="absent")
    db_session.add(absent)
    db_session.commit()

    response = _check_out(client, absent.at_id)

    assert response.status_code == 409
    assert response.json()["message"] == "Cannot check out without a check-in"
    db_session.refresh(absent)
    assert absent.at_check_out_time is None


def test_check_out_of_missing_record_not_found(client, hq, clock):
    response = _check_out(client, 9999)

    assert response.status_code == 404
    assert response.json()["message"] == "Attendance record not found"
