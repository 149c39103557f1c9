from datetime import date, datetime, time, timezone

import pytest

from atams.exceptions import BadRequestException

from app.services.attendance_policy import (
    attendance_rate,
    compute_working_hours,
    determine_check_in_status,
    ensure_utc,
    late_threshold,
    local_date,
)

TZ = "Asia/Kolkata"  # UTC+05:30
START = time(9, 0)


def _ist(hour: int, minute: int) -> datetime:
    # 2026-10-19 hh:mm IST expressed in UTC
    total = hour * 60 + minute - 330
    return datetime(2026, 10, 19, total // 60, total % 60, tzinfo=timezone.utc)


def test_check_in_after_start_within_grace_is_present():
    assert determine_check_in_status(_ist(9, 5), TZ, START, 30) == "present"


def test_check_in_after_threshold_is_late():
    assert determine_check_in_status(_ist(9, 31), TZ, START, 30) == "late"


def test_check_in_exactly_at_threshold_is_present():
    assert determine_check_in_status(_ist(9, 30), TZ, START, 30) == "present"


def test_zero_grace_uses_workday_start():
    assert determine_check_in_status(_ist(9, 1), TZ, START, 0) == "late"


def test_working_hours_rounded():
    check_in = datetime(2026, 10, 19, 3, 30, tzinfo=timezone.utc)
    check_out = datetime(2026, 10, 19, 12, 50, tzinfo=timezone.utc)

    assert compute_working_hours(check_in, check_out) == 9.33


def test_working_hours_accepts_naive_values_as_utc():
    check_in = datetime(2026, 10, 19, 3, 30)
    check_out = datetime(2026, 10, 19, 4, 0, tzinfo=timezone.utc)

    assert compute_working_hours(check_in, check_out) == 0.5


def test_checkout_before_check_in_rejected():
    check_in = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)

    with pytest.raises(BadRequestException):
        compute_working_hours(check_in, datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc))


def test_local_date_rolls_over_before_utc_midnight():
    # 20:00 UTC is 01:30 next day in IST
    assert local_date(datetime(2026, 10, 19, 20, 0, tzinfo=timezone.utc), TZ) == date(2026, 10, 20)


def test_ensure_utc_converts_offsets():
    value = datetime.fromisoformat("2026-10-19T09:00:00+05:30")

    assert ensure_utc(value) == datetime(2026, 10, 19, 3, 30, tzinfo=timezone.utc)


def test_attendance_rate():
    assert attendance_rate(0, 0) == 0
    assert attendance_rate(2, 3) == 67
    assert attendance_rate(1.5, 2) == 75
    assert attendance_rate(20, 20) == 100


def test_late_threshold_same_day():
    assert late_threshold(time(23, 0), 30) == time(23, 30)


def test_late_threshold_crossing_midnight_rejected():
    with pytest.raises(ValueError):
        late_threshold(time(23, 45), 30)
