"""
Attendance policy - status and working hours derivation
"""
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from atams.exceptions import BadRequestException

STATUS_PRESENT = "present"
STATUS_LATE = "late"
STATUS_ABSENT = "absent"
STATUS_HALF_DAY = "half_day"

ATTENDANCE_STATUSES = (STATUS_PRESENT, STATUS_ABSENT, STATUS_LATE, STATUS_HALF_DAY)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo)"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_date(moment: datetime, tz_name: str) -> date:
    """Calendar day of an instant in the organisation time zone"""
    return ensure_utc(moment).astimezone(ZoneInfo(tz_name)).date()


def late_threshold(workday_start: time, grace_minutes: int) -> time:
    """
    Raises:
        ValueError: If the threshold would fall on the next day
    """
    anchor = datetime.combine(date(2000, 1, 1), workday_start)
    threshold = anchor + timedelta(minutes=grace_minutes)
    if threshold.date() != anchor.date():
        raise ValueError("Late threshold crosses midnight")
    return threshold.time()


def determine_check_in_status(
    check_in: datetime,
    tz_name: str,
    workday_start: time,
    grace_minutes: int
) -> str:
    """
    Derive the status of a check-in

    Late when the local check-in time is strictly after
    workday_start + grace_minutes, present otherwise.
    """
    local_time = ensure_utc(check_in).astimezone(ZoneInfo(tz_name)).time()
    if local_time > late_threshold(workday_start, grace_minutes):
        return STATUS_LATE
    return STATUS_PRESENT


def compute_working_hours(check_in: datetime, check_out: datetime) -> float:
    """
    Hours between check-in and checkout, rounded to 2 decimals

    Raises:
        BadRequestException: If checkout is earlier than check-in
    """
    delta = ensure_utc(check_out) - ensure_utc(check_in)
    if delta.total_seconds() < 0:
        raise BadRequestException("Checkout time cannot be earlier than check-in time")
    return round(delta.total_seconds() / 3600, 2)


def attendance_rate(attended_days: float, recorded_days: int) -> int:
    """Percentage of recorded days attended; half days count as 0.5"""
    if recorded_days <= 0:
        return 0
    return round(attended_days / recorded_days * 100)
