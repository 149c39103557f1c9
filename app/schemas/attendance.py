"""
Attendance Schemas for check-in, checkout and reporting
"""
from typing import Optional, Literal
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import normalize_pg_timezone
from .biometric import AssertionPayload

AttendanceStatus = Literal["present", "absent", "late", "half_day"]


class GeoPosition(BaseModel):
    """Position reported by the browser Geolocation API"""
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    accuracy: Optional[float] = Field(None, ge=0, allow_inf_nan=False, description="Meters")


class LocationCheckRequest(BaseModel):
    position: Optional[GeoPosition] = None


class LocationCheckResponse(BaseModel):
    is_valid: bool
    office_id: Optional[int] = None
    office_name: Optional[str] = None
    distance_meters: Optional[float] = None
    nearest_office_name: Optional[str] = None


class CheckInRequest(BaseModel):
    position: Optional[GeoPosition] = None
    biometric: Optional[AssertionPayload] = None
    notes: Optional[str] = Field(None, max_length=1000)


class CheckOutRequest(BaseModel):
    position: Optional[GeoPosition] = None
    biometric: Optional[AssertionPayload] = None
    notes: Optional[str] = Field(None, max_length=1000)


class AttendanceRecordBase(BaseModel):
    at_user_id: int
    at_date: date
    at_check_in_time: Optional[datetime] = None
    at_check_out_time: Optional[datetime] = None
    at_status: AttendanceStatus = "present"
    at_working_hours: Optional[float] = None
    at_notes: Optional[str] = None
    at_latitude: Optional[float] = None
    at_longitude: Optional[float] = None
    at_location_verified: bool = False
    at_location_name: Optional[str] = None
    at_biometric_verified: bool = False
    at_checkout_latitude: Optional[float] = None
    at_checkout_longitude: Optional[float] = None
    at_checkout_location_verified: bool = False
    at_checkout_location_name: Optional[str] = None
    at_biometric_verified_out: bool = False


class AttendanceRecordInDB(AttendanceRecordBase):
    model_config = ConfigDict(from_attributes=True)

    at_id: int
    at_created_at: datetime
    at_updated_at: Optional[datetime] = None

    @field_validator(
        'at_check_in_time', 'at_check_out_time', 'at_created_at', 'at_updated_at',
        mode='before'
    )
    @classmethod
    def fix_datetime_timezone(cls, v):
        """Fix datetime timezone format from PostgreSQL"""
        return normalize_pg_timezone(v)


class AttendanceRecord(AttendanceRecordInDB):
    pass


class TodayAttendanceResponse(BaseModel):
    """Response schema for today's attendance card"""
    at_date: date
    at_id: Optional[int] = None
    at_status: Optional[AttendanceStatus] = None
    at_check_in_time: Optional[datetime] = None
    at_check_out_time: Optional[datetime] = None
    at_working_hours: Optional[float] = None
    at_location_name: Optional[str] = None
    can_check_in: bool = True
    can_check_out: bool = False


class AttendanceSummary(BaseModel):
    """Monthly attendance statistics for one employee"""
    month: str  # YYYY-MM
    total_records: int
    present_days: int
    late_days: int
    half_days: int
    absent_days: int
    attendance_rate: int  # percent
    total_working_hours: float


class AttendanceStatusUpdate(BaseModel):
    """HR designation of a record's status"""
    at_status: AttendanceStatus
    at_notes: Optional[str] = Field(None, max_length=1000)
