"""
Attendance Endpoints - Location check, check-in/checkout, history and reports
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from app.db.session import get_db
from app.services.attendance_service import AttendanceService
from app.schemas import (
    AttendanceRecord,
    AttendanceStatusUpdate,
    AttendanceSummary,
    CheckInRequest,
    CheckOutRequest,
    LocationCheckRequest,
    LocationCheckResponse,
    TodayAttendanceResponse,
    DataResponse,
    PaginationResponse
)
from app.api.deps import require_auth, require_min_role_level, EMPLOYEE_ROLE_LEVEL, HR_ROLE_LEVEL
from app.core.config import settings
from atams.encryption import encrypt_response_data
from atams.exceptions import BadRequestException

router = APIRouter()
attendance_service = AttendanceService()

STATUS_PATTERN = "^(present|absent|late|half_day)$"


def _parse_date(value: Optional[str], field: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise BadRequestException(f"Invalid {field} format. Use YYYY-MM-DD")


@router.post(
    "/location-check",
    response_model=DataResponse[LocationCheckResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def check_location(
    request: LocationCheckRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Check whether a position is inside an active office location

    Nothing is recorded. Used by the location card before check-in.

    **Response:**
    - is_valid, matched office and distance
    - nearest office and distance when outside every zone
    """
    result = attendance_service.check_location(db, request.position)

    return DataResponse(
        success=True,
        message="Inside office location" if result.is_valid else "Outside office locations",
        data=result
    )


@router.post(
    "/check-in",
    response_model=DataResponse[AttendanceRecord],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def check_in(
    request: CheckInRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Record today's check-in

    **Authentication:**
    - Requires valid user authentication (role level >= 1)

    **Process:**
    1. Geofence validation against active office locations
    2. Biometric assertion verification (required if BIOMETRIC_REQUIRED)
    3. One record per user per day
    4. Status: late after WORKDAY_START + LATE_GRACE_MINUTES

    **Errors:**
    - 400: Malformed coordinates
    - 403: Outside geofence, no office locations, biometric rejected
    - 409: Already checked in today
    """
    user_id = current_user["user_id"]

    record = attendance_service.record_check_in(db, user_id, request)

    return DataResponse(
        success=True,
        message=f"Checked in ({record.at_status})",
        data=record
    )


@router.post(
    "/{attendance_id}/check-out",
    response_model=DataResponse[AttendanceRecord],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def check_out(
    attendance_id: int,
    request: CheckOutRequest,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Record checkout on the user's open attendance record

    **Errors:**
    - 400: Checkout earlier than check-in
    - 403: Outside geofence, biometric rejected
    - 404: Record not found for this user
    - 409: No check-in, or already checked out
    """
    user_id = current_user["user_id"]

    record = attendance_service.record_check_out(db, user_id, attendance_id, request)

    return DataResponse(
        success=True,
        message=f"Checked out ({record.at_working_hours:.2f} hours)",
        data=record
    )


@router.get(
    "/me/today",
    response_model=DataResponse[TodayAttendanceResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_my_attendance_today(
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get current user's attendance for today

    **Response:**
    - Record details if exists
    - can_check_in / can_check_out flags for the UI
    """
    user_id = current_user["user_id"]

    today = attendance_service.get_today(db, user_id)

    response = DataResponse(
        success=True,
        message="Today's attendance retrieved successfully",
        data=today
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/me/summary",
    response_model=DataResponse[AttendanceSummary],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_my_monthly_summary(
    month: Optional[str] = Query(None, description="Month in YYYY-MM format (default: current month)"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get current user's attendance statistics for a month

    **Response:**
    - Counts per status, attendance rate (half days count 0.5), total hours
    """
    user_id = current_user["user_id"]

    summary = attendance_service.get_monthly_summary(db, user_id, month)

    response = DataResponse(
        success=True,
        message="Monthly summary retrieved successfully",
        data=summary
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/me",
    response_model=PaginationResponse[AttendanceRecord],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(EMPLOYEE_ROLE_LEVEL))]
)
async def get_my_attendance(
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    limit: int = Query(50, ge=1, le=100, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get current user's attendance history, newest first

    **Query Parameters:**
    - date_from/date_to: Date range filter (YYYY-MM-DD)
    - limit: Max records (1-100, default 50)
    - offset: Skip records (default 0)
    """
    user_id = current_user["user_id"]
    parsed_date_from = _parse_date(date_from, "date_from")
    parsed_date_to = _parse_date(date_to, "date_to")

    records = attendance_service.get_records(
        db, user_id, parsed_date_from, parsed_date_to, None, offset, limit, "desc"
    )
    total = attendance_service.count_records(db, user_id, parsed_date_from, parsed_date_to)

    response = PaginationResponse(
        success=True,
        message="Attendance history retrieved successfully",
        data=records,
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/export",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(HR_ROLE_LEVEL))]
)
async def export_attendance_csv(
    user_id: Optional[int] = Query(None, description="Filter by user ID"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN, description="Filter by status"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Export attendance records as CSV (HR only)

    **Columns:**
    - Employee, Date, Status, Check In, Check Out, Working Hours, Location
    """
    parsed_date_from = _parse_date(date_from, "date_from")
    parsed_date_to = _parse_date(date_to, "date_to")

    content = attendance_service.export_csv(db, user_id, parsed_date_from, parsed_date_to, status)

    filename = f"attendance_{parsed_date_from or 'all'}_{parsed_date_to or 'all'}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get(
    "/",
    response_model=PaginationResponse[AttendanceRecord],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(HR_ROLE_LEVEL))]
)
async def get_attendance_admin(
    user_id: Optional[int] = Query(None, description="Filter by user ID"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN, description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    sort: str = Query("desc", pattern="^(asc|desc)$", description="Sort order by date"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get attendance records (HR only)

    **Authentication:**
    - Requires role level >= 50 (HR or above)

    **Query Parameters:**
    - user_id: Filter by specific user
    - date_from/date_to: Date range filter (YYYY-MM-DD)
    - status: present, absent, late or half_day
    - limit: Max records (1-1000, default 100)
    - offset: Skip records (default 0)
    - sort: asc or desc (default desc)
    """
    parsed_date_from = _parse_date(date_from, "date_from")
    parsed_date_to = _parse_date(date_to, "date_to")

    records = attendance_service.get_records(
        db, user_id, parsed_date_from, parsed_date_to, status, offset, limit, sort
    )
    total = attendance_service.count_records(db, user_id, parsed_date_from, parsed_date_to, status)

    response = PaginationResponse(
        success=True,
        message="Attendance records retrieved successfully",
        data=records,
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.patch(
    "/{attendance_id}/status",
    response_model=DataResponse[AttendanceRecord],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(HR_ROLE_LEVEL))]
)
async def update_attendance_status(
    attendance_id: int,
    payload: AttendanceStatusUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Designate a record's status, e.g. half_day (HR only)
    """
    record = attendance_service.update_status(db, attendance_id, payload, current_user["user_id"])

    return DataResponse(
        success=True,
        message="Attendance status updated successfully",
        data=record
    )
