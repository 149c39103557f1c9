"""
Attendance Service - Main business logic for attendance operations
"""
import calendar
import csv
import io
from typing import List, Optional, Tuple
from datetime import datetime, date, timezone
from zoneinfo import ZoneInfo
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from atams.exceptions import (
    NotFoundException,
    BadRequestException,
    ForbiddenException,
    ConflictException
)
from atams.logging import get_logger
from atams.transaction import transaction

from app.core.config import settings
from app.core.errors import BiometricErrorCode, BiometricGateException
from app.repositories.attendance_record_repository import AttendanceRecordRepository
from app.repositories.office_location_repository import OfficeLocationRepository
from app.schemas.attendance import (
    AttendanceRecord,
    AttendanceStatusUpdate,
    AttendanceSummary,
    CheckInRequest,
    CheckOutRequest,
    GeoPosition,
    LocationCheckResponse,
    TodayAttendanceResponse
)
from app.schemas.biometric import AssertionPayload
from app.services.attendance_policy import (
    STATUS_ABSENT,
    STATUS_HALF_DAY,
    STATUS_LATE,
    STATUS_PRESENT,
    attendance_rate,
    compute_working_hours,
    determine_check_in_status,
    ensure_utc,
    local_date
)
from app.services.biometric_service import BiometricService, CEREMONY_AUTHENTICATE, VerifiedAssertion
from app.services.geofence import (
    GeofenceResult,
    InvalidCoordinatesError,
    Position,
    Zone,
    check_position
)

logger = get_logger(__name__)

CSV_HEADER = ["Employee", "Date", "Status", "Check In", "Check Out", "Working Hours", "Location"]


class AttendanceService:
    def __init__(self) -> None:
        self.record_repo = AttendanceRecordRepository()
        self.location_repo = OfficeLocationRepository()
        self.biometric_service = BiometricService()

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _today(self, now: datetime) -> date:
        return local_date(now, settings.ATTENDANCE_TIMEZONE)

    def _local_time(self, value: Optional[datetime]) -> str:
        if value is None:
            return ""
        return ensure_utc(value).astimezone(ZoneInfo(settings.ATTENDANCE_TIMEZONE)).strftime("%H:%M")

    # ==================== GEOFENCE ====================

    def _active_zones(self, db: Session) -> List[Zone]:
        return [
            Zone(
                id=loc.ol_id,
                name=loc.ol_name,
                latitude=loc.ol_latitude,
                longitude=loc.ol_longitude,
                radius_meters=loc.ol_radius_meters,
                is_active=loc.ol_is_active
            )
            for loc in self.location_repo.get_active_locations(db)
        ]

    def _evaluate(self, db: Session, position: Optional[GeoPosition]) -> Tuple[GeofenceResult, List[Zone]]:
        zones = self._active_zones(db)
        point = Position(position.latitude, position.longitude) if position else None
        try:
            return check_position(point, zones), zones
        except InvalidCoordinatesError as e:
            raise BadRequestException(f"Invalid coordinates: {str(e)}")

    def check_location(self, db: Session, position: Optional[GeoPosition]) -> LocationCheckResponse:
        """
        Evaluate a position against active office locations without recording

        Args:
            db: Database session
            position: Browser position, None if geolocation is unavailable

        Returns:
            LocationCheckResponse: match result for the location card
        """
        result, _ = self._evaluate(db, position)
        return LocationCheckResponse(
            is_valid=result.is_valid,
            office_id=result.matched_zone.id if result.matched_zone else None,
            office_name=result.matched_zone.name if result.matched_zone else None,
            distance_meters=round(result.distance_meters, 1) if result.distance_meters is not None else None,
            nearest_office_name=result.nearest_zone.name if result.nearest_zone else None
        )

    def _enforce_geofence(self, db: Session, position: Optional[GeoPosition]) -> GeofenceResult:
        """
        Validate user location against active office zones

        Raises:
            BadRequestException: Malformed coordinates
            ForbiddenException: No zones configured, no position, or outside every zone
        """
        result, zones = self._evaluate(db, position)
        if result.is_valid or not settings.GEOFENCE_ENFORCED:
            return result

        if not zones:
            raise ForbiddenException(
                "No active office locations are configured",
                details={"code": "no_active_locations"}
            )
        if position is None:
            raise ForbiddenException(
                "Location is unavailable. Enable location access to mark attendance",
                details={"code": "location_unavailable"}
            )
        raise ForbiddenException(
            f"Outside office geofence (distance: {result.distance_meters:.0f}m from {result.nearest_zone.name})",
            details={
                "code": "outside_geofence",
                "distance_meters": round(result.distance_meters, 1),
                "nearest_location": result.nearest_zone.name,
                "allowed_radius_meters": result.nearest_zone.radius_meters
            }
        )

    # ==================== BIOMETRIC ====================

    def _verify_biometric(
        self,
        db: Session,
        user_id: int,
        payload: Optional[AssertionPayload]
    ) -> Optional[VerifiedAssertion]:
        if payload is None:
            if settings.BIOMETRIC_REQUIRED:
                raise BiometricGateException(
                    BiometricErrorCode.VERIFICATION_FAILED,
                    "Biometric verification is required to mark attendance"
                )
            return None

        with self.biometric_service.audit_ceremony(db, user_id, CEREMONY_AUTHENTICATE):
            return self.biometric_service.verify_assertion(db, user_id, payload)

    # ==================== RECORDING ====================

    def record_check_in(self, db: Session, user_id: int, request: CheckInRequest) -> AttendanceRecord:
        """
        Record today's check-in

        Order: geofence, biometric assertion, duplicate check, then a single
        transaction that consumes the challenge and inserts the row.

        Args:
            db: Database session
            user_id: Current user ID from auth
            request: Position, optional assertion and notes

        Returns:
            AttendanceRecord: The created record

        Raises:
            BadRequestException: Malformed coordinates
            ForbiddenException: Outside geofence or no zones configured
            BiometricGateException: Assertion rejected
            ConflictException: Already checked in today
        """
        geofence = self._enforce_geofence(db, request.position)
        verified = self._verify_biometric(db, user_id, request.biometric)

        now = self._now()
        today = self._today(now)

        existing = self.record_repo.get_by_user_and_date(db, user_id, today)
        if existing is not None:
            raise ConflictException(
                "Attendance already recorded for today",
                details={"at_id": existing.at_id, "at_date": today.isoformat()}
            )

        status = determine_check_in_status(
            now,
            settings.ATTENDANCE_TIMEZONE,
            settings.WORKDAY_START,
            settings.LATE_GRACE_MINUTES
        )

        record_data = {
            "at_user_id": user_id,
            "at_date": today,
            "at_check_in_time": now,
            "at_status": status,
            "at_notes": request.notes,
            "at_latitude": request.position.latitude if request.position else None,
            "at_longitude": request.position.longitude if request.position else None,
            "at_location_verified": geofence.is_valid,
            "at_location_name": geofence.matched_zone.name if geofence.matched_zone else None,
            "at_biometric_verified": verified is not None
        }

        try:
            with self.biometric_service.audit_ceremony(db, user_id, CEREMONY_AUTHENTICATE):
                with transaction(db):
                    if verified is not None:
                        self.biometric_service.apply_assertion(db, user_id, verified)
                    record = self.record_repo.add_record(db, record_data)
        except IntegrityError:
            # Concurrent check-in won the (user_id, date) unique constraint
            raise ConflictException(
                "Attendance already recorded for today",
                details={"at_date": today.isoformat()}
            )

        db.refresh(record)
        if verified is not None:
            self.biometric_service.record_success(db, user_id, verified)

        logger.info(
            f"Check-in recorded ({status})",
            extra={'extra_data': {
                'user_id': user_id,
                'at_id': record.at_id,
                'location': record.at_location_name,
                'biometric': record.at_biometric_verified
            }}
        )
        return AttendanceRecord.model_validate(record)

    def record_check_out(
        self,
        db: Session,
        user_id: int,
        attendance_id: int,
        request: CheckOutRequest
    ) -> AttendanceRecord:
        """
        Record checkout on an open attendance record

        Raises:
            NotFoundException: Record missing or owned by another user
            ConflictException: No check-in, or already checked out
            BadRequestException: Checkout earlier than check-in
        """
        record = self.record_repo.get_by_id(db, attendance_id)
        if record is None or record.at_user_id != user_id:
            raise NotFoundException("Attendance record not found")
        if record.at_check_in_time is None:
            raise ConflictException("Cannot check out without a check-in")
        if record.at_check_out_time is not None:
            raise ConflictException("Already checked out for this record")

        geofence = self._enforce_geofence(db, request.position)
        verified = self._verify_biometric(db, user_id, request.biometric)

        now = self._now()
        working_hours = compute_working_hours(record.at_check_in_time, now)

        notes = record.at_notes
        if request.notes:
            notes = f"{notes}\n{request.notes}" if notes else request.notes

        update_data = {
            "at_check_out_time": now,
            "at_working_hours": working_hours,
            "at_notes": notes,
            "at_checkout_latitude": request.position.latitude if request.position else None,
            "at_checkout_longitude": request.position.longitude if request.position else None,
            "at_checkout_location_verified": geofence.is_valid,
            "at_checkout_location_name": geofence.matched_zone.name if geofence.matched_zone else None,
            "at_biometric_verified_out": verified is not None,
            "at_updated_at": now
        }

        with self.biometric_service.audit_ceremony(db, user_id, CEREMONY_AUTHENTICATE):
            with transaction(db):
                if verified is not None:
                    self.biometric_service.apply_assertion(db, user_id, verified)
                if self.record_repo.close_record(db, attendance_id, update_data) == 0:
                    raise ConflictException("Already checked out for this record")

        db.refresh(record)
        if verified is not None:
            self.biometric_service.record_success(db, user_id, verified)

        logger.info(
            "Checkout recorded",
            extra={'extra_data': {'user_id': user_id, 'at_id': attendance_id, 'working_hours': working_hours}}
        )
        return AttendanceRecord.model_validate(record)

    # ==================== EMPLOYEE VIEWS ====================

    def get_today(self, db: Session, user_id: int) -> TodayAttendanceResponse:
        """Get user's attendance for today"""
        today = self._today(self._now())
        record = self.record_repo.get_by_user_and_date(db, user_id, today)

        if not record:
            return TodayAttendanceResponse(at_date=today)

        return TodayAttendanceResponse(
            at_date=today,
            at_id=record.at_id,
            at_status=record.at_status,
            at_check_in_time=record.at_check_in_time,
            at_check_out_time=record.at_check_out_time,
            at_working_hours=record.at_working_hours,
            at_location_name=record.at_location_name,
            can_check_in=False,
            can_check_out=record.at_check_in_time is not None and record.at_check_out_time is None
        )

    def get_monthly_summary(self, db: Session, user_id: int, month: Optional[str] = None) -> AttendanceSummary:
        """
        Attendance statistics for one calendar month

        Args:
            month: YYYY-MM, default current month in ATTENDANCE_TIMEZONE

        Raises:
            BadRequestException: Invalid month format
        """
        if month:
            try:
                first_day = datetime.strptime(month, "%Y-%m").date()
            except ValueError:
                raise BadRequestException("Invalid month format. Use YYYY-MM")
        else:
            first_day = self._today(self._now()).replace(day=1)

        last_day = first_day.replace(day=calendar.monthrange(first_day.year, first_day.month)[1])

        counts = self.record_repo.count_by_status(db, user_id, first_day, last_day)
        present = counts.get(STATUS_PRESENT, 0)
        late = counts.get(STATUS_LATE, 0)
        half = counts.get(STATUS_HALF_DAY, 0)
        absent = counts.get(STATUS_ABSENT, 0)
        total = sum(counts.values())

        return AttendanceSummary(
            month=first_day.strftime("%Y-%m"),
            total_records=total,
            present_days=present,
            late_days=late,
            half_days=half,
            absent_days=absent,
            attendance_rate=attendance_rate(present + late + half * 0.5, total),
            total_working_hours=round(self.record_repo.sum_working_hours(db, user_id, first_day, last_day), 2)
        )

    # ==================== HR VIEWS ====================

    def get_records(
        self,
        db: Session,
        user_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None,
        skip: int = 0,
        limit: int = 100,
        sort: str = "desc"
    ) -> List[AttendanceRecord]:
        """Get attendance records (with filters)"""
        records = self.record_repo.get_records_with_filters(
            db, user_id, date_from, date_to, status, skip, limit, sort
        )
        return [AttendanceRecord.model_validate(r) for r in records]

    def count_records(
        self,
        db: Session,
        user_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None
    ) -> int:
        """Count attendance records (with filters)"""
        return self.record_repo.count_records_with_filters(db, user_id, date_from, date_to, status)

    def export_csv(
        self,
        db: Session,
        user_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None,
        sort: str = "asc"
    ) -> str:
        """Render filtered records as CSV with times in ATTENDANCE_TIMEZONE"""
        total = self.record_repo.count_records_with_filters(db, user_id, date_from, date_to, status)
        records = self.record_repo.get_records_with_filters(
            db, user_id, date_from, date_to, status, 0, max(total, 1), sort
        )

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_HEADER)
        for r in records:
            writer.writerow([
                r.at_user_id,
                r.at_date.isoformat(),
                r.at_status,
                self._local_time(r.at_check_in_time),
                self._local_time(r.at_check_out_time),
                "" if r.at_working_hours is None else f"{r.at_working_hours:.2f}",
                r.at_location_name or ""
            ])
        return buffer.getvalue()

    def update_status(
        self,
        db: Session,
        attendance_id: int,
        payload: AttendanceStatusUpdate,
        updated_by: int
    ) -> AttendanceRecord:
        """
        HR designation of a record's status (e.g. half_day)

        Raises:
            NotFoundException: Record missing
        """
        record = self.record_repo.get_by_id(db, attendance_id)
        if record is None:
            raise NotFoundException("Attendance record not found")

        update_data = {"at_status": payload.at_status}
        if payload.at_notes is not None:
            update_data["at_notes"] = payload.at_notes

        previous = record.at_status
        record = self.record_repo.update(db, record, update_data)

        logger.info(
            "Attendance status changed",
            extra={'extra_data': {
                'at_id': attendance_id,
                'from': previous,
                'to': payload.at_status,
                'updated_by': updated_by
            }}
        )
        return AttendanceRecord.model_validate(record)
