"""
Attendance Record Repository - Data access layer for daily attendance
"""
from typing import Dict, Optional, List
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy import func

from atams.db import BaseRepository
from app.models.attendance_record import AttendanceRecord


class AttendanceRecordRepository(BaseRepository[AttendanceRecord]):
    def __init__(self):
        super().__init__(AttendanceRecord)

    def get_by_id(self, db: Session, attendance_id: int) -> Optional[AttendanceRecord]:
        return db.query(AttendanceRecord).filter(AttendanceRecord.at_id == attendance_id).first()

    def get_by_user_and_date(self, db: Session, user_id: int, target_date: date) -> Optional[AttendanceRecord]:
        """Get the record for user on specific date using ORM"""
        return db.query(AttendanceRecord).filter(
            AttendanceRecord.at_user_id == user_id,
            AttendanceRecord.at_date == target_date
        ).first()

    def add_record(self, db: Session, record_data: dict) -> AttendanceRecord:
        """
        Stage a new record without committing

        Flushes so the (user_id, date) unique constraint fires inside the
        caller's transaction.
        """
        db_record = AttendanceRecord(**record_data)
        db.add(db_record)
        db.flush()
        return db_record

    def close_record(self, db: Session, attendance_id: int, update_data: dict) -> int:
        """
        Set checkout fields only if the record is still open

        Returns:
            int: Number of rows updated (0 when already checked out)
        """
        return db.query(AttendanceRecord).filter(
            AttendanceRecord.at_id == attendance_id,
            AttendanceRecord.at_check_in_time.isnot(None),
            AttendanceRecord.at_check_out_time.is_(None)
        ).update(update_data, synchronize_session=False)

    def _apply_filters(
        self,
        query,
        user_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None
    ):
        if user_id:
            query = query.filter(AttendanceRecord.at_user_id == user_id)
        if date_from:
            query = query.filter(AttendanceRecord.at_date >= date_from)
        if date_to:
            query = query.filter(AttendanceRecord.at_date <= date_to)
        if status:
            query = query.filter(AttendanceRecord.at_status == status)
        return query

    def get_records_with_filters(
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
        """Get records with various filters using ORM"""
        query = self._apply_filters(db.query(AttendanceRecord), user_id, date_from, date_to, status)

        # Sorting
        if sort.lower() == "asc":
            query = query.order_by(AttendanceRecord.at_date.asc(), AttendanceRecord.at_id.asc())
        else:
            query = query.order_by(AttendanceRecord.at_date.desc(), AttendanceRecord.at_id.desc())

        return query.offset(skip).limit(limit).all()

    def count_records_with_filters(
        self,
        db: Session,
        user_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None
    ) -> int:
        query = self._apply_filters(db.query(func.count(AttendanceRecord.at_id)), user_id, date_from, date_to, status)
        return query.scalar()

    def count_by_status(self, db: Session, user_id: int, date_from: date, date_to: date) -> Dict[str, int]:
        """Status histogram for a user's records in a date range"""
        rows = db.query(
            AttendanceRecord.at_status,
            func.count(AttendanceRecord.at_id)
        ).filter(
            AttendanceRecord.at_user_id == user_id,
            AttendanceRecord.at_date >= date_from,
            AttendanceRecord.at_date <= date_to
        ).group_by(AttendanceRecord.at_status).all()

        return {status: count for status, count in rows}

    def sum_working_hours(self, db: Session, user_id: int, date_from: date, date_to: date) -> float:
        total = db.query(func.coalesce(func.sum(AttendanceRecord.at_working_hours), 0.0)).filter(
            AttendanceRecord.at_user_id == user_id,
            AttendanceRecord.at_date >= date_from,
            AttendanceRecord.at_date <= date_to
        ).scalar()
        return float(total or 0)
