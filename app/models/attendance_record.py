"""
Attendance Record Model - One row per user per working day
"""
from sqlalchemy import (
    Column, BigInteger, Integer, String, DateTime, Date, Float, Boolean, Text, UniqueConstraint
)
from sqlalchemy.sql import func
from atams.db import Base


class AttendanceRecord(Base):
    """Attendance Record model for hris schema - Table: hris.attendance"""
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("at_user_id", "at_date", name="uq_attendance_user_date"),
        {"schema": "hris"},
    )

    at_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True, autoincrement=True)
    at_user_id = Column(BigInteger, nullable=False, index=True)  # References pt_atams_indonesia.users(u_id)
    at_date = Column(Date, nullable=False, index=True)  # Calendar day in ATTENDANCE_TIMEZONE
    at_check_in_time = Column(DateTime(timezone=True), nullable=True)
    at_check_out_time = Column(DateTime(timezone=True), nullable=True)
    at_status = Column(String(10), nullable=False, default="present")  # present, absent, late, half_day
    at_working_hours = Column(Float, nullable=True)
    at_notes = Column(Text, nullable=True)

    # Check-in position
    at_latitude = Column(Float, nullable=True)
    at_longitude = Column(Float, nullable=True)
    at_location_verified = Column(Boolean, nullable=False, default=False)
    at_location_name = Column(String(255), nullable=True)
    at_biometric_verified = Column(Boolean, nullable=False, default=False)

    # Checkout position
    at_checkout_latitude = Column(Float, nullable=True)
    at_checkout_longitude = Column(Float, nullable=True)
    at_checkout_location_verified = Column(Boolean, nullable=False, default=False)
    at_checkout_location_name = Column(String(255), nullable=True)
    at_biometric_verified_out = Column(Boolean, nullable=False, default=False)

    at_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    at_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
