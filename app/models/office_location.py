"""
Office Location Model - Geofence zones for attendance
"""
from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Float, Boolean, Text
from sqlalchemy.sql import func
from atams.db import Base


class OfficeLocation(Base):
    """Office Location model for hris schema - Table: hris.office_locations"""
    __tablename__ = "office_locations"
    __table_args__ = {"schema": "hris"}

    ol_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True, autoincrement=True)
    ol_name = Column(String(255), nullable=False)
    ol_latitude = Column(Float, nullable=False)  # Degrees, WGS84
    ol_longitude = Column(Float, nullable=False)
    ol_radius_meters = Column(Integer, nullable=False, default=100)
    ol_address = Column(Text, nullable=True)
    ol_is_active = Column(Boolean, nullable=False, default=True)
    ol_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    ol_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
