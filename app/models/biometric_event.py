"""
Biometric Event Model - Audit trail for enrollment and authentication ceremonies
"""
from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from atams.db import Base


class BiometricEvent(Base):
    """Biometric Event model for hris schema - Table: hris.biometric_events"""
    __tablename__ = "biometric_events"
    __table_args__ = {"schema": "hris"}

    be_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True, autoincrement=True)
    be_user_id = Column(BigInteger, nullable=False, index=True)
    be_ceremony = Column(String(20), nullable=False)  # 'enroll' or 'authenticate'
    be_outcome = Column(String(40), nullable=False)  # 'success' or a BiometricErrorCode value
    be_detail = Column(Text, nullable=True)
    be_credential_id = Column(String(512), nullable=True)
    be_occurred_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
