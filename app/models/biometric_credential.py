"""
Biometric Credential Model - Enrolled platform authenticators
"""
from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from atams.db import Base


class BiometricCredential(Base):
    """Biometric Credential model for hris schema - Table: hris.biometric_credentials"""
    __tablename__ = "biometric_credentials"
    __table_args__ = {"schema": "hris"}

    bc_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True, autoincrement=True)
    bc_user_id = Column(BigInteger, nullable=False, index=True)  # References pt_atams_indonesia.users(u_id)
    bc_credential_id = Column(String(512), nullable=False, unique=True)  # base64url
    bc_public_key = Column(Text, nullable=False)  # base64 SubjectPublicKeyInfo DER
    bc_public_key_algorithm = Column(Integer, nullable=False, default=-7)  # COSE alg, -7 = ES256
    bc_counter = Column(BigInteger, nullable=False, default=0)
    bc_transports = Column(String(255), nullable=True)  # Comma separated
    bc_last_used_at = Column(DateTime(timezone=True), nullable=True)
    bc_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    bc_updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
