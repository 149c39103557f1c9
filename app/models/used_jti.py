"""
Used JTI Model - Single-use ceremony challenge tracking
"""
from sqlalchemy import Column, BigInteger, String, DateTime
from sqlalchemy.sql import func
from atams.db import Base


class UsedJti(Base):
    """Used JTI model for hris schema - Table: hris.used_jti"""
    __tablename__ = "used_jti"
    __table_args__ = {"schema": "hris"}

    uj_user_id = Column(BigInteger, primary_key=True, autoincrement=False)
    uj_jti = Column(String(64), primary_key=True, index=True)  # JWT ID of the ceremony token
    uj_purpose = Column(String(20), nullable=False)  # 'enroll' or 'authenticate'
    uj_used_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
