"""
Biometric Event Repository - Audit trail of biometric ceremonies
"""
from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import func

from atams.db import BaseRepository
from app.models.biometric_event import BiometricEvent

OUTCOME_SUCCESS = "success"


class BiometricEventRepository(BaseRepository[BiometricEvent]):
    def __init__(self):
        super().__init__(BiometricEvent)

    def last_success_at(self, db: Session, user_id: int, ceremony: str) -> Optional[datetime]:
        return db.query(func.max(BiometricEvent.be_occurred_at)).filter(
            BiometricEvent.be_user_id == user_id,
            BiometricEvent.be_ceremony == ceremony,
            BiometricEvent.be_outcome == OUTCOME_SUCCESS
        ).scalar()

    def count_failures_since(self, db: Session, user_id: int, ceremony: str, since: datetime) -> int:
        """Count failed ceremonies strictly after `since` using ORM"""
        return db.query(func.count(BiometricEvent.be_id)).filter(
            BiometricEvent.be_user_id == user_id,
            BiometricEvent.be_ceremony == ceremony,
            BiometricEvent.be_outcome != OUTCOME_SUCCESS,
            BiometricEvent.be_occurred_at > since
        ).scalar()
