"""
Used JTI Repository - Data access layer for single-use ceremony tokens
"""
from datetime import datetime, timedelta, timezone
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.used_jti import UsedJti


class UsedJtiRepository(BaseRepository[UsedJti]):
    def __init__(self):
        super().__init__(UsedJti)

    def mark_jti_as_used(self, db: Session, user_id: int, jti: str, purpose: str) -> None:
        """
        Stage the JTI as consumed inside the caller's transaction.

        Flushes immediately so a replayed token raises IntegrityError on the
        (user_id, jti) primary key before anything else is written.
        """
        db_jti = UsedJti(
            uj_user_id=user_id,
            uj_jti=jti,
            uj_purpose=purpose,
            uj_used_at=datetime.now(timezone.utc)
        )
        db.add(db_jti)
        db.flush()

    def cleanup_old_jtis(self, db: Session, older_than_days: int = 7) -> int:
        """
        Delete JTIs older than specified days.
        Returns count of deleted records.
        """
        cutoff_time = datetime.now(timezone.utc) - timedelta(days=older_than_days)

        deleted = db.query(UsedJti).filter(
            UsedJti.uj_used_at < cutoff_time
        ).delete(synchronize_session=False)
        db.commit()

        return deleted
